"""Position domain model and its partial-update structure."""

from dataclasses import dataclass, field, fields
from datetime import datetime
from decimal import Decimal
from typing import Optional

from turtle_portfolio.domain.models.enums import EntrySignal


@dataclass
class Position:
    """
    An open holding in one symbol.

    Symbol is unique within a portfolio. A quantity of zero or less is never
    stored; the position is removed instead.

    ``stop_loss_price``, ``entry_date`` and ``atr`` are always set on stored
    positions. They are ``None`` only on live holdings the ledger has no entry
    for, whose risk_amount is 0.
    """

    symbol: str
    name: str
    quantity: int
    avg_price: Decimal
    current_price: Decimal
    stop_loss_price: Optional[Decimal]
    entry_date: Optional[datetime]
    atr: Optional[Decimal]
    risk_amount: Decimal
    entry_signal: EntrySignal = EntrySignal.BREAKOUT_20D
    unrealized_pl: Decimal = field(default_factory=lambda: Decimal("0"))

    def __post_init__(self) -> None:
        if isinstance(self.entry_signal, str):
            self.entry_signal = EntrySignal(self.entry_signal)

    @property
    def market_value(self) -> Decimal:
        """Current price times quantity."""
        return self.current_price * self.quantity


@dataclass
class PositionUpsert:
    """
    Enumerated partial update for a position.

    ``None`` means "leave unchanged" for existing positions. Inserting a new
    symbol requires every field in ``REQUIRED_ON_INSERT``.
    """

    REQUIRED_ON_INSERT = (
        "name",
        "quantity",
        "avg_price",
        "stop_loss_price",
        "atr",
        "risk_amount",
    )

    symbol: str
    name: Optional[str] = None
    quantity: Optional[int] = None
    avg_price: Optional[Decimal] = None
    current_price: Optional[Decimal] = None
    stop_loss_price: Optional[Decimal] = None
    entry_date: Optional[datetime] = None
    entry_signal: Optional[EntrySignal] = None
    atr: Optional[Decimal] = None
    risk_amount: Optional[Decimal] = None

    def provided(self) -> dict:
        """Return the fields that carry a value, excluding the symbol."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name != "symbol" and getattr(self, f.name) is not None
        }

    def missing_for_insert(self) -> list[str]:
        """Names of required fields that are absent."""
        return [name for name in self.REQUIRED_ON_INSERT if getattr(self, name) is None]
