"""Position ledger: the set of open positions for one account."""

from dataclasses import replace
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Iterator, Optional

from turtle_portfolio.core.exceptions import NotFoundError, ValidationError
from turtle_portfolio.domain.models import EntrySignal, Position, PositionUpsert

PRICE_QUANTUM = Decimal("0.0001")

_POSITIVE_FIELDS = ("avg_price", "current_price", "stop_loss_price", "atr")


class PositionLedger:
    """
    Ordered, symbol-keyed collection of open positions.

    Works on its own copies of the positions it is given; callers read the
    result back with ``to_list()``. Insertion order is entry order.
    """

    def __init__(self, positions: Iterable[Position] = ()):
        self._positions: dict[str, Position] = {}
        for position in positions:
            self._positions[position.symbol] = replace(position)

    def __iter__(self) -> Iterator[Position]:
        return iter(self._positions.values())

    def __len__(self) -> int:
        return len(self._positions)

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._positions

    def get(self, symbol: str) -> Optional[Position]:
        return self._positions.get(symbol)

    def symbols(self) -> list[str]:
        return list(self._positions)

    def to_list(self) -> list[Position]:
        return list(self._positions.values())

    def upsert(self, update: PositionUpsert, now: datetime) -> Optional[Position]:
        """
        Insert a new position or overlay the provided fields onto an existing one.

        Returns the resulting position, or ``None`` when the update left the
        quantity at zero or below and the position was removed.
        """
        if not update.symbol:
            raise ValidationError("Position requires a symbol")
        self._validate_values(update)

        existing = self._positions.get(update.symbol)
        if existing is None:
            missing = update.missing_for_insert()
            if missing:
                raise ValidationError(
                    f"New position {update.symbol} is missing required fields: {', '.join(missing)}"
                )
            if update.quantity <= 0:
                raise ValidationError(f"New position {update.symbol} requires quantity > 0")
            position = Position(
                symbol=update.symbol,
                name=update.name,
                quantity=update.quantity,
                avg_price=update.avg_price,
                current_price=update.current_price or update.avg_price,
                stop_loss_price=update.stop_loss_price,
                entry_date=update.entry_date or now,
                entry_signal=update.entry_signal or EntrySignal.BREAKOUT_20D,
                atr=update.atr,
                risk_amount=update.risk_amount,
                unrealized_pl=Decimal("0"),
            )
            self._positions[position.symbol] = position
            return position

        changes = update.provided()
        # Entry date is fixed at creation
        changes.pop("entry_date", None)
        updated = replace(existing, **changes)
        if updated.quantity <= 0:
            del self._positions[update.symbol]
            return None
        self._positions[update.symbol] = updated
        return updated

    def remove(self, symbol: str) -> bool:
        """Delete a position. Returns False if the symbol was not held."""
        return self._positions.pop(symbol, None) is not None

    def apply_fill(self, symbol: str, quantity: int, price: Decimal) -> Position:
        """
        Add shares to an existing position at ``price``.

        The average price becomes the volume-weighted average and the risk
        amount is recomputed for the resized position.
        """
        if quantity <= 0:
            raise ValidationError("Fill quantity must be > 0")
        if price <= 0:
            raise ValidationError("Fill price must be > 0")
        existing = self._positions.get(symbol)
        if existing is None:
            raise NotFoundError("Position", symbol)

        new_quantity = existing.quantity + quantity
        cost = existing.avg_price * existing.quantity + price * quantity
        avg_price = (cost / new_quantity).quantize(PRICE_QUANTUM, rounding=ROUND_HALF_UP)
        risk_amount = max(
            Decimal("0"),
            (avg_price - existing.stop_loss_price) * new_quantity,
        )
        updated = replace(
            existing,
            quantity=new_quantity,
            avg_price=avg_price,
            risk_amount=risk_amount,
        )
        self._positions[symbol] = updated
        return updated

    def reduce(self, symbol: str, quantity: int) -> Optional[Position]:
        """
        Remove ``quantity`` shares; the position is deleted when none remain.

        The average price and per-share risk stay as they were; the risk
        amount shrinks in proportion to the shares left.
        """
        existing = self._positions.get(symbol)
        if existing is None:
            raise NotFoundError("Position", symbol)
        if quantity <= 0 or quantity > existing.quantity:
            raise ValidationError(
                f"Cannot reduce {symbol} by {quantity}: holding {existing.quantity}"
            )

        remaining = existing.quantity - quantity
        if remaining == 0:
            del self._positions[symbol]
            return None
        risk_amount = existing.risk_amount * remaining / existing.quantity
        updated = replace(existing, quantity=remaining, risk_amount=risk_amount)
        self._positions[symbol] = updated
        return updated

    @staticmethod
    def _validate_values(update: PositionUpsert) -> None:
        for name in _POSITIVE_FIELDS:
            value = getattr(update, name)
            if value is not None and value <= 0:
                raise ValidationError(f"{name} must be > 0 for {update.symbol}")
        if update.risk_amount is not None and update.risk_amount < 0:
            raise ValidationError(f"risk_amount cannot be negative for {update.symbol}")
