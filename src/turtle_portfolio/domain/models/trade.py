"""Closed trade record."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass(frozen=True)
class ClosedTrade:
    """Outcome of closing all or part of a position."""

    symbol: str
    quantity: int
    entry_price: Decimal
    exit_price: Decimal
    realized_pl: Decimal
    closed_at: datetime

    @property
    def is_win(self) -> bool:
        return self.realized_pl > 0
