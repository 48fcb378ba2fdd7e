"""Broker session and account snapshot models."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from turtle_portfolio.domain.models.portfolio import PerformanceStats


@dataclass(frozen=True)
class BrokerSession:
    """Access token issued by the broker, valid until ``expires_at``."""

    access_token: str
    issued_at: datetime
    expires_at: Optional[datetime] = None

    def is_valid(self, now: datetime) -> bool:
        """Return True while the token is present and not yet expired."""
        if not self.access_token:
            return False
        return self.expires_at is None or now < self.expires_at


@dataclass(frozen=True)
class BrokerPosition:
    """A holding as reported by the broker."""

    symbol: str
    name: str
    quantity: int
    avg_price: Decimal
    current_price: Decimal
    unrealized_pl: Decimal = field(default_factory=lambda: Decimal("0"))


@dataclass(frozen=True)
class BrokerSnapshot:
    """Live account balance as reported by the broker. Never persisted as-is."""

    cash: Decimal
    total_asset: Optional[Decimal]
    stock_value: Decimal = field(default_factory=lambda: Decimal("0"))
    positions: tuple[BrokerPosition, ...] = ()
    stats: Optional[PerformanceStats] = None
    fetched_at: Optional[datetime] = None
