"""Portfolio aggregate, risk settings and performance counters."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from turtle_portfolio.domain.models.position import Position


@dataclass(frozen=True)
class RiskSettings:
    """
    Risk limits for an account.

    A value of 1 or less is a fraction of portfolio value; anything larger is
    an absolute amount in account currency.
    """

    max_risk_per_trade: Decimal = Decimal("0.02")
    max_total_risk: Decimal = Decimal("0.10")
    min_cash_reserve: Decimal = Decimal("0.20")


@dataclass
class PerformanceStats:
    """Closed-trade performance counters. Losses are stored as non-positive."""

    total_trades: int = 0
    winning_trades: int = 0
    total_profit: Decimal = field(default_factory=lambda: Decimal("0"))
    total_loss: Decimal = field(default_factory=lambda: Decimal("0"))
    largest_win: Decimal = field(default_factory=lambda: Decimal("0"))
    largest_loss: Decimal = field(default_factory=lambda: Decimal("0"))
    win_rate: Decimal = field(default_factory=lambda: Decimal("0"))
    profit_factor: Decimal = field(default_factory=lambda: Decimal("0"))


@dataclass
class Portfolio:
    """
    One account's balances and open positions.

    ``total_equity`` is a cached derived value; ``version`` is owned by the
    store and is 0 until the first save.
    """

    account_id: str
    initial_balance: Decimal = field(default_factory=lambda: Decimal("0"))
    current_cash: Decimal = field(default_factory=lambda: Decimal("0"))
    total_equity: Decimal = field(default_factory=lambda: Decimal("0"))
    positions: list[Position] = field(default_factory=list)
    risk_settings: RiskSettings = field(default_factory=RiskSettings)
    stats: PerformanceStats = field(default_factory=PerformanceStats)
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def bootstrap(cls, account_id: str, initial_balance: Decimal, now: datetime) -> "Portfolio":
        """First-use portfolio: all cash, no positions, default risk settings."""
        return cls(
            account_id=account_id,
            initial_balance=initial_balance,
            current_cash=initial_balance,
            total_equity=initial_balance,
            created_at=now,
        )
