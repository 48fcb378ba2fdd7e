"""View models for reconciliation and risk outputs."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from turtle_portfolio.domain.models import (
    BrokerSession,
    DataSource,
    PerformanceStats,
    Position,
    RiskSettings,
)


@dataclass(frozen=True)
class RiskMetrics:
    """Metrics derived from a ledger snapshot."""

    portfolio_value: Decimal
    total_return: Decimal
    current_risk_exposure: Decimal
    total_unrealized_pl: Decimal


@dataclass(frozen=True)
class RiskCheck:
    """Result of checking a prospective entry against risk limits."""

    risk_amount: Decimal
    cost: Decimal
    max_risk_per_trade: Decimal
    remaining_total_risk: Decimal
    cash_after_entry: Decimal
    required_cash_reserve: Decimal
    within_trade_limit: bool
    within_total_limit: bool
    keeps_cash_reserve: bool

    @property
    def allowed(self) -> bool:
        return self.within_trade_limit and self.within_total_limit and self.keeps_cash_reserve


@dataclass
class PortfolioView:
    """Authoritative portfolio view returned for one read request."""

    account_id: str
    initial_balance: Decimal
    current_cash: Decimal
    total_equity: Decimal
    portfolio_value: Decimal
    total_return: Decimal
    current_risk_exposure: Decimal
    positions: list[Position] = field(default_factory=list)
    risk_settings: RiskSettings = field(default_factory=RiskSettings)
    stats: PerformanceStats = field(default_factory=PerformanceStats)


@dataclass
class ReconciliationResult:
    """
    Outcome of one reconciliation cycle.

    ``source`` names the tier that produced the view; ``session`` is the broker
    session to hand to the next request (``None`` when the broker is down).
    """

    portfolio: PortfolioView
    source: DataSource
    broker_connected: bool
    persisted: bool
    message: str
    session: Optional[BrokerSession] = None

    @property
    def is_placeholder(self) -> bool:
        return self.source == DataSource.PLACEHOLDER
