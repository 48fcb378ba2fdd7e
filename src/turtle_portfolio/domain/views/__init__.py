"""View models for service outputs."""

from turtle_portfolio.domain.views.portfolio import (
    RiskMetrics,
    RiskCheck,
    PortfolioView,
    ReconciliationResult,
)

__all__ = [
    "RiskMetrics",
    "RiskCheck",
    "PortfolioView",
    "ReconciliationResult",
]
