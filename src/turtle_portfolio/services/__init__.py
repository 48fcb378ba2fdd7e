"""Service layer - business logic orchestration."""

from turtle_portfolio.services import performance, risk_calculator
from turtle_portfolio.services.reconciliation_engine import (
    ReconciliationConfig,
    ReconciliationEngine,
    build_view,
    merge_positions,
)
from turtle_portfolio.services.position_service import PositionService

__all__ = [
    "performance",
    "risk_calculator",
    "ReconciliationConfig",
    "ReconciliationEngine",
    "build_view",
    "merge_positions",
    "PositionService",
]
