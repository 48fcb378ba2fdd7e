"""Domain layer - pure business models with no external dependencies."""

from turtle_portfolio.domain.models import (
    EntrySignal,
    DataSource,
    Position,
    PositionUpsert,
    Portfolio,
    RiskSettings,
    PerformanceStats,
    BrokerSession,
    BrokerSnapshot,
    BrokerPosition,
    ClosedTrade,
)
from turtle_portfolio.domain.ledger import PositionLedger

__all__ = [
    "EntrySignal",
    "DataSource",
    "Position",
    "PositionUpsert",
    "Portfolio",
    "RiskSettings",
    "PerformanceStats",
    "BrokerSession",
    "BrokerSnapshot",
    "BrokerPosition",
    "ClosedTrade",
    "PositionLedger",
]
