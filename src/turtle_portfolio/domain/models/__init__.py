"""Domain models package."""

from turtle_portfolio.domain.models.enums import EntrySignal, DataSource
from turtle_portfolio.domain.models.position import Position, PositionUpsert
from turtle_portfolio.domain.models.portfolio import Portfolio, RiskSettings, PerformanceStats
from turtle_portfolio.domain.models.broker import BrokerSession, BrokerSnapshot, BrokerPosition
from turtle_portfolio.domain.models.trade import ClosedTrade

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
]
