"""Pydantic schemas for API request/response."""

from turtle_portfolio.api.schemas.portfolio import (
    PositionSchema,
    RiskSettingsSchema,
    StatsSchema,
    PortfolioSchema,
    ClosedTradeSchema,
    PortfolioReadResponse,
    PortfolioWriteResponse,
    PositionDeleteResponse,
    ClosePositionResponse,
    RiskCheckResponse,
    PositionUpsertRequest,
    FillRequest,
    ClosePositionRequest,
    PortfolioInitRequest,
    RiskCheckRequest,
)

__all__ = [
    "PositionSchema",
    "RiskSettingsSchema",
    "StatsSchema",
    "PortfolioSchema",
    "ClosedTradeSchema",
    "PortfolioReadResponse",
    "PortfolioWriteResponse",
    "PositionDeleteResponse",
    "ClosePositionResponse",
    "RiskCheckResponse",
    "PositionUpsertRequest",
    "FillRequest",
    "ClosePositionRequest",
    "PortfolioInitRequest",
    "RiskCheckRequest",
]
