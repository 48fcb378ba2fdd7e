"""Pydantic schemas for portfolio endpoints."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field, field_validator

from turtle_portfolio.api.schemas.base import CamelModel
from turtle_portfolio.domain.models import (
    ClosedTrade,
    DataSource,
    EntrySignal,
    PerformanceStats,
    Position,
    PositionUpsert,
    RiskSettings,
)
from turtle_portfolio.domain.views import PortfolioView, RiskCheck


# =============================================================================
# Response parts
# =============================================================================


class PositionSchema(CamelModel):
    """One open position."""

    symbol: str
    name: str
    quantity: int
    avg_price: Decimal
    current_price: Decimal
    stop_loss_price: Optional[Decimal]
    entry_date: Optional[datetime]
    entry_signal: EntrySignal
    atr: Optional[Decimal]
    risk_amount: Decimal
    unrealized_pl: Decimal = Field(alias="unrealizedPL")

    @classmethod
    def from_domain(cls, position: Position) -> "PositionSchema":
        return cls(
            symbol=position.symbol,
            name=position.name,
            quantity=position.quantity,
            avg_price=position.avg_price,
            current_price=position.current_price,
            stop_loss_price=position.stop_loss_price,
            entry_date=position.entry_date,
            entry_signal=position.entry_signal,
            atr=position.atr,
            risk_amount=position.risk_amount,
            unrealized_pl=position.unrealized_pl,
        )


class RiskSettingsSchema(CamelModel):
    max_risk_per_trade: Decimal
    max_total_risk: Decimal
    min_cash_reserve: Decimal

    @classmethod
    def from_domain(cls, settings: RiskSettings) -> "RiskSettingsSchema":
        return cls(
            max_risk_per_trade=settings.max_risk_per_trade,
            max_total_risk=settings.max_total_risk,
            min_cash_reserve=settings.min_cash_reserve,
        )


class StatsSchema(CamelModel):
    total_trades: int
    winning_trades: int
    total_profit: Decimal
    total_loss: Decimal
    largest_win: Decimal
    largest_loss: Decimal
    win_rate: Decimal
    profit_factor: Decimal

    @classmethod
    def from_domain(cls, stats: PerformanceStats) -> "StatsSchema":
        return cls(
            total_trades=stats.total_trades,
            winning_trades=stats.winning_trades,
            total_profit=stats.total_profit,
            total_loss=stats.total_loss,
            largest_win=stats.largest_win,
            largest_loss=stats.largest_loss,
            win_rate=stats.win_rate,
            profit_factor=stats.profit_factor,
        )


class PortfolioSchema(CamelModel):
    """Portfolio view with derived metrics."""

    account_id: str
    initial_balance: Decimal
    current_cash: Decimal
    total_equity: Decimal
    portfolio_value: Decimal
    total_return: Decimal
    current_risk_exposure: Decimal
    positions: list[PositionSchema]
    risk_settings: RiskSettingsSchema
    stats: StatsSchema

    @classmethod
    def from_view(cls, view: PortfolioView) -> "PortfolioSchema":
        return cls(
            account_id=view.account_id,
            initial_balance=view.initial_balance,
            current_cash=view.current_cash,
            total_equity=view.total_equity,
            portfolio_value=view.portfolio_value,
            total_return=view.total_return,
            current_risk_exposure=view.current_risk_exposure,
            positions=[PositionSchema.from_domain(p) for p in view.positions],
            risk_settings=RiskSettingsSchema.from_domain(view.risk_settings),
            stats=StatsSchema.from_domain(view.stats),
        )


class ClosedTradeSchema(CamelModel):
    symbol: str
    quantity: int
    entry_price: Decimal
    exit_price: Decimal
    realized_pl: Decimal = Field(alias="realizedPL")
    closed_at: datetime

    @classmethod
    def from_domain(cls, trade: ClosedTrade) -> "ClosedTradeSchema":
        return cls(
            symbol=trade.symbol,
            quantity=trade.quantity,
            entry_price=trade.entry_price,
            exit_price=trade.exit_price,
            realized_pl=trade.realized_pl,
            closed_at=trade.closed_at,
        )


# =============================================================================
# Responses
# =============================================================================


class PortfolioReadResponse(CamelModel):
    """Reconciled read view. ``kiwoom_connected`` mirrors ``broker_connected``."""

    success: bool = True
    portfolio: PortfolioSchema
    broker_connected: bool
    kiwoom_connected: bool
    source: DataSource
    persisted: bool
    message: str


class PortfolioWriteResponse(CamelModel):
    success: bool = True
    portfolio: PortfolioSchema
    message: str


class PositionDeleteResponse(CamelModel):
    success: bool = True
    removed: bool
    message: str


class ClosePositionResponse(CamelModel):
    success: bool = True
    trade: ClosedTradeSchema
    portfolio: PortfolioSchema
    message: str


class RiskCheckResponse(CamelModel):
    success: bool = True
    allowed: bool
    risk_amount: Decimal
    cost: Decimal
    max_risk_per_trade: Decimal
    remaining_total_risk: Decimal
    cash_after_entry: Decimal
    required_cash_reserve: Decimal
    within_trade_limit: bool
    within_total_limit: bool
    keeps_cash_reserve: bool

    @classmethod
    def from_check(cls, check: RiskCheck) -> "RiskCheckResponse":
        return cls(
            allowed=check.allowed,
            risk_amount=check.risk_amount,
            cost=check.cost,
            max_risk_per_trade=check.max_risk_per_trade,
            remaining_total_risk=check.remaining_total_risk,
            cash_after_entry=check.cash_after_entry,
            required_cash_reserve=check.required_cash_reserve,
            within_trade_limit=check.within_trade_limit,
            within_total_limit=check.within_total_limit,
            keeps_cash_reserve=check.keeps_cash_reserve,
        )


# =============================================================================
# Requests
# =============================================================================


class PositionUpsertRequest(CamelModel):
    """
    Request schema for inserting or updating a position.

    New symbols need name, quantity, avgPrice, stopLossPrice, atr and
    riskAmount; updates may send any subset.
    """

    account_id: Optional[str] = Field(default=None, description="Account ID (default account if empty)")
    symbol: str = Field(..., min_length=1, max_length=20)
    name: Optional[str] = Field(default=None, max_length=255)
    quantity: Optional[int] = None
    avg_price: Optional[Decimal] = None
    current_price: Optional[Decimal] = None
    stop_loss_price: Optional[Decimal] = None
    entry_date: Optional[datetime] = None
    entry_signal: Optional[EntrySignal] = None
    atr: Optional[Decimal] = None
    risk_amount: Optional[Decimal] = None

    @field_validator("symbol")
    @classmethod
    def strip_symbol(cls, v: str) -> str:
        return v.strip()

    def to_update(self) -> PositionUpsert:
        return PositionUpsert(
            symbol=self.symbol,
            name=self.name,
            quantity=self.quantity,
            avg_price=self.avg_price,
            current_price=self.current_price,
            stop_loss_price=self.stop_loss_price,
            entry_date=self.entry_date,
            entry_signal=self.entry_signal,
            atr=self.atr,
            risk_amount=self.risk_amount,
        )


class FillRequest(CamelModel):
    account_id: Optional[str] = None
    quantity: int = Field(..., gt=0)
    price: Decimal = Field(..., gt=0)


class ClosePositionRequest(CamelModel):
    account_id: Optional[str] = None
    exit_price: Decimal = Field(..., gt=0)
    quantity: Optional[int] = Field(default=None, gt=0, description="Shares to sell (all if empty)")


class PortfolioInitRequest(CamelModel):
    account_id: Optional[str] = None
    initial_balance: Optional[Decimal] = Field(default=None, ge=0)


class RiskCheckRequest(CamelModel):
    account_id: Optional[str] = None
    risk_amount: Decimal = Field(..., ge=0)
    cost: Decimal = Field(..., ge=0)
