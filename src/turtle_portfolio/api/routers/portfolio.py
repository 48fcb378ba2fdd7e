"""Portfolio endpoints: reconciled reads and position writes."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from turtle_portfolio.api.deps import (
    BrokerSessionHolder,
    get_position_service,
    get_reconciliation_engine,
    get_session_holder,
)
from turtle_portfolio.api.schemas import (
    ClosedTradeSchema,
    ClosePositionRequest,
    ClosePositionResponse,
    FillRequest,
    PortfolioInitRequest,
    PortfolioReadResponse,
    PortfolioSchema,
    PortfolioWriteResponse,
    PositionDeleteResponse,
    PositionUpsertRequest,
    RiskCheckRequest,
    RiskCheckResponse,
)
from turtle_portfolio.config.settings import get_settings
from turtle_portfolio.domain.models import Portfolio
from turtle_portfolio.services import PositionService, ReconciliationEngine, build_view

router = APIRouter(prefix="/portfolio", tags=["portfolio"])


def _account(account_id: Optional[str]) -> str:
    return account_id or get_settings().default_account_id


def _schema(portfolio: Portfolio) -> PortfolioSchema:
    return PortfolioSchema.from_view(build_view(portfolio))


@router.get("", response_model=PortfolioReadResponse)
def get_portfolio(
    account_id: Optional[str] = Query(None, alias="accountId", description="Account ID"),
    engine: ReconciliationEngine = Depends(get_reconciliation_engine),
    sessions: BrokerSessionHolder = Depends(get_session_holder),
) -> PortfolioReadResponse:
    """
    Get the authoritative portfolio view.

    Always answers 200: broker and store outages show up in ``source``,
    ``brokerConnected`` and ``message`` rather than as errors.
    """
    result = engine.reconcile(_account(account_id), session=sessions.get())
    sessions.set(result.session)
    return PortfolioReadResponse(
        portfolio=PortfolioSchema.from_view(result.portfolio),
        broker_connected=result.broker_connected,
        kiwoom_connected=result.broker_connected,
        source=result.source,
        persisted=result.persisted,
        message=result.message,
    )


@router.post("/init", response_model=PortfolioWriteResponse, status_code=201)
def initialize_portfolio(
    data: PortfolioInitRequest,
    service: PositionService = Depends(get_position_service),
) -> PortfolioWriteResponse:
    """Create the stored portfolio for an account."""
    portfolio = service.initialize_portfolio(_account(data.account_id), data.initial_balance)
    return PortfolioWriteResponse(
        portfolio=_schema(portfolio),
        message=f"Portfolio {portfolio.account_id} initialized",
    )


@router.post("/positions", response_model=PortfolioWriteResponse)
def upsert_position(
    data: PositionUpsertRequest,
    service: PositionService = Depends(get_position_service),
) -> PortfolioWriteResponse:
    """Insert a position or update the provided fields of an existing one."""
    portfolio = service.upsert_position(_account(data.account_id), data.to_update())
    return PortfolioWriteResponse(
        portfolio=_schema(portfolio),
        message=f"Position {data.symbol} saved",
    )


@router.delete("/positions/{symbol}", response_model=PositionDeleteResponse)
def delete_position(
    symbol: str,
    account_id: Optional[str] = Query(None, alias="accountId", description="Account ID"),
    service: PositionService = Depends(get_position_service),
) -> PositionDeleteResponse:
    """Remove a position. A symbol that is not held is a successful no-op."""
    removed = service.remove_position(_account(account_id), symbol)
    message = f"Position {symbol} removed" if removed else f"Position {symbol} not held"
    return PositionDeleteResponse(removed=removed, message=message)


@router.post("/positions/{symbol}/fills", response_model=PortfolioWriteResponse)
def add_fill(
    symbol: str,
    data: FillRequest,
    service: PositionService = Depends(get_position_service),
) -> PortfolioWriteResponse:
    """Add shares to an existing position."""
    portfolio = service.add_fill(_account(data.account_id), symbol, data.quantity, data.price)
    return PortfolioWriteResponse(
        portfolio=_schema(portfolio),
        message=f"Added {data.quantity} {symbol} at {data.price}",
    )


@router.post("/positions/{symbol}/close", response_model=ClosePositionResponse)
def close_position(
    symbol: str,
    data: ClosePositionRequest,
    service: PositionService = Depends(get_position_service),
) -> ClosePositionResponse:
    """Sell all or part of a position and record the closed trade."""
    trade, portfolio = service.close_position(
        _account(data.account_id),
        symbol,
        data.exit_price,
        data.quantity,
    )
    return ClosePositionResponse(
        trade=ClosedTradeSchema.from_domain(trade),
        portfolio=_schema(portfolio),
        message=f"Closed {trade.quantity} {symbol}, realized {trade.realized_pl:,.0f}",
    )


@router.post("/risk-check", response_model=RiskCheckResponse)
def check_entry(
    data: RiskCheckRequest,
    service: PositionService = Depends(get_position_service),
) -> RiskCheckResponse:
    """Check a prospective entry against the account's risk limits."""
    check = service.check_entry(_account(data.account_id), data.risk_amount, data.cost)
    return RiskCheckResponse.from_check(check)
