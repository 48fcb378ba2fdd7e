"""Dependency injection for FastAPI."""

import threading
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from turtle_portfolio.config.settings import Settings, get_settings
from turtle_portfolio.domain.models import BrokerSession
from turtle_portfolio.providers import BrokerGateway, KiwoomBrokerGateway, StubBrokerGateway
from turtle_portfolio.repositories.sqlalchemy import SqlAlchemyPortfolioRepository
from turtle_portfolio.repositories.sqlalchemy.database import get_db
from turtle_portfolio.services import (
    PositionService,
    ReconciliationConfig,
    ReconciliationEngine,
)


class BrokerSessionHolder:
    """
    The last broker session handed back by the engine.

    Lives on ``app.state`` so consecutive requests can reuse a valid token.
    The engine itself never reads or writes it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._session: Optional[BrokerSession] = None

    def get(self) -> Optional[BrokerSession]:
        with self._lock:
            return self._session

    def set(self, session: Optional[BrokerSession]) -> None:
        with self._lock:
            self._session = session


def build_broker_gateway(settings: Settings) -> BrokerGateway:
    """Kiwoom when credentials are configured, otherwise an offline stub."""
    if settings.broker_credentials_configured:
        return KiwoomBrokerGateway(settings.kiwoom_url)
    return StubBrokerGateway()


def get_portfolio_repo(db: Session = Depends(get_db)) -> SqlAlchemyPortfolioRepository:
    """Provide PortfolioRepository instance."""
    return SqlAlchemyPortfolioRepository(db)


def get_broker_gateway(request: Request) -> BrokerGateway:
    """Provide the application's broker gateway (created on first use)."""
    gateway = getattr(request.app.state, "broker_gateway", None)
    if gateway is None:
        gateway = build_broker_gateway(get_settings())
        request.app.state.broker_gateway = gateway
    return gateway


def get_session_holder(request: Request) -> BrokerSessionHolder:
    """Provide the application's broker session holder."""
    holder = getattr(request.app.state, "broker_session", None)
    if holder is None:
        holder = BrokerSessionHolder()
        request.app.state.broker_session = holder
    return holder


def get_reconciliation_engine(
    portfolio_repo: SqlAlchemyPortfolioRepository = Depends(get_portfolio_repo),
    broker_gateway: BrokerGateway = Depends(get_broker_gateway),
) -> ReconciliationEngine:
    """Provide ReconciliationEngine instance."""
    return ReconciliationEngine(
        portfolio_repo=portfolio_repo,
        broker_gateway=broker_gateway,
        config=ReconciliationConfig.from_settings(get_settings()),
    )


def get_position_service(
    portfolio_repo: SqlAlchemyPortfolioRepository = Depends(get_portfolio_repo),
) -> PositionService:
    """Provide PositionService instance."""
    return PositionService(
        portfolio_repo=portfolio_repo,
        default_initial_balance=get_settings().default_initial_balance,
    )
