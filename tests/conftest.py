"""
Pytest configuration and fixtures for turtle portfolio tests.

This module provides:
- In-memory SQLite database fixtures
- Stub broker gateways (live, offline, slow) and a failing store
- Service, engine and API client fixtures
- Factory helpers for portfolios and position updates
"""

from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import StaticPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from turtle_portfolio.api.deps import BrokerSessionHolder, get_broker_gateway
from turtle_portfolio.config.settings import Settings, reset_settings, set_settings
from turtle_portfolio.core.exceptions import StoreUnavailableError
from turtle_portfolio.core.locks import AccountLockRegistry
from turtle_portfolio.core.timezone import KST_TZ
from turtle_portfolio.domain.models import (
    BrokerPosition,
    BrokerSession,
    BrokerSnapshot,
    EntrySignal,
    Portfolio,
    PositionUpsert,
)
from turtle_portfolio.main import app
from turtle_portfolio.providers import StubBrokerGateway
from turtle_portfolio.repositories.sqlalchemy import SqlAlchemyPortfolioRepository
from turtle_portfolio.repositories.sqlalchemy.database import Base, get_db, reset_database

# Import ORM models to register them with Base before creating tables
from turtle_portfolio.repositories.sqlalchemy import orm_models  # noqa: F401
from turtle_portfolio.services import (
    PositionService,
    ReconciliationConfig,
    ReconciliationEngine,
)


# =============================================================================
# TIMEZONE HELPERS
# =============================================================================


def kst_datetime(
    year: int,
    month: int,
    day: int,
    hour: int = 10,
    minute: int = 0,
    second: int = 0,
) -> datetime:
    """Create a localized datetime in Asia/Seoul timezone."""
    return KST_TZ.localize(datetime(year, month, day, hour, minute, second))


@pytest.fixture
def fixed_now() -> datetime:
    """Fixed 'now' timestamp for deterministic tests."""
    return kst_datetime(2025, 1, 15, 10, 30, 0)


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture(scope="function")
def test_engine():
    """Create test database engine with shared in-memory SQLite."""
    # Keep the app's own engine off the user's data directory
    set_settings(Settings(database_url="sqlite:///:memory:"))
    reset_database()

    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    reset_database()
    reset_settings()


@pytest.fixture(scope="function")
def test_session(test_engine) -> Session:
    """Create test database session."""
    TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()


# =============================================================================
# REPOSITORY FIXTURES
# =============================================================================


@pytest.fixture
def portfolio_repo(test_session) -> SqlAlchemyPortfolioRepository:
    """Provide test PortfolioRepository."""
    return SqlAlchemyPortfolioRepository(test_session)


class FailingPortfolioRepository:
    """Portfolio store whose connection is down."""

    def __init__(self):
        self.save_calls = 0

    def load(self, account_id: str) -> Optional[Portfolio]:
        raise StoreUnavailableError("Connection refused")

    def save(self, portfolio: Portfolio) -> Portfolio:
        self.save_calls += 1
        raise StoreUnavailableError("Connection refused")

    def exists(self, account_id: str) -> bool:
        raise StoreUnavailableError("Connection refused")


class WriteFailingPortfolioRepository:
    """Reads from a real repository, fails every write."""

    def __init__(self, inner: SqlAlchemyPortfolioRepository):
        self._inner = inner
        self.save_calls = 0

    def load(self, account_id: str) -> Optional[Portfolio]:
        return self._inner.load(account_id)

    def save(self, portfolio: Portfolio) -> Portfolio:
        self.save_calls += 1
        raise StoreUnavailableError("Disk I/O error")

    def exists(self, account_id: str) -> bool:
        return self._inner.exists(account_id)


@pytest.fixture
def failing_repo() -> FailingPortfolioRepository:
    """Provide a portfolio store that is unreachable."""
    return FailingPortfolioRepository()


# =============================================================================
# BROKER FIXTURES
# =============================================================================


class SlowBrokerGateway:
    """Broker whose every call exceeds the caller's timeout."""

    def __init__(self):
        self.timeouts: list[float] = []

    def authenticate(self, app_key: str, secret_key: str, timeout: float) -> BrokerSession:
        self.timeouts.append(timeout)
        raise TimeoutError(f"Broker did not answer within {timeout}s")

    def is_authenticated(self, session: Optional[BrokerSession]) -> bool:
        return False

    def get_account_balance(self, session: BrokerSession, timeout: float) -> BrokerSnapshot:
        self.timeouts.append(timeout)
        raise TimeoutError(f"Broker did not answer within {timeout}s")


def make_snapshot(
    cash: Decimal = Decimal("3500000"),
    total_asset: Optional[Decimal] = Decimal("12750000"),
    positions: tuple = (),
    fetched_at: Optional[datetime] = None,
) -> BrokerSnapshot:
    """Build a broker snapshot; stock value is total asset minus cash."""
    return BrokerSnapshot(
        cash=cash,
        total_asset=total_asset,
        stock_value=(total_asset - cash) if total_asset is not None else Decimal("0"),
        positions=positions,
        fetched_at=fetched_at or kst_datetime(2025, 1, 15, 10, 30, 0),
    )


@pytest.fixture
def live_snapshot() -> BrokerSnapshot:
    """
    Broker account worth 12,750,000 with 3,500,000 cash.

    005930: 100 @ 70,000 now 72,500 = 7,250,000
    000660:  10 @ 180,000 now 200,000 = 2,000,000
    """
    return make_snapshot(
        positions=(
            BrokerPosition(
                symbol="005930",
                name="Samsung Electronics",
                quantity=100,
                avg_price=Decimal("70000"),
                current_price=Decimal("72500"),
                unrealized_pl=Decimal("250000"),
            ),
            BrokerPosition(
                symbol="000660",
                name="SK hynix",
                quantity=10,
                avg_price=Decimal("180000"),
                current_price=Decimal("200000"),
                unrealized_pl=Decimal("200000"),
            ),
        ),
    )


@pytest.fixture
def live_gateway(live_snapshot) -> StubBrokerGateway:
    """Provide a reachable broker serving the live snapshot."""
    return StubBrokerGateway(snapshot=live_snapshot)


@pytest.fixture
def offline_gateway() -> StubBrokerGateway:
    """Provide a broker that rejects authentication."""
    return StubBrokerGateway()


@pytest.fixture
def slow_gateway() -> SlowBrokerGateway:
    """Provide a broker that always times out."""
    return SlowBrokerGateway()


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def reconciliation_config() -> ReconciliationConfig:
    """Engine configuration with dummy credentials and default fallbacks."""
    return ReconciliationConfig(app_key="test-app-key", secret_key="test-secret-key")


@pytest.fixture
def engine_factory(portfolio_repo, reconciliation_config) -> Callable[..., ReconciliationEngine]:
    """Factory for reconciliation engines over a chosen gateway and store."""

    def _create_engine(
        gateway,
        repo=None,
        config: Optional[ReconciliationConfig] = None,
    ) -> ReconciliationEngine:
        return ReconciliationEngine(
            portfolio_repo=repo or portfolio_repo,
            broker_gateway=gateway,
            config=config or reconciliation_config,
            lock_registry=AccountLockRegistry(),
        )

    return _create_engine


@pytest.fixture
def position_service(portfolio_repo) -> PositionService:
    """Provide test PositionService."""
    return PositionService(
        portfolio_repo=portfolio_repo,
        lock_registry=AccountLockRegistry(),
    )


# =============================================================================
# FACTORY FIXTURES
# =============================================================================


def position_update(symbol: str = "005930", **overrides) -> PositionUpsert:
    """
    Complete insert payload for a position, with optional overrides.

    Defaults: 60 shares of Samsung Electronics at 68,500, stop 65,500,
    ATR 1,500, risk 180,000.
    """
    fields = {
        "name": "Samsung Electronics",
        "quantity": 60,
        "avg_price": Decimal("68500"),
        "stop_loss_price": Decimal("65500"),
        "atr": Decimal("1500"),
        "risk_amount": Decimal("180000"),
        "entry_signal": EntrySignal.BREAKOUT_20D,
    }
    fields.update(overrides)
    return PositionUpsert(symbol=symbol, **fields)


@pytest.fixture
def portfolio_factory(position_service) -> Callable[..., Portfolio]:
    """Factory for stored portfolios, optionally with positions."""

    def _create_portfolio(
        account_id: str = "default",
        initial_balance: Decimal = Decimal("50000000"),
        positions: tuple = (),
    ) -> Portfolio:
        portfolio = position_service.initialize_portfolio(account_id, initial_balance)
        for update in positions:
            portfolio = position_service.upsert_position(account_id, update)
        return portfolio

    return _create_portfolio


# =============================================================================
# API TEST CLIENT FIXTURES
# =============================================================================


def _make_client(test_engine, gateway):
    TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

    def override_get_db():
        session = TestSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_broker_gateway] = lambda: gateway
    app.state.broker_session = BrokerSessionHolder()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def client(test_engine, offline_gateway) -> TestClient:
    """Provide FastAPI test client with test database and an offline broker."""
    yield from _make_client(test_engine, offline_gateway)


@pytest.fixture
def live_client(test_engine, live_gateway) -> TestClient:
    """Provide FastAPI test client with test database and a live broker."""
    yield from _make_client(test_engine, live_gateway)


# =============================================================================
# HELPER FUNCTIONS (exported for use in tests)
# =============================================================================


def assert_decimal_equal(
    actual,
    expected: Decimal,
    tolerance: Decimal = Decimal("0.01"),
) -> None:
    """Assert two amounts are equal within tolerance. Accepts JSON strings."""
    diff = abs(Decimal(str(actual)) - expected)
    assert diff <= tolerance, f"Expected {expected}, got {actual} (diff={diff})"
