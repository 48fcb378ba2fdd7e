"""
Unit tests for PositionService (the write path).

Tests cover:
- Portfolio initialization
- Upsert and removal on a stored portfolio
- Fills, closes and entry checks
- Missing portfolios and failed writes
- Serialized concurrent writers
"""

import threading
from decimal import Decimal

import pytest

from turtle_portfolio.core.exceptions import (
    InsufficientCashError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from turtle_portfolio.core.locks import AccountLockRegistry
from turtle_portfolio.domain.models import PositionUpsert
from turtle_portfolio.services import PositionService

from tests.conftest import WriteFailingPortfolioRepository, position_update


# =============================================================================
# INITIALIZATION TESTS
# =============================================================================


class TestInitializePortfolio:
    """Tests for creating the stored portfolio."""

    def test_initialize_with_default_balance(self, position_service: PositionService):
        portfolio = position_service.initialize_portfolio("default")

        assert portfolio.initial_balance == Decimal("50000000")
        assert portfolio.current_cash == Decimal("50000000")
        assert portfolio.total_equity == Decimal("50000000")
        assert portfolio.positions == []
        assert portfolio.version == 1

    def test_initialize_twice_raises(self, position_service: PositionService):
        position_service.initialize_portfolio("default")

        with pytest.raises(ValidationError):
            position_service.initialize_portfolio("default")

    def test_initialize_negative_balance_raises(self, position_service: PositionService):
        with pytest.raises(ValidationError):
            position_service.initialize_portfolio("default", Decimal("-1"))


# =============================================================================
# UPSERT TESTS
# =============================================================================


class TestUpsertPosition:
    """Tests for inserting and updating positions."""

    def test_new_position_reports_unrealized_pl(self, position_service, portfolio_factory):
        """
        GIVEN a stored portfolio without 005930
        WHEN I upsert 60 shares at 68,500 with current price 71,000
        THEN the position shows unrealized P&L of 150,000
        """
        portfolio_factory()

        portfolio = position_service.upsert_position(
            "default",
            position_update(current_price=Decimal("71000")),
        )

        assert len(portfolio.positions) == 1
        assert portfolio.positions[0].unrealized_pl == Decimal("150000")
        assert portfolio.total_equity == Decimal("50000000") + Decimal("71000") * 60

    def test_upsert_same_payload_twice(self, position_service, portfolio_factory, portfolio_repo):
        """
        GIVEN a stored portfolio
        WHEN the same upsert is applied twice
        THEN exactly one position is stored
        """
        portfolio_factory()
        update = position_update(current_price=Decimal("71000"))

        position_service.upsert_position("default", update)
        position_service.upsert_position("default", update)

        stored = portfolio_repo.load("default")
        assert [p.symbol for p in stored.positions] == ["005930"]
        assert stored.positions[0].quantity == 60

    def test_partial_update_is_persisted(self, position_service, portfolio_factory, portfolio_repo):
        portfolio_factory(positions=(position_update(),))

        position_service.upsert_position(
            "default",
            PositionUpsert(symbol="005930", current_price=Decimal("69000"), stop_loss_price=Decimal("66000")),
        )

        stored = portfolio_repo.load("default").positions[0]
        assert stored.current_price == Decimal("69000")
        assert stored.stop_loss_price == Decimal("66000")
        assert stored.atr == Decimal("1500")

    def test_upsert_missing_fields_does_not_write(
        self,
        position_service,
        portfolio_factory,
        portfolio_repo,
    ):
        created = portfolio_factory()

        with pytest.raises(ValidationError):
            position_service.upsert_position("default", PositionUpsert(symbol="005930", quantity=10))

        assert portfolio_repo.load("default").version == created.version

    def test_upsert_without_portfolio_raises_not_found(self, position_service):
        with pytest.raises(NotFoundError):
            position_service.upsert_position("default", position_update())


# =============================================================================
# REMOVE TESTS
# =============================================================================


class TestRemovePosition:
    """Tests for deleting positions."""

    def test_remove_held_symbol(self, position_service, portfolio_factory, portfolio_repo):
        portfolio_factory(positions=(position_update(), position_update(symbol="000660")))

        assert position_service.remove_position("default", "005930") is True

        assert [p.symbol for p in portfolio_repo.load("default").positions] == ["000660"]

    def test_remove_absent_symbol_is_noop(self, position_service, portfolio_factory, portfolio_repo):
        """
        GIVEN a stored portfolio without 999999
        WHEN I remove 999999
        THEN the call succeeds with False and nothing is written
        """
        created = portfolio_factory(positions=(position_update(),))

        assert position_service.remove_position("default", "999999") is False
        assert portfolio_repo.load("default").version == created.version

    def test_remove_without_portfolio_raises_not_found(self, position_service):
        with pytest.raises(NotFoundError):
            position_service.remove_position("default", "005930")


# =============================================================================
# FILL AND CLOSE TESTS
# =============================================================================


class TestFillsAndCloses:
    """Tests for adding to and closing positions."""

    def test_fill_debits_cash(self, position_service, portfolio_factory):
        """
        GIVEN 100 shares at 70,000 and 10,000,000 cash
        WHEN 50 shares fill at 73,000
        THEN cash drops by 3,650,000 and avg price becomes 71,000
        """
        portfolio_factory(
            initial_balance=Decimal("10000000"),
            positions=(
                position_update(
                    quantity=100,
                    avg_price=Decimal("70000"),
                    stop_loss_price=Decimal("67000"),
                    risk_amount=Decimal("300000"),
                ),
            ),
        )

        portfolio = position_service.add_fill("default", "005930", 50, Decimal("73000"))

        assert portfolio.current_cash == Decimal("6350000")
        position = portfolio.positions[0]
        assert position.quantity == 150
        assert position.avg_price == Decimal("71000")
        assert position.risk_amount == Decimal("600000")

    def test_fill_beyond_cash_raises(self, position_service, portfolio_factory, portfolio_repo):
        portfolio_factory(initial_balance=Decimal("1000000"), positions=(position_update(),))

        with pytest.raises(InsufficientCashError):
            position_service.add_fill("default", "005930", 100, Decimal("70000"))

        assert portfolio_repo.load("default").current_cash == Decimal("1000000")

    def test_full_close_records_trade(self, position_service, portfolio_factory):
        """
        GIVEN 60 shares at 68,500
        WHEN the position closes at 72,000
        THEN 210,000 is realized, proceeds go to cash and stats count one win
        """
        portfolio_factory(initial_balance=Decimal("10000000"), positions=(position_update(),))

        trade, portfolio = position_service.close_position("default", "005930", Decimal("72000"))

        assert trade.quantity == 60
        assert trade.realized_pl == Decimal("210000")
        assert trade.is_win is True
        assert portfolio.positions == []
        assert portfolio.current_cash == Decimal("10000000") + Decimal("72000") * 60
        assert portfolio.stats.total_trades == 1
        assert portfolio.stats.winning_trades == 1
        assert portfolio.stats.total_profit == Decimal("210000")

    def test_partial_close_marks_remaining_at_exit(self, position_service, portfolio_factory):
        portfolio_factory(positions=(position_update(),))

        trade, portfolio = position_service.close_position(
            "default", "005930", Decimal("65000"), quantity=20
        )

        assert trade.realized_pl == Decimal("-70000")
        position = portfolio.positions[0]
        assert position.quantity == 40
        assert position.current_price == Decimal("65000")
        assert position.risk_amount == Decimal("120000")
        assert portfolio.stats.total_loss == Decimal("-70000")
        assert portfolio.stats.profit_factor == Decimal("0")

    def test_close_unknown_symbol_raises(self, position_service, portfolio_factory):
        portfolio_factory()

        with pytest.raises(NotFoundError):
            position_service.close_position("default", "005930", Decimal("70000"))

    def test_check_entry_uses_account_settings(self, position_service, portfolio_factory):
        portfolio_factory(initial_balance=Decimal("10000000"))

        check = position_service.check_entry("default", Decimal("150000"), Decimal("4000000"))

        assert check.allowed is True
        assert check.max_risk_per_trade == Decimal("200000")


# =============================================================================
# FAILURE AND CONCURRENCY TESTS
# =============================================================================


class TestWriteFailures:
    """Tests for surfacing store failures on writes."""

    def test_failed_save_is_raised(self, portfolio_factory, portfolio_repo):
        """
        GIVEN a store that cannot write
        WHEN I upsert a position
        THEN the store error is raised rather than reporting success
        """
        portfolio_factory()
        service = PositionService(
            WriteFailingPortfolioRepository(portfolio_repo),
            lock_registry=AccountLockRegistry(),
        )

        with pytest.raises(StoreUnavailableError):
            service.upsert_position("default", position_update())

        assert portfolio_repo.load("default").positions == []


class RecordingRepository:
    """Wraps a repository and records the order of loads and saves."""

    def __init__(self, inner):
        self._inner = inner
        self._guard = threading.Lock()
        self.events: list[str] = []

    def load(self, account_id):
        with self._guard:
            self.events.append("load")
            return self._inner.load(account_id)

    def save(self, portfolio):
        with self._guard:
            self.events.append("save")
            return self._inner.save(portfolio)

    def exists(self, account_id):
        with self._guard:
            return self._inner.exists(account_id)


def test_concurrent_writers_do_not_lose_updates(portfolio_factory, portfolio_repo):
    """
    GIVEN one account and several threads each upserting a different symbol
    WHEN they run concurrently through one lock registry
    THEN every load is followed by its save and all symbols are stored
    """
    portfolio_factory()
    repo = RecordingRepository(portfolio_repo)
    service = PositionService(repo, lock_registry=AccountLockRegistry())
    symbols = ["005930", "000660", "035420", "051910", "068270"]

    threads = [
        threading.Thread(target=service.upsert_position, args=("default", position_update(symbol=s)))
        for s in symbols
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert repo.events == ["load", "save"] * len(symbols)
    assert sorted(p.symbol for p in portfolio_repo.load("default").positions) == sorted(symbols)
