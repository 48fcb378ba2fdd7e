"""Position service: the write path for a stored portfolio."""

import logging
from dataclasses import replace
from decimal import Decimal
from typing import Optional

from turtle_portfolio.core.exceptions import (
    InsufficientCashError,
    NotFoundError,
    ValidationError,
)
from turtle_portfolio.core.locks import AccountLockRegistry, get_lock_registry
from turtle_portfolio.core.timezone import now_kst
from turtle_portfolio.domain.ledger import PositionLedger
from turtle_portfolio.domain.models import ClosedTrade, Portfolio, PositionUpsert
from turtle_portfolio.domain.views import RiskCheck
from turtle_portfolio.repositories.protocols import PortfolioRepository
from turtle_portfolio.services import performance, risk_calculator

logger = logging.getLogger(__name__)


class PositionService:
    """
    Read-modify-write operations on the stored portfolio.

    Every write holds the account's lock from load to save, so two writers on
    the same account never interleave. Nothing here talks to the broker.
    Store failures propagate: a write never reports success unless the save
    committed.
    """

    def __init__(
        self,
        portfolio_repo: PortfolioRepository,
        lock_registry: Optional[AccountLockRegistry] = None,
        default_initial_balance: Decimal = Decimal("50000000"),
    ):
        self._repo = portfolio_repo
        self._locks = lock_registry or get_lock_registry()
        self._default_initial_balance = default_initial_balance

    def get_portfolio(self, account_id: str) -> Portfolio:
        """Get the stored portfolio with fresh unrealized P&L."""
        portfolio = self._load(account_id)
        portfolio.positions = risk_calculator.refresh_positions(portfolio.positions)
        return portfolio

    def initialize_portfolio(
        self,
        account_id: str,
        initial_balance: Optional[Decimal] = None,
    ) -> Portfolio:
        """
        Create the stored portfolio for an account.

        Args:
            account_id: Account identifier
            initial_balance: Starting cash (defaults to the configured balance)

        Returns:
            The saved Portfolio
        """
        balance = self._default_initial_balance if initial_balance is None else initial_balance
        if balance < 0:
            raise ValidationError("Initial balance cannot be negative")

        with self._locks.hold(account_id):
            if self._repo.exists(account_id):
                raise ValidationError(f"Portfolio for account '{account_id}' already exists")
            portfolio = self._repo.save(Portfolio.bootstrap(account_id, balance, now_kst()))

        logger.info("Initialized portfolio %s with %s", account_id, balance)
        return portfolio

    def upsert_position(self, account_id: str, update: PositionUpsert) -> Portfolio:
        """Insert a position or overlay the provided fields onto it."""
        with self._locks.hold(account_id):
            portfolio = self._load(account_id)
            ledger = PositionLedger(portfolio.positions)
            result = ledger.upsert(update, now_kst())
            saved = self._commit(portfolio, ledger)

        if result is None:
            logger.info("Position %s in %s closed out by update", update.symbol, account_id)
        return saved

    def remove_position(self, account_id: str, symbol: str) -> bool:
        """
        Delete a position.

        Returns False, without writing, when the portfolio exists but does not
        hold the symbol.
        """
        with self._locks.hold(account_id):
            portfolio = self._load(account_id)
            ledger = PositionLedger(portfolio.positions)
            if not ledger.remove(symbol):
                return False
            self._commit(portfolio, ledger)

        logger.info("Removed position %s from %s", symbol, account_id)
        return True

    def add_fill(self, account_id: str, symbol: str, quantity: int, price: Decimal) -> Portfolio:
        """Add shares to an existing position and pay for them from cash."""
        with self._locks.hold(account_id):
            portfolio = self._load(account_id)
            ledger = PositionLedger(portfolio.positions)
            cost = price * quantity
            if cost > portfolio.current_cash:
                raise InsufficientCashError(str(cost), str(portfolio.current_cash))
            ledger.apply_fill(symbol, quantity, price)
            portfolio.current_cash -= cost
            return self._commit(portfolio, ledger)

    def close_position(
        self,
        account_id: str,
        symbol: str,
        exit_price: Decimal,
        quantity: Optional[int] = None,
    ) -> tuple[ClosedTrade, Portfolio]:
        """
        Sell all or part of a position at ``exit_price``.

        Proceeds go to cash and the realized P&L is recorded in the stats
        exactly once. Any remaining shares are marked at the exit price.
        """
        if exit_price <= 0:
            raise ValidationError("Exit price must be > 0")

        with self._locks.hold(account_id):
            portfolio = self._load(account_id)
            ledger = PositionLedger(portfolio.positions)
            position = ledger.get(symbol)
            if position is None:
                raise NotFoundError("Position", symbol)

            sold = position.quantity if quantity is None else quantity
            remaining = ledger.reduce(symbol, sold)
            if remaining is not None:
                ledger.upsert(PositionUpsert(symbol=symbol, current_price=exit_price), now_kst())

            trade = ClosedTrade(
                symbol=symbol,
                quantity=sold,
                entry_price=position.avg_price,
                exit_price=exit_price,
                realized_pl=(exit_price - position.avg_price) * sold,
                closed_at=now_kst(),
            )
            portfolio.current_cash += exit_price * sold
            portfolio.stats = performance.record_trade(portfolio.stats, trade.realized_pl)
            saved = self._commit(portfolio, ledger)

        logger.info(
            "Closed %s %s in %s at %s (realized %s)",
            sold,
            symbol,
            account_id,
            exit_price,
            trade.realized_pl,
        )
        return trade, saved

    def check_entry(self, account_id: str, risk_amount: Decimal, cost: Decimal) -> RiskCheck:
        """Evaluate a prospective entry against the account's risk settings."""
        if risk_amount < 0 or cost < 0:
            raise ValidationError("Risk amount and cost cannot be negative")
        portfolio = self._load(account_id)
        return risk_calculator.check_entry(portfolio, risk_amount, cost)

    def _load(self, account_id: str) -> Portfolio:
        portfolio = self._repo.load(account_id)
        if portfolio is None:
            raise NotFoundError("Portfolio", account_id)
        return portfolio

    def _commit(self, portfolio: Portfolio, ledger: PositionLedger) -> Portfolio:
        positions = risk_calculator.refresh_positions(ledger.to_list())
        updated = replace(
            portfolio,
            positions=positions,
            total_equity=risk_calculator.portfolio_value(portfolio.current_cash, positions),
            updated_at=now_kst(),
        )
        saved = self._repo.save(updated)
        # Derived P&L is not stored; hand back the computed values
        saved.positions = risk_calculator.refresh_positions(saved.positions)
        return saved
