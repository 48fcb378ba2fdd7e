"""SQLAlchemy implementation of PortfolioRepository."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from turtle_portfolio.core.exceptions import (
    ConcurrentModificationError,
    PersistenceError,
    StoreUnavailableError,
)
from turtle_portfolio.core.timezone import now_kst, to_kst
from turtle_portfolio.domain.models import (
    PerformanceStats,
    Portfolio,
    Position,
    RiskSettings,
)
from turtle_portfolio.repositories.sqlalchemy.orm_models import PortfolioORM, PositionORM

logger = logging.getLogger(__name__)


class SqlAlchemyPortfolioRepository:
    """SQLAlchemy-backed portfolio store."""

    def __init__(self, db: Session):
        self._db = db

    def load(self, account_id: str) -> Optional[Portfolio]:
        """Retrieve the portfolio for an account."""
        try:
            # Drop identity-map state so another writer's commit is visible
            self._db.expire_all()
            orm_portfolio = self._db.get(PortfolioORM, account_id)
            return self._to_domain(orm_portfolio) if orm_portfolio else None
        except OperationalError as exc:
            self._db.rollback()
            raise StoreUnavailableError(f"Portfolio store unavailable: {exc}") from exc

    def exists(self, account_id: str) -> bool:
        """Check whether a portfolio exists for the account."""
        try:
            return (
                self._db.query(PortfolioORM.account_id)
                .filter(PortfolioORM.account_id == account_id)
                .first()
                is not None
            )
        except OperationalError as exc:
            self._db.rollback()
            raise StoreUnavailableError(f"Portfolio store unavailable: {exc}") from exc

    def save(self, portfolio: Portfolio) -> Portfolio:
        """
        Insert or replace a portfolio and its positions in one transaction.

        The caller's ``version`` must match the stored row; otherwise another
        writer got there first and ``ConcurrentModificationError`` is raised.
        """
        now = now_kst()
        try:
            orm_portfolio = self._db.get(PortfolioORM, portfolio.account_id)
            if orm_portfolio is None:
                if portfolio.version != 0:
                    raise ConcurrentModificationError(portfolio.account_id, portfolio.version)
                orm_portfolio = PortfolioORM(
                    account_id=portfolio.account_id,
                    created_at=self._to_db_time(portfolio.created_at or now),
                )
                self._db.add(orm_portfolio)
            elif orm_portfolio.version != portfolio.version:
                raise ConcurrentModificationError(portfolio.account_id, portfolio.version)

            self._apply(orm_portfolio, portfolio)
            orm_portfolio.updated_at = self._to_db_time(now)
            self._db.commit()
            self._db.refresh(orm_portfolio)
        except ConcurrentModificationError:
            self._db.rollback()
            raise
        except StaleDataError as exc:
            self._db.rollback()
            raise ConcurrentModificationError(portfolio.account_id, portfolio.version) from exc
        except OperationalError as exc:
            self._db.rollback()
            raise StoreUnavailableError(f"Portfolio store unavailable: {exc}") from exc
        except SQLAlchemyError as exc:
            self._db.rollback()
            logger.error("Failed to save portfolio %s: %s", portfolio.account_id, exc)
            raise PersistenceError(f"Failed to save portfolio {portfolio.account_id}: {exc}") from exc

        return self._to_domain(orm_portfolio)

    def _apply(self, orm: PortfolioORM, portfolio: Portfolio) -> None:
        """Copy domain state onto the ORM row, reconciling child positions by symbol."""
        orm.initial_balance = portfolio.initial_balance
        orm.current_cash = portfolio.current_cash
        orm.total_equity = portfolio.total_equity

        risk = portfolio.risk_settings
        orm.max_risk_per_trade = risk.max_risk_per_trade
        orm.max_total_risk = risk.max_total_risk
        orm.min_cash_reserve = risk.min_cash_reserve

        stats = portfolio.stats
        orm.total_trades = stats.total_trades
        orm.winning_trades = stats.winning_trades
        orm.total_profit = stats.total_profit
        orm.total_loss = stats.total_loss
        orm.largest_win = stats.largest_win
        orm.largest_loss = stats.largest_loss
        orm.win_rate = stats.win_rate
        orm.profit_factor = stats.profit_factor

        existing = {p.symbol: p for p in orm.positions}
        rows = []
        for seq, position in enumerate(portfolio.positions):
            row = existing.get(position.symbol)
            if row is None:
                row = PositionORM(account_id=portfolio.account_id, symbol=position.symbol)
            row.seq = seq
            row.name = position.name
            row.quantity = position.quantity
            row.avg_price = position.avg_price
            row.current_price = position.current_price
            row.stop_loss_price = position.stop_loss_price
            row.entry_date = self._to_db_time(position.entry_date)
            row.entry_signal = position.entry_signal
            row.atr = position.atr
            row.risk_amount = position.risk_amount
            rows.append(row)
        # Rows left out of the new list are deleted (delete-orphan)
        orm.positions = rows

    @staticmethod
    def _to_db_time(value: datetime) -> datetime:
        """Store wall-clock KST without tzinfo."""
        return to_kst(value).replace(tzinfo=None)

    @staticmethod
    def _decimal(value) -> Decimal:
        return Decimal(str(value)) if value is not None else Decimal("0")

    @classmethod
    def _position_to_domain(cls, orm: PositionORM) -> Position:
        """Convert ORM position to domain model."""
        return Position(
            symbol=orm.symbol,
            name=orm.name,
            quantity=orm.quantity,
            avg_price=cls._decimal(orm.avg_price),
            current_price=cls._decimal(orm.current_price),
            stop_loss_price=cls._decimal(orm.stop_loss_price),
            entry_date=to_kst(orm.entry_date),
            entry_signal=orm.entry_signal,
            atr=cls._decimal(orm.atr),
            risk_amount=cls._decimal(orm.risk_amount),
        )

    @classmethod
    def _to_domain(cls, orm: PortfolioORM) -> Portfolio:
        """Convert ORM model to domain model."""
        return Portfolio(
            account_id=orm.account_id,
            initial_balance=cls._decimal(orm.initial_balance),
            current_cash=cls._decimal(orm.current_cash),
            total_equity=cls._decimal(orm.total_equity),
            positions=[cls._position_to_domain(p) for p in orm.positions],
            risk_settings=RiskSettings(
                max_risk_per_trade=cls._decimal(orm.max_risk_per_trade),
                max_total_risk=cls._decimal(orm.max_total_risk),
                min_cash_reserve=cls._decimal(orm.min_cash_reserve),
            ),
            stats=PerformanceStats(
                total_trades=orm.total_trades,
                winning_trades=orm.winning_trades,
                total_profit=cls._decimal(orm.total_profit),
                total_loss=cls._decimal(orm.total_loss),
                largest_win=cls._decimal(orm.largest_win),
                largest_loss=cls._decimal(orm.largest_loss),
                win_rate=cls._decimal(orm.win_rate),
                profit_factor=cls._decimal(orm.profit_factor),
            ),
            version=orm.version,
            created_at=to_kst(orm.created_at) if orm.created_at else None,
            updated_at=to_kst(orm.updated_at) if orm.updated_at else None,
        )
