"""SQLAlchemy ORM model definitions."""

from decimal import Decimal

from sqlalchemy import (
    Column,
    String,
    DateTime,
    Integer,
    ForeignKey,
    Numeric,
    Enum as SqlEnum,
)
from sqlalchemy.orm import relationship

from turtle_portfolio.repositories.sqlalchemy.database import Base
from turtle_portfolio.domain.models.enums import EntrySignal


class PortfolioORM(Base):
    """SQLAlchemy model for Portfolio (one row per account)."""

    __tablename__ = "portfolios"

    account_id = Column(String(64), primary_key=True)
    initial_balance = Column(Numeric(precision=18, scale=2), nullable=False, default=Decimal("0"))
    current_cash = Column(Numeric(precision=18, scale=2), nullable=False, default=Decimal("0"))
    total_equity = Column(Numeric(precision=18, scale=2), nullable=False, default=Decimal("0"))

    # Risk settings
    max_risk_per_trade = Column(Numeric(precision=18, scale=4), nullable=False)
    max_total_risk = Column(Numeric(precision=18, scale=4), nullable=False)
    min_cash_reserve = Column(Numeric(precision=18, scale=4), nullable=False)

    # Closed-trade statistics
    total_trades = Column(Integer, nullable=False, default=0)
    winning_trades = Column(Integer, nullable=False, default=0)
    total_profit = Column(Numeric(precision=18, scale=2), nullable=False, default=Decimal("0"))
    total_loss = Column(Numeric(precision=18, scale=2), nullable=False, default=Decimal("0"))
    largest_win = Column(Numeric(precision=18, scale=2), nullable=False, default=Decimal("0"))
    largest_loss = Column(Numeric(precision=18, scale=2), nullable=False, default=Decimal("0"))
    win_rate = Column(Numeric(precision=9, scale=4), nullable=False, default=Decimal("0"))
    profit_factor = Column(Numeric(precision=12, scale=4), nullable=False, default=Decimal("0"))

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=True)

    positions = relationship(
        "PositionORM",
        back_populates="portfolio",
        cascade="all, delete-orphan",
        order_by="PositionORM.seq",
    )

    # Rejects an UPDATE whose version no longer matches the row
    __mapper_args__ = {"version_id_col": version}


class PositionORM(Base):
    """SQLAlchemy model for an open Position."""

    __tablename__ = "positions"

    account_id = Column(String(64), ForeignKey("portfolios.account_id"), primary_key=True)
    symbol = Column(String(20), primary_key=True)
    seq = Column(Integer, nullable=False, default=0)
    name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    avg_price = Column(Numeric(precision=18, scale=4), nullable=False)
    current_price = Column(Numeric(precision=18, scale=4), nullable=False)
    stop_loss_price = Column(Numeric(precision=18, scale=4), nullable=False)
    entry_date = Column(DateTime, nullable=False)
    entry_signal = Column(SqlEnum(EntrySignal), nullable=False, default=EntrySignal.BREAKOUT_20D)
    atr = Column(Numeric(precision=18, scale=4), nullable=False)
    risk_amount = Column(Numeric(precision=18, scale=4), nullable=False)

    portfolio = relationship("PortfolioORM", back_populates="positions")
