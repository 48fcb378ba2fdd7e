"""Risk calculator: P&L, exposure and limit checks derived from the ledger.

Every function here is pure. Entry-time values (``risk_amount``, ``atr``)
are read but never rewritten.
"""

from dataclasses import replace
from decimal import Decimal
from typing import Iterable, Optional

from turtle_portfolio.domain.models import Portfolio, Position, RiskSettings
from turtle_portfolio.domain.views import RiskCheck, RiskMetrics

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def unrealized_pl(position: Position) -> Decimal:
    """(current price - average price) * quantity."""
    return (position.current_price - position.avg_price) * position.quantity


def refresh_positions(positions: Iterable[Position]) -> list[Position]:
    """Return copies of the positions with unrealized P&L recomputed."""
    return [replace(p, unrealized_pl=unrealized_pl(p)) for p in positions]


def current_risk_exposure(positions: Iterable[Position]) -> Decimal:
    """Sum of the entry-time risk amounts."""
    return sum((p.risk_amount for p in positions), ZERO)


def positions_value(positions: Iterable[Position]) -> Decimal:
    return sum((p.current_price * p.quantity for p in positions), ZERO)


def portfolio_value(cash: Decimal, positions: Iterable[Position]) -> Decimal:
    """Cash plus the market value of every position."""
    return cash + positions_value(positions)


def total_return(value: Decimal, initial_balance: Decimal) -> Decimal:
    """
    Percentage return over the initial balance.

    Defined as 0 when the initial balance is 0.
    """
    if initial_balance == 0:
        return ZERO
    return (value - initial_balance) / initial_balance * HUNDRED


def compute_metrics(portfolio: Portfolio) -> RiskMetrics:
    """Derive value, return, exposure and unrealized P&L for a portfolio."""
    value = portfolio_value(portfolio.current_cash, portfolio.positions)
    return RiskMetrics(
        portfolio_value=value,
        total_return=total_return(value, portfolio.initial_balance),
        current_risk_exposure=current_risk_exposure(portfolio.positions),
        total_unrealized_pl=sum((unrealized_pl(p) for p in portfolio.positions), ZERO),
    )


def resolve_limit(limit: Decimal, base: Decimal) -> Decimal:
    """Turn a fractional limit (<= 1) into an amount of ``base``; amounts pass through."""
    if limit <= 1:
        return limit * base
    return limit


def check_entry(
    portfolio: Portfolio,
    risk_amount: Decimal,
    cost: Decimal,
    risk_settings: Optional[RiskSettings] = None,
) -> RiskCheck:
    """
    Check a prospective entry against the account's risk limits.

    - max_risk_per_trade: the new position's risk amount
    - max_total_risk: existing exposure plus the new risk amount
    - min_cash_reserve: cash left after paying ``cost``
    """
    settings = risk_settings or portfolio.risk_settings
    value = portfolio_value(portfolio.current_cash, portfolio.positions)
    exposure = current_risk_exposure(portfolio.positions)

    per_trade = resolve_limit(settings.max_risk_per_trade, value)
    total_limit = resolve_limit(settings.max_total_risk, value)
    reserve = resolve_limit(settings.min_cash_reserve, value)
    cash_after = portfolio.current_cash - cost

    return RiskCheck(
        risk_amount=risk_amount,
        cost=cost,
        max_risk_per_trade=per_trade,
        remaining_total_risk=max(ZERO, total_limit - exposure),
        cash_after_entry=cash_after,
        required_cash_reserve=reserve,
        within_trade_limit=risk_amount <= per_trade,
        within_total_limit=exposure + risk_amount <= total_limit,
        keeps_cash_reserve=cash_after >= reserve,
    )
