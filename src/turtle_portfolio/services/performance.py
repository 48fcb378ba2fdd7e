"""Performance aggregator for closed-trade statistics."""

from dataclasses import replace
from decimal import Decimal
from typing import Iterable

from turtle_portfolio.domain.models import ClosedTrade, PerformanceStats

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def win_rate(winning_trades: int, total_trades: int) -> Decimal:
    """Winning trades as a percentage of all trades (0 with no trades)."""
    if total_trades == 0:
        return ZERO
    return Decimal(winning_trades) / Decimal(total_trades) * HUNDRED


def profit_factor(total_profit: Decimal, total_loss: Decimal) -> Decimal:
    """Gross profit over gross loss (0 when there is no loss)."""
    if total_loss == 0:
        return ZERO
    return total_profit / abs(total_loss)


def record_trade(stats: PerformanceStats, realized_pl: Decimal) -> PerformanceStats:
    """
    Fold one closed trade into the counters.

    Called exactly once per closed-trade event. A breakeven trade counts
    toward ``total_trades`` only.
    """
    total_trades = stats.total_trades + 1
    winning_trades = stats.winning_trades
    total_profit = stats.total_profit
    total_loss = stats.total_loss
    largest_win = stats.largest_win
    largest_loss = stats.largest_loss

    if realized_pl > 0:
        winning_trades += 1
        total_profit += realized_pl
        largest_win = max(largest_win, realized_pl)
    elif realized_pl < 0:
        total_loss += realized_pl
        largest_loss = min(largest_loss, realized_pl)

    return replace(
        stats,
        total_trades=total_trades,
        winning_trades=winning_trades,
        total_profit=total_profit,
        total_loss=total_loss,
        largest_win=largest_win,
        largest_loss=largest_loss,
        win_rate=win_rate(winning_trades, total_trades),
        profit_factor=profit_factor(total_profit, total_loss),
    )


def summarize(trades: Iterable[ClosedTrade]) -> PerformanceStats:
    """Build statistics from a full closed-trade history."""
    stats = PerformanceStats()
    for trade in trades:
        stats = record_trade(stats, trade.realized_pl)
    return stats
