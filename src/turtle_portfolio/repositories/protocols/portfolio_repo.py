"""Portfolio repository protocol."""

from typing import Protocol, Optional

from turtle_portfolio.domain.models import Portfolio


class PortfolioRepository(Protocol):
    """
    Interface for the portfolio document store, keyed by account id.

    A single ``save`` is all-or-nothing. Implementations raise
    ``StoreUnavailableError`` when the backing store cannot be reached and
    ``PersistenceError`` when a write fails.
    """

    def load(self, account_id: str) -> Optional[Portfolio]:
        """Retrieve the portfolio for an account, or None if none exists."""
        ...

    def save(self, portfolio: Portfolio) -> Portfolio:
        """Insert or replace a portfolio; returns it with the new version."""
        ...

    def exists(self, account_id: str) -> bool:
        """Check whether a portfolio exists for the account."""
        ...
