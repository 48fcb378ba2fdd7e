"""Broker gateway protocol."""

from typing import Optional, Protocol

from turtle_portfolio.domain.models import BrokerSession, BrokerSnapshot


class BrokerGateway(Protocol):
    """
    Protocol for live brokerage account access.

    Implementations raise ``BrokerAuthenticationError`` when credentials are
    rejected and ``BrokerUnavailableError`` on network failures, timeouts or
    error payloads. Every network call honors ``timeout`` (seconds).
    """

    def authenticate(self, app_key: str, secret_key: str, timeout: float) -> BrokerSession:
        """Obtain a new access token."""
        ...

    def is_authenticated(self, session: Optional[BrokerSession]) -> bool:
        """Check whether a session can still be used."""
        ...

    def get_account_balance(self, session: BrokerSession, timeout: float) -> BrokerSnapshot:
        """Fetch cash, total asset and holdings for the authenticated account."""
        ...
