"""Stub broker gateway for offline/testing use."""

from datetime import timedelta
from typing import Optional

from turtle_portfolio.core.exceptions import BrokerAuthenticationError, BrokerUnavailableError
from turtle_portfolio.core.timezone import now_kst
from turtle_portfolio.domain.models import BrokerSession, BrokerSnapshot


class StubBrokerGateway:
    """
    In-process broker with a fixed account snapshot.

    With no snapshot it behaves like an unreachable broker: authentication
    fails, so callers fall back to stored state.
    """

    def __init__(
        self,
        snapshot: Optional[BrokerSnapshot] = None,
        token_ttl: timedelta = timedelta(hours=24),
    ):
        self._snapshot = snapshot
        self._token_ttl = token_ttl
        self.auth_calls = 0
        self.balance_calls = 0

    def authenticate(self, app_key: str, secret_key: str, timeout: float) -> BrokerSession:
        self.auth_calls += 1
        if self._snapshot is None:
            raise BrokerAuthenticationError("Stub broker is offline")
        issued_at = now_kst()
        return BrokerSession(
            access_token=f"stub-token-{self.auth_calls}",
            issued_at=issued_at,
            expires_at=issued_at + self._token_ttl,
        )

    def is_authenticated(self, session: Optional[BrokerSession]) -> bool:
        return session is not None and session.is_valid(now_kst())

    def get_account_balance(self, session: BrokerSession, timeout: float) -> BrokerSnapshot:
        self.balance_calls += 1
        if self._snapshot is None:
            raise BrokerUnavailableError("Stub broker is offline")
        return self._snapshot
