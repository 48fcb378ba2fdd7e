"""Per-account locking for read-modify-write cycles."""

import threading
from contextlib import contextmanager
from typing import Iterator


class AccountLockRegistry:
    """
    Hands out one lock per account identifier.

    Writers to the same account serialize; different accounts never contend.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def lock_for(self, account_id: str) -> threading.Lock:
        """Return the lock for an account, creating it on first use."""
        with self._guard:
            lock = self._locks.get(account_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[account_id] = lock
            return lock

    @contextmanager
    def hold(self, account_id: str) -> Iterator[None]:
        """Hold the account's lock for the duration of the block."""
        lock = self.lock_for(account_id)
        with lock:
            yield


# Shared by every PositionService in the process
_registry = AccountLockRegistry()


def get_lock_registry() -> AccountLockRegistry:
    """Return the process-wide lock registry."""
    return _registry
