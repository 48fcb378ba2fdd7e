"""Core utilities and shared functionality."""

from turtle_portfolio.core.timezone import (
    now_kst,
    to_kst,
    parse_datetime_kst,
    KST_TZ,
)
from turtle_portfolio.core.exceptions import (
    AppError,
    ValidationError,
    NotFoundError,
    InsufficientCashError,
    UpstreamUnavailableError,
    BrokerUnavailableError,
    BrokerAuthenticationError,
    StoreUnavailableError,
    PersistenceError,
    ConcurrentModificationError,
)
from turtle_portfolio.core.locks import AccountLockRegistry, get_lock_registry

__all__ = [
    "now_kst",
    "to_kst",
    "parse_datetime_kst",
    "KST_TZ",
    "AppError",
    "ValidationError",
    "NotFoundError",
    "InsufficientCashError",
    "UpstreamUnavailableError",
    "BrokerUnavailableError",
    "BrokerAuthenticationError",
    "StoreUnavailableError",
    "PersistenceError",
    "ConcurrentModificationError",
    "AccountLockRegistry",
    "get_lock_registry",
]
