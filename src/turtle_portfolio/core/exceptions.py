"""Application-level exceptions."""


class AppError(Exception):
    """Base exception for application errors."""

    def __init__(self, message: str, code: str = "APP_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(AppError):
    """Raised when input validation fails."""

    def __init__(self, message: str):
        super().__init__(message, code="VALIDATION_ERROR")


class NotFoundError(AppError):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource} not found: {identifier}", code="NOT_FOUND")


class InsufficientCashError(AppError):
    """Raised when a fill would take the cash balance below zero."""

    def __init__(self, requested: str, available: str):
        super().__init__(
            f"Insufficient cash: requested {requested}, available {available}",
            code="INSUFFICIENT_CASH",
        )


class UpstreamUnavailableError(AppError):
    """Raised when the broker or the portfolio store cannot be reached."""

    def __init__(self, message: str, code: str = "UPSTREAM_UNAVAILABLE"):
        super().__init__(message, code=code)


class BrokerUnavailableError(UpstreamUnavailableError):
    """Raised when the broker API fails, times out or returns an error payload."""

    def __init__(self, message: str):
        super().__init__(message, code="BROKER_UNAVAILABLE")


class BrokerAuthenticationError(UpstreamUnavailableError):
    """Raised when the broker rejects the credentials or issues no token."""

    def __init__(self, message: str):
        super().__init__(message, code="BROKER_AUTH_FAILED")


class StoreUnavailableError(UpstreamUnavailableError):
    """Raised when the portfolio store connection is down."""

    def __init__(self, message: str):
        super().__init__(message, code="STORE_UNAVAILABLE")


class PersistenceError(AppError):
    """Raised when a portfolio write could not be committed."""

    def __init__(self, message: str, code: str = "PERSISTENCE_ERROR"):
        super().__init__(message, code=code)


class ConcurrentModificationError(PersistenceError):
    """Raised when a portfolio was saved by another writer since it was loaded."""

    def __init__(self, account_id: str, expected_version: int):
        super().__init__(
            f"Portfolio {account_id} was modified concurrently (expected version {expected_version})",
            code="CONCURRENT_MODIFICATION",
        )
