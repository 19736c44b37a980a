from __future__ import annotations

from budget_sync.config import ConfigurationError


class BudgetSyncError(RuntimeError):
    """
    Base for errors that map to an HTTP status.

    `message` is what the caller sees; it must never carry secrets, digests or
    connection details.
    """

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = str(message or self.default_message)
        super().__init__(self.message)


class ValidationError(BudgetSyncError):
    status_code = 400
    default_message = "Invalid request"


class Conflict(BudgetSyncError):
    status_code = 409
    default_message = "Conflict"


class Unauthorized(BudgetSyncError):
    status_code = 401
    default_message = "Unauthorized"

    def __init__(self, message: str | None = None, *, clear_refresh_cookie: bool = False) -> None:
        super().__init__(message)
        self.clear_refresh_cookie = bool(clear_refresh_cookie)


class RateLimited(BudgetSyncError):
    status_code = 429
    default_message = "Too many requests"

    def __init__(self, retry_after: int, message: str | None = None) -> None:
        super().__init__(message)
        self.retry_after = int(retry_after)


class ServiceUnavailable(BudgetSyncError):
    status_code = 503
    default_message = "Service temporarily unavailable"


__all__ = [
    "BudgetSyncError",
    "ConfigurationError",
    "Conflict",
    "RateLimited",
    "ServiceUnavailable",
    "Unauthorized",
    "ValidationError",
]
