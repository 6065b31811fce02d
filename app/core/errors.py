"""Typed application errors. Services raise these; app.api.errors maps them to responses."""

from typing import Any


class AppError(Exception):
    """
    Base class for errors that carry an HTTP status and a client-safe message.

    data holds structured details a client may branch on (e.g. accountLocked),
    so callers never have to match on message text.
    """

    status_code: int = 500
    error_code: str = "server_error"

    def __init__(
        self,
        message: str,
        *,
        data: dict[str, Any] | None = None,
        status_code: int | None = None,
    ) -> None:
        self.message = message
        self.data = data or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class ValidationError(AppError):
    """Missing or malformed input (400)."""

    status_code = 400
    error_code = "validation_error"


class AuthenticationError(AppError):
    """Bad credentials, expired or invalid token, stale permissions (401)."""

    status_code = 401
    error_code = "unauthorized"


class AuthorizationError(AppError):
    """Locked or inactive account, session mismatch, missing permission (403)."""

    status_code = 403
    error_code = "forbidden"


class AccountLockedError(AuthorizationError):
    """Account is locked by the lockout policy."""

    def __init__(self, message: str) -> None:
        super().__init__(message, data={"accountLocked": True})


class NotFoundError(AppError):
    """Requested resource does not exist (404)."""

    status_code = 404
    error_code = "not_found"


class ConflictError(AppError):
    """Duplicate username, e-mail, role name, menu key... (409)."""

    status_code = 409
    error_code = "conflict"


class InternalError(AppError):
    """Downstream failure or inconsistent data (500)."""

    status_code = 500
    error_code = "server_error"


__all__ = [
    "AccountLockedError",
    "AppError",
    "AuthenticationError",
    "AuthorizationError",
    "ConflictError",
    "InternalError",
    "NotFoundError",
    "ValidationError",
]
