"""Typed exception hierarchy for the community API.

Raise these instead of bare HTTPException so that:
- Validation, auth and storage code is testable without a request context
- Status codes are fixed per error kind and declared in one place
- api/errors.py converts them to the ``{"error": {...}}`` response shape
"""

from __future__ import annotations


class AppError(Exception):
    """Base application error — formatted by the handlers in api/errors.py."""

    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.__class__.message
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return type(self).__name__


class ValidationError(AppError):
    """One or more request fields failed their rules."""

    status_code = 400
    message = "Validation failed"

    def __init__(self, message: str | None = None, fields: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.fields = dict(fields or {})


class AuthenticationError(AppError):
    """Token missing, malformed, invalid or expired, or bad credentials."""

    status_code = 401
    message = "Authentication failed"


class AuthorizationError(AppError):
    """Authenticated user lacks the role, or does not own the resource."""

    status_code = 403
    message = "Forbidden"


class ResourceNotFoundError(AppError):
    """Referenced entity does not exist."""

    status_code = 404
    message = "Not found"


class ConflictError(AppError):
    """Uniqueness constraint violated."""

    status_code = 409
    message = "Resource already exists"


class DatabaseError(AppError):
    """Unclassified storage failure. ``cause`` is logged, never sent to clients."""

    status_code = 500
    message = "Database operation failed"

    def __init__(self, message: str | None = None, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause
