"""Wrappers that reclassify storage and token failures into AppError kinds.

Storage errors are caught only where the database is called, so raw driver
messages never reach a response. Nothing here retries.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import jwt
from sqlalchemy.exc import IntegrityError

from backend.exceptions import (
    AppError,
    AuthenticationError,
    ConflictError,
    DatabaseError,
    ValidationError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# SQLSTATE classes (PostgreSQL), MySQL error numbers and SQLite messages
_UNIQUE_SQLSTATES = {"23505"}
_FOREIGN_KEY_SQLSTATES = {"23503"}
_UNIQUE_MYSQL_CODES = {1062}
_FOREIGN_KEY_MYSQL_CODES = {1216, 1452}
_UNIQUE_MARKERS = ("unique constraint", "duplicate entry", "duplicate key")
_FOREIGN_KEY_MARKERS = ("foreign key constraint",)


def classify_integrity_error(exc: IntegrityError) -> str | None:
    """Return ``"unique"``, ``"foreign_key"`` or None for an IntegrityError."""
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _UNIQUE_SQLSTATES:
        return "unique"
    if sqlstate in _FOREIGN_KEY_SQLSTATES:
        return "foreign_key"

    args = getattr(orig, "args", ())
    if args and isinstance(args[0], int):
        if args[0] in _UNIQUE_MYSQL_CODES:
            return "unique"
        if args[0] in _FOREIGN_KEY_MYSQL_CODES:
            return "foreign_key"

    text = str(orig).lower()
    if any(marker in text for marker in _UNIQUE_MARKERS):
        return "unique"
    if any(marker in text for marker in _FOREIGN_KEY_MARKERS):
        return "foreign_key"
    return None


async def with_db_error_handling(operation: Callable[[], Awaitable[T]]) -> T:
    """Run a storage operation, mapping failures onto the error taxonomy.

    AppErrors raised inside ``operation`` (e.g. a 404 after a lookup) pass
    through untouched.
    """
    try:
        return await operation()
    except AppError:
        raise
    except IntegrityError as e:
        kind = classify_integrity_error(e)
        if kind == "unique":
            raise ConflictError("Resource already exists") from e
        if kind == "foreign_key":
            raise ValidationError("Invalid reference to related resource") from e
        raise DatabaseError("Database operation failed", cause=e) from e
    except Exception as e:
        raise DatabaseError("Database operation failed", cause=e) from e


def with_token_error_handling(
    operation: Callable[[], T],
    fallback_message: str = "Token operation failed",
) -> T:
    """Run a PyJWT operation; every failure becomes an AuthenticationError."""
    try:
        return operation()
    except AuthenticationError:
        raise
    except jwt.ExpiredSignatureError as e:
        raise AuthenticationError("Token expired") from e
    except (jwt.InvalidSignatureError, jwt.DecodeError) as e:
        raise AuthenticationError("Invalid token") from e
    except Exception as e:
        logger.warning("Token operation failed: %s", e)
        raise AuthenticationError(fallback_message) from e
