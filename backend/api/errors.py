"""Terminal error formatting.

Every exception leaving a handler ends up here and becomes
``{"error": {"message", "code", "fields"?, "stack"?}}``. The raw error is
always logged; ``stack`` is only sent in development and a DatabaseError's
cause never is.
"""

from __future__ import annotations

import logging
import traceback
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from backend.exceptions import AppError, DatabaseError, ValidationError

logger = logging.getLogger(__name__)

GENERIC_MESSAGE = "Internal server error"


def _stack(exc: BaseException) -> str:
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


def format_error(exc: BaseException, debug: bool = False) -> tuple[int, dict[str, Any]]:
    """Return ``(status_code, body)`` for any exception."""
    status_code = getattr(exc, "status_code", None) or 500

    if isinstance(exc, AppError):
        message, code = exc.message, exc.code
    elif isinstance(exc, StarletteHTTPException):
        message, code = str(exc.detail), "HTTPError"
    elif isinstance(status_code, int) and status_code < 500:
        message, code = str(exc), type(exc).__name__
    else:
        # Unclassified failures are reported like storage failures, without detail.
        status_code = 500
        message, code = GENERIC_MESSAGE, DatabaseError.__name__

    error: dict[str, Any] = {"message": message, "code": code}
    fields = getattr(exc, "fields", None)
    if isinstance(exc, ValidationError) and fields:
        error["fields"] = fields
    if debug:
        error["stack"] = _stack(exc)
    return status_code, {"error": error}


def log_error(request: Request, exc: BaseException, status_code: int) -> None:
    cause = getattr(exc, "cause", None)
    if status_code >= 500:
        logger.error(
            "%s %s failed: %s: %s (cause: %r)",
            request.method, request.url.path, type(exc).__name__, exc, cause,
            exc_info=(type(exc), exc, exc.__traceback__),
        )
    else:
        logger.warning(
            "%s %s rejected with %d: %s: %s%s",
            request.method, request.url.path, status_code, type(exc).__name__, exc,
            f" fields={exc.fields}" if isinstance(exc, ValidationError) else "",
        )


def _request_validation_to_app_error(exc: RequestValidationError) -> ValidationError:
    fields: dict[str, str] = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        fields[".".join(loc) or "body"] = err.get("msg", "Invalid value")
    return ValidationError("Validation failed", fields)


def register_error_handlers(app: FastAPI, debug: bool = False) -> None:
    """Install the exception handlers that produce the uniform error body."""

    def respond(request: Request, exc: BaseException) -> JSONResponse:
        status_code, body = format_error(exc, debug)
        log_error(request, exc, status_code)
        return JSONResponse(status_code=status_code, content=body)

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return respond(request, exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return respond(request, _request_validation_to_app_error(exc))

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        logger.warning("Rate limit exceeded for %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=429,
            content={
                "error": {
                    "message": "Too many requests. Please try again later.",
                    "code": "RateLimitError",
                }
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        response = respond(request, exc)
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        return respond(request, exc)
