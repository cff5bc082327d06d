"""Token and role checks, as FastAPI dependencies.

List them in a route's ``dependencies`` with ``verify_token`` first:
``require_roles`` reads the identity that ``verify_token`` attaches to
``request.state``. Route-level dependencies resolve before any handler
parameter, so a rejected request never opens a database session.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Coroutine
from typing import Any

from fastapi import Cookie, Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.exceptions import AuthenticationError, AuthorizationError
from backend.schemas.pydantic import Identity, Role
from backend.services.passwords import PasswordHasher
from backend.services.tokens import TokenService

logger = logging.getLogger(__name__)

TOKEN_COOKIE = "token"

security = HTTPBearer(auto_error=False)


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_password_hasher(request: Request) -> PasswordHasher:
    return request.app.state.password_hasher


async def verify_token(
    request: Request,
    token_cookie: str | None = Cookie(None, alias=TOKEN_COOKIE),
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Identity:
    """Verify the session token and attach its Identity to the request.

    The ``token`` cookie takes precedence over an ``Authorization: Bearer``
    header when both are sent.
    """
    token = token_cookie
    if not token and credentials:
        token = credentials.credentials

    if not token:
        raise AuthenticationError("Missing or invalid authorization header")

    identity = get_token_service(request).verify(token)
    request.state.identity = identity
    return identity


def require_roles(*allowed: Role) -> Callable[[Request], Coroutine[Any, Any, Identity]]:
    """Dependency factory allowing only identities whose role is in ``allowed``."""
    allowed_roles = frozenset(allowed)

    async def _role_dependency(request: Request) -> Identity:
        identity = getattr(request.state, "identity", None)
        if identity is None:
            raise AuthenticationError("User not authenticated")
        if identity.role not in allowed_roles:
            logger.warning(
                "User %s with role %s denied access to %s",
                identity.username, identity.role.value, request.url.path,
            )
            raise AuthorizationError("User not authorized to access this resource")
        return identity

    return _role_dependency


async def current_identity(request: Request) -> Identity:
    """Return the Identity attached by ``verify_token``."""
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise AuthenticationError("User not authenticated")
    return identity
