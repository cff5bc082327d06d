"""Signed, time-limited session tokens (HS256 JWT)."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
from pydantic import ValidationError as PydanticValidationError

from backend.exceptions import AuthenticationError
from backend.schemas.pydantic import Identity
from backend.services.error_wrappers import with_token_error_handling

DEFAULT_TTL = timedelta(hours=1)
REQUIRED_CLAIMS = ["exp", "iat", "sub"]


class TokenService:
    """Issues and verifies identity tokens with a process-wide signing secret.

    The secret is fixed for the lifetime of the instance. There is no
    revocation list; a token dies when it expires.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        ttl: timedelta = DEFAULT_TTL,
    ) -> None:
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        self._secret = secret
        self.algorithm = algorithm
        self.ttl = ttl

    def issue(self, identity: Identity, ttl: timedelta | None = None) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(identity.id),
            "id": identity.id,
            "username": identity.username,
            "role": identity.role.value,
            "iat": now,
            "exp": now + (ttl if ttl is not None else self.ttl),
        }
        return with_token_error_handling(
            lambda: jwt.encode(payload, self._secret, algorithm=self.algorithm),
            "Could not issue token",
        )

    def verify(self, token: str) -> Identity:
        """Return the Identity in ``token`` or raise AuthenticationError."""
        if not token:
            raise AuthenticationError("Invalid token")
        claims = with_token_error_handling(
            lambda: jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"require": REQUIRED_CLAIMS},
            ),
            "Invalid token",
        )
        try:
            return Identity(id=claims.get("id"), username=claims.get("username"), role=claims.get("role"))
        except PydanticValidationError as e:
            raise AuthenticationError("Invalid token payload") from e
