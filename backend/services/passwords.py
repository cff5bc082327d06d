"""bcrypt password hashing.

Hashing is deliberately slow. Route handlers call these through
``run_in_threadpool`` and never while a storage operation is open.
"""

from __future__ import annotations

import logging

import bcrypt

logger = logging.getLogger(__name__)

DEFAULT_ROUNDS = 10

# bcrypt only reads the first 72 bytes of a secret.
MAX_SECRET_BYTES = 72


def _encode(secret: str) -> bytes:
    return secret.encode("utf-8")[:MAX_SECRET_BYTES]


class PasswordHasher:
    """One-way salted hashing with a tunable bcrypt work factor."""

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        self.rounds = rounds

    def hash(self, secret: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(_encode(secret), salt).decode("utf-8")

    def verify(self, secret: str, hashed: str) -> bool:
        """Return True when ``secret`` matches ``hashed``. Malformed hashes return False."""
        if not secret or not hashed:
            return False
        try:
            return bcrypt.checkpw(_encode(secret), hashed.encode("utf-8"))
        except (ValueError, TypeError) as e:
            logger.warning("Unusable password hash encountered: %s", e)
            return False
