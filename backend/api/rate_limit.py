"""Shared per-client rate limiter for the public and write-heavy endpoints."""

from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)

CREATE_USER_LIMIT = "10 per 15 minutes"
LOGIN_LIMIT = "10 per 15 minutes"
USER_PROFILE_LIMIT = "100 per 15 minutes"
CREATE_POST_LIMIT = "20 per hour"
FEED_LIMIT = "30 per 5 minutes"
