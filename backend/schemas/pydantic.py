"""Pydantic v2 models for identities and response shapes."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# Shared config for all response schemas that are built from ORM objects
_ORM_CONFIG = ConfigDict(from_attributes=True)


# ── Roles & identity ───────────────────────────────────────────────────
class Role(str, Enum):
    user = "user"
    photographer = "photographer"
    videographer = "videographer"
    musician = "musician"
    artist = "artist"
    admin = "admin"


# Single source for the validator's enum rules and the route role guards.
ROLE_VALUES: tuple[str, ...] = tuple(r.value for r in Role)
ALL_ROLES: tuple[Role, ...] = tuple(Role)


class Identity(BaseModel):
    """Verified principal attached to a request after token verification."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.admin


# ── User profile ───────────────────────────────────────────────────────
class UserProfileOut(BaseModel):
    model_config = _ORM_CONFIG

    id: int
    username: str
    email: str | None
    role: Role
    created_at: datetime


class LoginResponse(BaseModel):
    id: int
    username: str
    email: str | None
    role: Role
    message: str = "Login successful"


# ── Posts ──────────────────────────────────────────────────────────────
class PostOut(BaseModel):
    id: int
    user_id: int
    username: str
    role: Role
    title: str
    description: str | None
    media_type: str
    media_url: str | None
    likes_count: int = 0
    comments_count: int = 0
    tag_count: int = 0
    created_at: datetime
    updated_at: datetime


class PostDetailOut(PostOut):
    tags: list[str] = Field(default_factory=list)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    hasMore: bool
    totalPages: int


class PostPage(BaseModel):
    posts: list[PostOut]
    pagination: Pagination
