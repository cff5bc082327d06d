"""Shared database helpers to eliminate boilerplate in route handlers."""

from __future__ import annotations

from typing import Any, Type, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.exceptions import ResourceNotFoundError
from backend.models.tables import Post, PostTag, User

T = TypeVar("T")


async def get_or_404(
    db: AsyncSession,
    model: Type[T],
    obj_id: int,
    detail: str = "Not found",
) -> T:
    """Fetch a single row by primary key, or raise ResourceNotFoundError (HTTP 404)."""
    obj = await db.get(model, obj_id)
    if obj is None:
        raise ResourceNotFoundError(detail)
    return obj


def apply_update(obj: Any, update_data: dict) -> None:
    """Set fields on an ORM object from a dict of {field: value}."""
    for field, value in update_data.items():
        setattr(obj, field, value)


async def fetch_user_by_username(db: AsyncSession, username: str) -> User | None:
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


def post_listing_query() -> Select:
    """Posts joined with their author, plus a tag count per post."""
    tag_count = (
        select(func.count(PostTag.id))
        .where(PostTag.post_id == Post.id)
        .correlate(Post)
        .scalar_subquery()
    )
    return select(
        Post.id,
        Post.user_id,
        Post.title,
        Post.description,
        Post.media_type,
        Post.media_url,
        Post.likes_count,
        Post.comments_count,
        Post.created_at,
        Post.updated_at,
        User.username,
        User.role,
        tag_count.label("tag_count"),
    ).join(User, Post.user_id == User.id)


async def fetch_post_tags(db: AsyncSession, post_id: int) -> list[str]:
    result = await db.execute(
        select(PostTag.tag).where(PostTag.post_id == post_id).order_by(PostTag.id)
    )
    return list(result.scalars().all())
