"""Post routes — create, browse, edit and delete posts."""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.auth import current_identity, verify_token
from backend.api.db_helpers import apply_update, fetch_post_tags, get_or_404, post_listing_query
from backend.api.pagination import format_page, page_params
from backend.api.rate_limit import CREATE_POST_LIMIT, FEED_LIMIT, limiter
from backend.exceptions import AuthorizationError, ResourceNotFoundError, ValidationError
from backend.models.database import get_db
from backend.models.tables import Post, PostTag, User
from backend.schemas.pydantic import Identity, PostDetailOut, PostOut, PostPage
from backend.services.error_wrappers import with_db_error_handling
from backend.validation import (
    FEED_QUERY_SCHEMA,
    POST_SCHEMA,
    POST_UPDATE_SCHEMA,
    apply_defaults,
    is_empty,
    validate,
)

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/posts",
    tags=["posts"],
    dependencies=[Depends(verify_token)],
)

MAX_TAGS = 20
MAX_TAG_LENGTH = 50


def clean_tags(raw: Any) -> list[str]:
    """Return stripped, de-duplicated tags, or raise ValidationError."""
    if raw is None:
        return []
    if not isinstance(raw, list) or not all(isinstance(t, str) for t in raw):
        raise ValidationError("Validation failed", {"tags": "tags must be a list of strings"})
    tags: list[str] = []
    for tag in raw:
        tag = tag.strip()
        if tag and tag not in tags:
            tags.append(tag)
    if len(tags) > MAX_TAGS:
        raise ValidationError("Validation failed", {"tags": f"tags must not exceed {MAX_TAGS} entries"})
    if any(len(t) > MAX_TAG_LENGTH for t in tags):
        raise ValidationError(
            "Validation failed", {"tags": f"each tag must not exceed {MAX_TAG_LENGTH} characters"}
        )
    return tags


def _row_to_post(row) -> PostOut:
    return PostOut.model_validate(dict(row._mapping))


@router.post("", status_code=201)
@limiter.limit(CREATE_POST_LIMIT)
async def create_post(
    request: Request,
    payload: dict[str, Any] | None = Body(None),
    identity: Identity = Depends(current_identity),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Create a post owned by the authenticated user."""
    payload = payload or {}
    validate(payload, POST_SCHEMA)
    tags = clean_tags(payload.get("tags"))
    data = apply_defaults(payload, POST_SCHEMA)

    async def _insert() -> Post:
        post = Post(
            user_id=identity.id,
            title=data["title"].strip(),
            description=data.get("description") or None,
            media_type=data["media_type"],
            media_url=data.get("media_url") or None,
            visibility=data["visibility"],
        )
        db.add(post)
        await db.flush()
        db.add_all(PostTag(post_id=post.id, tag=tag) for tag in tags)
        await db.commit()
        return post

    post = await with_db_error_handling(_insert)
    logger.info("User %s created post %s", identity.username, post.id)
    return {"postId": post.id, "message": "Post created successfully", "mediaUrl": post.media_url}


@router.get("/feed", response_model=PostPage)
@limiter.limit(FEED_LIMIT)
async def get_feed(
    request: Request,
    page: str | None = None,
    limit: str | None = None,
    filter_by: str | None = None,
    media_type: str | None = None,
    sort: str | None = None,
    db: AsyncSession = Depends(get_db),
):
    """Public posts from everyone, filterable by author role and media type."""
    query = {"filter_by": filter_by, "media_type": media_type, "sort": sort}
    validate(query, FEED_QUERY_SCHEMA)
    filters = apply_defaults(query, FEED_QUERY_SCHEMA)
    page_num, limit_num, offset = page_params(page, limit)

    conditions = [Post.visibility == "public"]
    if filters["filter_by"] != "all":
        conditions.append(User.role == filters["filter_by"])
    if filters["media_type"] != "all":
        conditions.append(Post.media_type == filters["media_type"])

    if filters["sort"] == "popular":
        order = (Post.likes_count.desc(), Post.created_at.desc(), Post.id.desc())
    else:
        order = (Post.created_at.desc(), Post.id.desc())

    async def _fetch() -> dict:
        rows = await db.execute(
            post_listing_query().where(*conditions).order_by(*order).limit(limit_num).offset(offset)
        )
        total = await db.scalar(
            select(func.count(Post.id)).join(User, Post.user_id == User.id).where(*conditions)
        )
        return format_page([_row_to_post(r) for r in rows], page_num, limit_num, total or 0)

    return await with_db_error_handling(_fetch)


@router.get("/user/{user_id}", response_model=PostPage)
async def get_user_posts(
    user_id: int,
    page: str | None = None,
    limit: str | None = None,
    db: AsyncSession = Depends(get_db),
):
    """Public posts by one user, newest first."""
    page_num, limit_num, offset = page_params(page, limit)
    conditions = (Post.user_id == user_id, Post.visibility == "public")

    async def _fetch() -> dict:
        rows = await db.execute(
            post_listing_query()
            .where(*conditions)
            .order_by(Post.created_at.desc(), Post.id.desc())
            .limit(limit_num)
            .offset(offset)
        )
        total = await db.scalar(select(func.count(Post.id)).where(*conditions))
        return format_page([_row_to_post(r) for r in rows], page_num, limit_num, total or 0)

    return await with_db_error_handling(_fetch)


@router.get("/{post_id}", response_model=PostDetailOut)
async def get_post(
    post_id: int,
    identity: Identity = Depends(current_identity),
    db: AsyncSession = Depends(get_db),
):
    """A single post with its tags. Non-public posts are visible to their owner only."""

    async def _fetch() -> PostDetailOut:
        result = await db.execute(
            post_listing_query().where(
                Post.id == post_id,
                or_(Post.visibility == "public", Post.user_id == identity.id),
            )
        )
        row = result.first()
        if row is None:
            raise ResourceNotFoundError("Post not found")
        tags = await fetch_post_tags(db, post_id)
        return PostDetailOut.model_validate({**row._mapping, "tags": tags})

    return await with_db_error_handling(_fetch)


@router.put("/{post_id}")
async def update_post(
    post_id: int,
    payload: dict[str, Any] | None = Body(None),
    identity: Identity = Depends(current_identity),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Edit a post's fields and, when ``tags`` is sent, replace its tags. Owner only."""
    payload = payload or {}
    validate(payload, POST_UPDATE_SCHEMA)
    replace_tags = "tags" in payload
    tags = clean_tags(payload.get("tags"))
    changes = {
        field: payload[field]
        for field in POST_UPDATE_SCHEMA
        if not is_empty(payload.get(field))
    }

    async def _update() -> None:
        post = await get_or_404(db, Post, post_id, "Post not found")
        if post.user_id != identity.id:
            raise AuthorizationError("You can only edit your own posts")
        apply_update(post, changes)
        if replace_tags:
            await db.execute(delete(PostTag).where(PostTag.post_id == post_id))
            db.add_all(PostTag(post_id=post_id, tag=tag) for tag in tags)
        await db.commit()

    await with_db_error_handling(_update)
    return {"message": "Post updated successfully"}


@router.delete("/{post_id}")
async def delete_post(
    post_id: int,
    identity: Identity = Depends(current_identity),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Delete a post. Owners delete their own posts; admins may delete any."""

    async def _delete() -> None:
        post = await get_or_404(db, Post, post_id, "Post not found")
        if post.user_id != identity.id and not identity.is_admin:
            raise AuthorizationError("You can only delete your own posts")
        await db.execute(delete(Post).where(Post.id == post_id))
        await db.commit()

    await with_db_error_handling(_delete)
    logger.info("User %s deleted post %s", identity.username, post_id)
    return {"message": "Post deleted successfully"}
