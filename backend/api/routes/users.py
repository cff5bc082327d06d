"""Account creation, login/logout and user profile routes."""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Request, Response
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from backend.api.auth import (
    TOKEN_COOKIE,
    current_identity,
    get_password_hasher,
    get_token_service,
    require_roles,
    verify_token,
)
from backend.api.db_helpers import apply_update, fetch_user_by_username, get_or_404
from backend.api.rate_limit import CREATE_USER_LIMIT, LOGIN_LIMIT, USER_PROFILE_LIMIT, limiter
from backend.exceptions import AuthenticationError, AuthorizationError
from backend.models.database import get_db
from backend.models.tables import User
from backend.schemas.pydantic import ALL_ROLES, Identity, LoginResponse, Role, UserProfileOut
from backend.services.error_wrappers import with_db_error_handling
from backend.services.passwords import PasswordHasher
from backend.services.tokens import TokenService
from backend.validation import (
    LOGIN_SCHEMA,
    USER_UPDATE_SCHEMA,
    apply_defaults,
    is_empty,
    user_create_schema,
    validate,
)

logger = logging.getLogger(__name__)
router = APIRouter(tags=["users"])

INVALID_CREDENTIALS = "Invalid username or password"


@router.post("/api/create", status_code=201)
@limiter.limit(CREATE_USER_LIMIT)
async def create_user_profile(
    request: Request,
    payload: dict[str, Any] | None = Body(None),
    db: AsyncSession = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
) -> dict:
    """Create a new account. Role defaults to ``user``."""
    schema = user_create_schema(request.app.state.settings)
    validate(payload or {}, schema)
    data = apply_defaults(payload or {}, schema)

    # Hash before touching the database so no connection is held meanwhile.
    hashed_password = await run_in_threadpool(hasher.hash, data["password"])

    async def _insert() -> User:
        user = User(
            username=data["username"],
            password=hashed_password,
            email=data.get("email") or None,
            role=data["role"],
        )
        db.add(user)
        await db.commit()
        return user

    user = await with_db_error_handling(_insert)
    logger.info("Created user %s (id=%s, role=%s)", user.username, user.id, user.role)
    return {"message": "User profile created successfully!", "userId": user.id}


@router.post("/login", response_model=LoginResponse)
@limiter.limit(LOGIN_LIMIT)
async def login(
    request: Request,
    response: Response,
    payload: dict[str, Any] | None = Body(None),
    db: AsyncSession = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
    tokens: TokenService = Depends(get_token_service),
):
    """Check credentials and set the session token as an HTTP-only cookie.

    Unknown usernames and wrong passwords get the same 401 message.
    """
    payload = payload or {}
    validate(payload, LOGIN_SCHEMA)
    username = str(payload["username"])
    password = str(payload["password"])

    user = await with_db_error_handling(lambda: fetch_user_by_username(db, username))
    # Detach first: rollback expires attached instances, and the hash check
    # below must not trigger a refresh.
    if user is not None:
        db.expunge(user)
    # Release the connection before the slow hash check.
    await db.rollback()

    if user is None or not await run_in_threadpool(hasher.verify, password, user.password):
        logger.warning("Failed login attempt for username %r", username)
        raise AuthenticationError(INVALID_CREDENTIALS)

    identity = Identity(id=user.id, username=user.username, role=user.role)
    token = tokens.issue(identity)
    settings = request.app.state.settings
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=settings.token_ttl_seconds,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="strict",
    )
    logger.info("User %s logged in", user.username)
    return LoginResponse(id=user.id, username=user.username, email=user.email, role=user.role)


@router.post("/api/logout", dependencies=[Depends(verify_token)])
async def logout(response: Response, request: Request) -> dict:
    """Drop the session cookie. Tokens are not revoked server-side."""
    settings = request.app.state.settings
    response.delete_cookie(
        TOKEN_COOKIE, httponly=True, secure=settings.cookie_secure, samesite="strict"
    )
    return {"message": "Successfully logged out"}


@router.get(
    "/api/userprofile",
    response_model=UserProfileOut,
    dependencies=[Depends(verify_token), Depends(require_roles(*ALL_ROLES))],
)
@limiter.limit(USER_PROFILE_LIMIT)
async def get_user_profile(
    request: Request,
    identity: Identity = Depends(current_identity),
    db: AsyncSession = Depends(get_db),
):
    """Return the authenticated user's own profile."""
    user = await with_db_error_handling(
        lambda: get_or_404(db, User, identity.id, "User profile not found")
    )
    return UserProfileOut.model_validate(user)


@router.put(
    "/userprofile/{user_id}",
    dependencies=[Depends(verify_token), Depends(require_roles(*ALL_ROLES))],
)
async def update_user_profile(
    user_id: int,
    payload: dict[str, Any] | None = Body(None),
    identity: Identity = Depends(current_identity),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Update username, email or role. Users edit themselves; admins edit anyone."""
    if user_id != identity.id and not identity.is_admin:
        raise AuthorizationError("You can only modify your own profile")

    payload = payload or {}
    validate(payload, USER_UPDATE_SCHEMA)
    changes = {
        field: payload[field]
        for field in USER_UPDATE_SCHEMA
        if not is_empty(payload.get(field))
    }
    if "role" in changes and not identity.is_admin:
        raise AuthorizationError("Only administrators can change roles")

    async def _update() -> None:
        user = await get_or_404(db, User, user_id, "User not found")
        apply_update(user, changes)
        await db.commit()

    await with_db_error_handling(_update)
    return {"message": "User profile updated successfully!"}


@router.delete(
    "/userprofile/{user_id}",
    dependencies=[Depends(verify_token), Depends(require_roles(Role.admin))],
)
async def delete_user_profile(
    user_id: int,
    identity: Identity = Depends(current_identity),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Delete an account and its posts. Admin only."""
    if user_id == identity.id:
        raise AuthorizationError("Cannot delete your own admin account")

    async def _delete() -> None:
        await get_or_404(db, User, user_id, "User not found")
        await db.execute(delete(User).where(User.id == user_id))
        await db.commit()

    await with_db_error_handling(_delete)
    logger.info("Admin %s deleted user id=%s", identity.username, user_id)
    return {"message": "User profile deleted successfully!"}
