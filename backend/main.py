"""FastAPI application entrypoint.

Run with ``uvicorn backend.main:create_app --factory``.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send

from backend.api.errors import register_error_handlers
from backend.api.rate_limit import limiter
from backend.api.routes import posts, users
from backend.config import Settings, get_settings
from backend.models.database import build_engine, build_session_factory, create_tables
from backend.services.passwords import PasswordHasher
from backend.services.tokens import TokenService

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware:
    """Add security headers to all responses (pure ASGI — compatible with CORSMiddleware)."""

    _HEADERS = [
        (b"x-content-type-options", b"nosniff"),
        (b"x-frame-options", b"DENY"),
        (b"x-xss-protection", b"1; mode=block"),
        (b"strict-transport-security", b"max-age=31536000; includeSubDomains"),
        (b"referrer-policy", b"strict-origin-when-cross-origin"),
    ]

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", [])) + self._HEADERS
                message = {**message, "headers": headers}
            await send(message)

        await self.app(scope, receive, send_with_headers)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the app and every stateful collaborator from one Settings object.

    Handlers reach the engine, hasher and token service through
    ``app.state``; nothing reads the environment after this point.

    Rate limiting is the exception: the slowapi limiter is module-level
    because the route decorators bind to it, so ``RATE_LIMIT_ENABLED`` from
    the most recently built app applies to every app in the process.
    """
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    engine = build_engine(settings.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.auto_create_tables:
            await create_tables(engine)
        logger.info("API started (environment=%s)", settings.environment)
        yield
        await engine.dispose()

    app = FastAPI(title="Creative Community API", version="0.1.0", lifespan=lifespan)

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.password_hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    app.state.token_service = TokenService(
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        ttl=settings.token_ttl,
    )

    limiter.enabled = settings.rate_limit_enabled
    app.state.limiter = limiter

    register_error_handlers(app, debug=settings.debug)

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.include_router(users.router)
    app.include_router(posts.router)

    @app.get("/")
    async def root():
        return {"name": "Creative Community API", "version": "0.1.0", "docs": "/docs"}

    @app.get("/ping")
    async def ping():
        return {"message": "pong"}

    return app
