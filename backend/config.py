"""Centralized settings — all env vars and magic numbers live here."""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

# Load .env before anything reads os.getenv
load_dotenv(Path(__file__).resolve().parent / ".env")


class Settings(BaseSettings):
    """Application settings. Values come from environment variables, then defaults."""

    # ── Runtime mode ──
    environment: Literal["production", "development", "test"] = Field(
        default="production", alias="ENVIRONMENT"
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # ── Tokens ──
    jwt_secret: str = Field(default="", alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    token_ttl_seconds: int = Field(default=3600, alias="TOKEN_TTL_SECONDS")
    cookie_secure: bool = Field(default=False, alias="COOKIE_SECURE")

    # ── Password hashing ──
    bcrypt_rounds: int = Field(default=10, ge=4, le=31, alias="BCRYPT_ROUNDS")

    # ── Database ──
    database_url: str = Field(default="", alias="DATABASE_URL")
    auto_create_tables: bool = Field(default=False, alias="AUTO_CREATE_TABLES")

    # ── Server ──
    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        alias="CORS_ORIGINS",
    )
    rate_limit_enabled: bool = Field(default=True, alias="RATE_LIMIT_ENABLED")

    # ── Validation ──
    prod_password_min_length: int = 6
    dev_password_min_length: int = 2

    model_config = {"env_file": ".env", "extra": "ignore", "populate_by_name": True}

    @model_validator(mode="after")
    def _check_required_secrets(self) -> "Settings":
        """Fail fast at startup if critical secrets are missing."""
        missing = [
            name for name, value in [
                ("JWT_SECRET", self.jwt_secret),
                ("DATABASE_URL", self.database_url),
            ]
            if not value
        ]
        if missing:
            raise ValueError(
                f"Missing required environment variables: {', '.join(missing)}"
            )
        return self

    @property
    def debug(self) -> bool:
        """Stack traces are only exposed to clients in development."""
        return self.environment == "development"

    @property
    def password_min_length(self) -> int:
        # Relaxed outside production so fixtures can use short passwords.
        if self.environment == "production":
            return self.prod_password_min_length
        return self.dev_password_min_length

    @property
    def token_ttl(self) -> timedelta:
        return timedelta(seconds=self.token_ttl_seconds)


@lru_cache
def get_settings() -> Settings:
    """Return cached singleton settings instance."""
    return Settings()
