"""Declarative request-field validation.

A schema maps field names to a :class:`FieldRule`. ``validate`` walks the
schema in declaration order and raises a single ``ValidationError`` whose
``fields`` holds one message per failing field. When several rules fail for
the same field the last one checked wins (required > pattern > min_length >
max_length > enum). Fields in the payload that the schema does not mention
are ignored.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from backend.config import Settings
from backend.exceptions import ValidationError
from backend.schemas.pydantic import ROLE_VALUES, Role


@dataclass(frozen=True)
class FieldRule:
    required: bool = False
    pattern: re.Pattern[str] | None = None
    min_length: int | None = None
    max_length: int | None = None
    enum: tuple[str, ...] | None = None
    default: Any = None
    message: str | None = None


ValidationSchema = Mapping[str, FieldRule]


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def validate(data: Mapping[str, Any], schema: ValidationSchema) -> None:
    """Raise ValidationError if any field in ``schema`` fails its rules."""
    errors: dict[str, str] = {}

    for field, rule in schema.items():
        value = data.get(field)

        if rule.required and is_empty(value):
            errors[field] = f"{field} is required"
            continue

        if is_empty(value):
            continue

        is_text = isinstance(value, str)

        if rule.pattern is not None:
            if not is_text or not rule.pattern.search(value):
                errors[field] = rule.message or f"Invalid {field} format"

        has_length_rule = rule.min_length is not None or rule.max_length is not None
        if has_length_rule and not is_text:
            errors[field] = f"{field} must be a string"
        elif rule.min_length is not None and len(value) < rule.min_length:
            errors[field] = f"{field} must be at least {rule.min_length} characters"
        elif rule.max_length is not None and len(value) > rule.max_length:
            errors[field] = f"{field} must not exceed {rule.max_length} characters"

        if rule.enum is not None and value not in rule.enum:
            errors[field] = f"{field} must be one of: {', '.join(rule.enum)}"

    if errors:
        raise ValidationError("Validation failed", errors)


def apply_defaults(data: Mapping[str, Any], schema: ValidationSchema) -> dict[str, Any]:
    """Return a copy of ``data`` with schema defaults filled in for empty fields."""
    result = dict(data)
    for field, rule in schema.items():
        if rule.default is not None and is_empty(result.get(field)):
            result[field] = rule.default
    return result


# ── Shared schemas ─────────────────────────────────────────────────────
USERNAME_RULE = FieldRule(
    pattern=re.compile(r"^[a-zA-Z0-9_]{3,30}$"),
    message="Username must be 3-30 characters long and contain only letters, numbers, and underscores",
)
EMAIL_RULE = FieldRule(
    pattern=re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$"),
    message="Invalid email format",
)

MEDIA_TYPES = ("photo", "video", "text")
VISIBILITIES = ("public", "private", "friends")
FEED_SORTS = ("newest", "popular")


def user_create_schema(settings: Settings) -> dict[str, FieldRule]:
    """Account-creation schema; the password floor depends on the environment."""
    return {
        "username": FieldRule(
            required=True,
            pattern=USERNAME_RULE.pattern,
            message=USERNAME_RULE.message,
        ),
        "password": FieldRule(required=True, min_length=settings.password_min_length),
        "email": EMAIL_RULE,
        "role": FieldRule(enum=ROLE_VALUES, default=Role.user.value),
    }


USER_UPDATE_SCHEMA: dict[str, FieldRule] = {
    "username": USERNAME_RULE,
    "email": EMAIL_RULE,
    "role": FieldRule(enum=ROLE_VALUES),
}

LOGIN_SCHEMA: dict[str, FieldRule] = {
    "username": FieldRule(required=True),
    "password": FieldRule(required=True),
}

POST_SCHEMA: dict[str, FieldRule] = {
    "title": FieldRule(required=True, max_length=255),
    "description": FieldRule(max_length=5000),
    "media_type": FieldRule(enum=MEDIA_TYPES, default="text"),
    "media_url": FieldRule(max_length=2048),
    "visibility": FieldRule(enum=VISIBILITIES, default="public"),
}

POST_UPDATE_SCHEMA: dict[str, FieldRule] = {
    "title": FieldRule(max_length=255),
    "description": FieldRule(max_length=5000),
    "media_type": FieldRule(enum=MEDIA_TYPES),
    "media_url": FieldRule(max_length=2048),
    "visibility": FieldRule(enum=VISIBILITIES),
}

FEED_QUERY_SCHEMA: dict[str, FieldRule] = {
    "filter_by": FieldRule(enum=("all", *ROLE_VALUES), default="all"),
    "media_type": FieldRule(enum=("all", *MEDIA_TYPES), default="all"),
    "sort": FieldRule(enum=FEED_SORTS, default="newest"),
}
