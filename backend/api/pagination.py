"""Page/limit parsing for list endpoints."""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def _to_positive_int(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number >= 1 else default


def page_params(page: Any, limit: Any) -> tuple[int, int, int]:
    """Return ``(page, limit, offset)``; unparseable or non-positive values fall back to defaults."""
    page_num = _to_positive_int(page, DEFAULT_PAGE)
    limit_num = min(_to_positive_int(limit, DEFAULT_LIMIT), MAX_LIMIT)
    return page_num, limit_num, (page_num - 1) * limit_num


def format_page(items: Sequence[Any], page: int, limit: int, total: int) -> dict:
    offset = (page - 1) * limit
    return {
        "posts": list(items),
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "hasMore": offset + limit < total,
            "totalPages": math.ceil(total / limit) if limit else 0,
        },
    }
