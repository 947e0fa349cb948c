"""
Pagination helpers shared by every list endpoint.
"""

import math
from typing import Dict, List, Optional, Tuple, TypeVar

DEFAULT_LIMIT = 10
MAX_LIMIT = 100

T = TypeVar("T")


def validate_pagination(
    page: Optional[int],
    limit: Optional[int],
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int = MAX_LIMIT,
) -> Tuple[int, int]:
    """Clamp page to >= 1 and limit to [1, max_limit].

    Absent (or zero, from an unparseable value) inputs fall back to page 1 and
    ``default_limit``; out-of-range values are clamped, never rejected.
    """
    page = max(1, page or 1)
    limit = min(max_limit, max(1, limit or default_limit))
    return page, limit


def page_offset(page: int, limit: int) -> int:
    return (page - 1) * limit


def create_pagination_meta(page: int, limit: int, total: int) -> Dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit) if limit else 0,
    }


def slice_page(items: List[T], page: int, limit: int) -> List[T]:
    """Page through a list already filtered in memory."""
    offset = page_offset(page, limit)
    return items[offset:offset + limit]
