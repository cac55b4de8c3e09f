import math
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Query

from school_api.core.config import settings


def _parse_int(value: Any, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int

    @classmethod
    def from_params(
        cls,
        page: Any = None,
        limit: Any = None,
        default_limit: Optional[int] = None
    ) -> "Pagination":
        """
        Parse page/limit leniently. Non-numeric values fall back to page 1 and
        the default limit; limit is clamped to 1..MAX_PAGE_SIZE.
        """
        default_limit = default_limit or settings.DEFAULT_PAGE_SIZE
        parsed_page = _parse_int(page, 1)
        parsed_limit = _parse_int(limit, default_limit)
        if parsed_page < 1:
            parsed_page = 1
        if parsed_limit < 1:
            parsed_limit = default_limit
        parsed_limit = min(parsed_limit, settings.MAX_PAGE_SIZE)
        return cls(page=parsed_page, limit=parsed_limit)

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    def meta(self, total: int) -> dict:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": total,
            "pages": math.ceil(total / self.limit) if total else 0
        }


def pagination_params(
    page: Optional[str] = Query(None, description="Page number"),
    limit: Optional[str] = Query(None, description="Items per page")
) -> Pagination:
    return Pagination.from_params(page, limit)


def wide_pagination_params(
    page: Optional[str] = Query(None, description="Page number"),
    limit: Optional[str] = Query(None, description="Items per page")
) -> Pagination:
    """Same parsing with the larger default used by notification listings"""
    return Pagination.from_params(page, limit, default_limit=20)
