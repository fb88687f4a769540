"""Pagination primitives shared by the list operations."""
from __future__ import annotations

from dataclasses import dataclass
from math import ceil
from typing import Generic, TypeVar

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def parse_positive_int(value: object, *, default: int) -> int:
    """Parse a positive integer from the provided value.

    Any invalid or non-positive values will fall back to ``default``.
    """

    try:
        parsed = int(value) if value is not None else default
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def normalize_paging(page: object, limit: object) -> tuple[int, int]:
    """Return a ``(page, limit)`` pair clamped to sane bounds."""

    resolved_page = parse_positive_int(page, default=1)
    resolved_limit = min(parse_positive_int(limit, default=DEFAULT_PAGE_SIZE), MAX_PAGE_SIZE)
    return resolved_page, resolved_limit


@dataclass(frozen=True)
class Page(Generic[T]):
    """A slice of a larger result set."""

    items: list[T]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        """Return the number of pages represented by the dataset."""

        if self.total == 0:
            return 1
        return ceil(self.total / self.limit)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def as_dict(self) -> dict[str, int]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "pages": self.total_pages,
        }


__all__ = ["DEFAULT_PAGE_SIZE", "MAX_PAGE_SIZE", "Page", "normalize_paging", "parse_positive_int"]
