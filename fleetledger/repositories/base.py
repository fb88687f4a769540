"""Shared helpers for the ORM repositories."""
from __future__ import annotations

import re
from typing import Any, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from fleetledger.core.pagination import Page

T = TypeVar("T")

_TRAILING_DIGITS = re.compile(r"(\d+)$")


class BaseRepository:
    """Base repository providing convenience helpers."""

    def __init__(self, session: Session) -> None:
        self._session = session

    @property
    def session(self) -> Session:
        return self._session

    def _paginate(self, statement: Select[Any], *, page: int, limit: int) -> Page[Any]:
        """Execute ``statement`` for one page and count the full result set."""

        total = self._session.scalar(
            select(func.count()).select_from(statement.order_by(None).subquery())
        )
        rows = (
            self._session.execute(statement.limit(limit).offset((page - 1) * limit))
            .scalars()
            .all()
        )
        return Page(items=list(rows), total=int(total or 0), page=page, limit=limit)

    @staticmethod
    def _search_pattern(value: str | None) -> str | None:
        if not value or not value.strip():
            return None
        return f"%{value.strip().lower()}%"

    @staticmethod
    def _next_sequence(existing: list[str | None], *, width: int = 3) -> str:
        """Return the zero-padded successor of the largest trailing number."""

        highest = 0
        for value in existing:
            if not value:
                continue
            match = _TRAILING_DIGITS.search(value)
            if match:
                highest = max(highest, int(match.group(1)))
        return str(highest + 1).zfill(width)


__all__ = ["BaseRepository"]
