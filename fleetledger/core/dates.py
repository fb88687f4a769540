"""Parsing helpers for the date filters accepted by the API."""
from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Any

from .errors import ValidationError


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in every ``DateTime`` column."""

    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_date(value: Any, *, field: str = "date") -> date | None:
    """Parse an ISO date (or the date part of a datetime) into a ``date``.

    Empty values map to ``None``; malformed strings raise ``ValidationError``.
    """

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text_value = str(value).strip()
    try:
        return date.fromisoformat(text_value)
    except ValueError:
        pass
    # a full timestamp keeps the calendar date it was written with
    try:
        return datetime.fromisoformat(text_value.replace("Z", "+00:00")).date()
    except ValueError as exc:
        raise ValidationError(f"Invalid {field}: {value!r}") from exc


def parse_datetime(value: Any, *, field: str = "date") -> datetime | None:
    """Parse an ISO date or datetime into a naive UTC ``datetime``."""

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime.combine(value, time.min)
    else:
        text_value = str(value).strip().replace("Z", "+00:00")
        try:
            parsed = datetime.fromisoformat(text_value)
        except ValueError as exc:
            raise ValidationError(f"Invalid {field}: {value!r}") from exc
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def start_of_day(value: date) -> datetime:
    return datetime.combine(value, time.min)


def end_of_day(value: date) -> datetime:
    return datetime.combine(value, time.max)
