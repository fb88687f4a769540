"""Per-request key/value pairs that are prefixed to log messages."""
from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from typing import Iterator

_fields: contextvars.ContextVar[tuple[tuple[str, object], ...]] = contextvars.ContextVar(
    "fleetledger_log_fields", default=()
)


def _merge(values: dict[str, object]) -> tuple[tuple[str, object], ...]:
    merged = dict(_fields.get())
    merged.update((key, value) for key, value in values.items() if value is not None)
    return tuple(merged.items())


class LogContext:
    def bind(self, **values: object) -> None:
        _fields.set(_merge(values))

    def clear(self) -> None:
        _fields.set(())

    def as_dict(self) -> dict[str, object]:
        return dict(_fields.get())

    @contextmanager
    def scope(self, **values: object) -> Iterator[None]:
        """Bind ``values`` until the block exits, e.g. for one HTTP request."""

        token = _fields.set(_merge(values))
        try:
            yield
        finally:
            _fields.reset(token)


class ContextFilter(logging.Filter):
    """Sets ``record.context`` to ``"key=value ... "`` (or ``""``) on every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "context"):
            pairs = _fields.get()
            record.context = "".join(f"{key}={value} " for key, value in pairs)
        return True


log_context = LogContext()
