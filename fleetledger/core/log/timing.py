"""Duration logging for statement builds and other multi-row operations."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from time import perf_counter
from typing import Iterator, Optional


class Stopwatch:
    """Counts processed items while a :func:`timeit` block runs."""

    def __init__(self, label: str, unit: str, total: Optional[int] = None) -> None:
        self.label = label
        self.unit = unit
        self.total = total
        self.count = 0
        self.started = perf_counter()

    def add(self, amount: int = 1) -> None:
        self.count += amount

    def set_total(self, total: int) -> None:
        self.total = total

    @property
    def elapsed(self) -> float:
        return perf_counter() - self.started

    def describe(self, outcome: str) -> str:
        processed = self.total if self.total is not None else self.count
        text = f"{self.label} {outcome} {self.elapsed:.3f}s"
        if processed:
            text += f" ({processed:,} {self.unit})"
        return text


@contextmanager
def timeit(
    label: str,
    *,
    logger: Optional[logging.Logger] = None,
    level: int = logging.DEBUG,
    unit: str = "rows",
    total: Optional[int] = None,
) -> Iterator[Stopwatch]:
    """Log how long the block took; failures are logged at ERROR and re-raised."""

    log = logger or logging.getLogger("fleetledger.timer")
    watch = Stopwatch(label, unit, total)
    try:
        yield watch
    except Exception:
        log.error(watch.describe("failed after"))
        raise
    log.log(level, watch.describe("completed in"))
