"""Logging setup shared by the API, the scripts and the tests.

Records are pushed through a queue to a rich console handler and, when
``LOG_DIR`` is non-empty, to a per-day file under that directory. Request
metadata bound with :data:`log_context` is prefixed to every message.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import date, datetime
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path
from queue import SimpleQueue
from threading import RLock

from rich.console import Console
from rich.logging import RichHandler
from rich.traceback import install as install_rich_traceback

from .context import ContextFilter, log_context
from .timing import timeit

__all__ = [
    "DatedFileHandler",
    "LoggingConfig",
    "get_logger",
    "init_logging",
    "log_context",
    "shutdown_logging",
    "timeit",
]

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(context)s%(message)s"
TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass
class LoggingConfig:
    app_name: str = "fleetledger"
    level: str | int = "INFO"
    log_dir: Path | None = field(default_factory=lambda: Path("logs"))
    console: bool = True
    rich_tracebacks: bool = True
    queue: bool = True

    @classmethod
    def from_env(cls, **overrides: object) -> "LoggingConfig":
        """Build a config from ``LOG_LEVEL``/``LOG_DIR``; an empty ``LOG_DIR`` disables files."""

        cfg = cls(level=os.getenv("LOG_LEVEL", "INFO"))
        raw_dir = os.getenv("LOG_DIR")
        if raw_dir is not None:
            cfg.log_dir = Path(raw_dir) if raw_dir.strip() else None
        for key, value in overrides.items():
            if not hasattr(cfg, key):
                raise TypeError(f"Unknown logging option: {key}")
            setattr(cfg, key, value)
        return cfg

    @property
    def numeric_level(self) -> int:
        if isinstance(self.level, int):
            return self.level
        resolved = getattr(logging, str(self.level).upper(), None)
        return resolved if isinstance(resolved, int) else logging.INFO


class DatedFileHandler(logging.FileHandler):
    """File handler that starts ``<app>_<YYYY_MM_DD>.log`` when the day changes."""

    def __init__(self, directory: Path, app_name: str, *, encoding: str = "utf-8") -> None:
        directory.mkdir(parents=True, exist_ok=True)
        self.directory = directory
        self.app_name = app_name
        self.day: date = datetime.now().date()
        super().__init__(self.path_for(self.day), mode="a", encoding=encoding)

    def path_for(self, day: date) -> Path:
        return self.directory / f"{self.app_name}_{day:%Y_%m_%d}.log"

    def emit(self, record: logging.LogRecord) -> None:
        day = datetime.fromtimestamp(record.created).date()
        if day != self.day:
            self.day = day
            self.close()
            self.baseFilename = os.fspath(self.path_for(day))
            self.stream = self._open()
        super().emit(record)


class _LoggingState:
    """Holds whatever ``init_logging`` installed so it can be torn down again."""

    def __init__(self) -> None:
        self.lock = RLock()
        self.config: LoggingConfig | None = None
        self.listener: QueueListener | None = None
        self.context_filter = ContextFilter()

    def sinks(self, cfg: LoggingConfig) -> list[logging.Handler]:
        level = cfg.numeric_level
        sinks: list[logging.Handler] = []
        if cfg.console:
            if cfg.rich_tracebacks:
                install_rich_traceback(show_locals=False)
            console = RichHandler(
                console=Console(stderr=True),
                rich_tracebacks=cfg.rich_tracebacks,
                show_path=False,
                markup=False,
                log_time_format=TIME_FORMAT,
            )
            console.setFormatter(logging.Formatter("%(context)s%(message)s"))
            sinks.append(console)
        if cfg.log_dir is not None:
            to_file = DatedFileHandler(Path(cfg.log_dir), cfg.app_name)
            to_file.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=TIME_FORMAT))
            sinks.append(to_file)
        for sink in sinks:
            sink.setLevel(level)
            sink.addFilter(self.context_filter)
        return sinks

    def install(self, cfg: LoggingConfig) -> None:
        root = logging.getLogger()
        root.setLevel(logging.NOTSET)
        sinks = self.sinks(cfg)
        if cfg.queue and sinks:
            entry = QueueHandler(SimpleQueue())
            entry.setLevel(cfg.numeric_level)
            # the filter must run on the producing thread to see the contextvar
            entry.addFilter(self.context_filter)
            root.addHandler(entry)
            self.listener = QueueListener(entry.queue, *sinks, respect_handler_level=True)
            self.listener.start()
        else:
            for sink in sinks:
                root.addHandler(sink)
        self.config = cfg

    def uninstall(self) -> None:
        if self.listener is not None:
            self.listener.stop()
            for sink in self.listener.handlers:
                sink.close()
            self.listener = None
        root = logging.getLogger()
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        self.config = None


_state = _LoggingState()


def init_logging(**overrides: object) -> None:
    """Configure the root logger; calling again with the same options is a no-op."""

    cfg = LoggingConfig.from_env(**overrides)
    with _state.lock:
        if _state.config == cfg:
            return
        _state.uninstall()
        _state.install(cfg)


def shutdown_logging() -> None:
    with _state.lock:
        _state.uninstall()


def get_logger(name: str | None = None) -> logging.Logger:
    with _state.lock:
        if _state.config is None:
            init_logging()
        app_name = _state.config.app_name if _state.config else "fleetledger"
    return logging.getLogger(name or app_name)
