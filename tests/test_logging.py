from __future__ import annotations

import logging
from datetime import date
from pathlib import Path

import pytest

from fleetledger.core.log import DatedFileHandler, LoggingConfig
from fleetledger.core.log.context import ContextFilter
from fleetledger.core.logger import log_context, timeit


def _record(message: str = "hello") -> logging.LogRecord:
    return logging.LogRecord("fleetledger.test", logging.INFO, __file__, 1, message, None, None)


def test_context_scope_prefixes_records_and_resets():
    context_filter = ContextFilter()
    with log_context.scope(user_id=7, role="owner", skipped=None):
        record = _record()
        context_filter.filter(record)
        assert record.context == "user_id=7 role=owner "
    after = _record()
    context_filter.filter(after)
    assert after.context == ""
    assert log_context.as_dict() == {}


def test_timeit_reports_total(caplog):
    logger = logging.getLogger("fleetledger.test.timer")
    caplog.set_level(logging.DEBUG, logger=logger.name)
    with timeit("statement build", logger=logger, unit="transactions") as watch:
        watch.set_total(3)
    assert "statement build completed in" in caplog.text
    assert "(3 transactions)" in caplog.text


def test_timeit_logs_failure_and_reraises(caplog):
    logger = logging.getLogger("fleetledger.test.timer")
    caplog.set_level(logging.DEBUG, logger=logger.name)
    with pytest.raises(RuntimeError):
        with timeit("sync", logger=logger) as watch:
            watch.add(2)
            raise RuntimeError("boom")
    assert "sync failed after" in caplog.text
    assert "(2 rows)" in caplog.text


def test_config_reads_environment(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "warning")
    monkeypatch.setenv("LOG_DIR", "")
    cfg = LoggingConfig.from_env(app_name="init-db")
    assert cfg.numeric_level == logging.WARNING
    assert cfg.log_dir is None
    assert cfg.app_name == "init-db"

    monkeypatch.setenv("LOG_LEVEL", "chatty")
    assert LoggingConfig.from_env().numeric_level == logging.INFO

    with pytest.raises(TypeError):
        LoggingConfig.from_env(colour=True)


def test_dated_file_handler_names_file_by_app_and_day(tmp_path: Path):
    handler = DatedFileHandler(tmp_path / "logs", "fleetledger")
    try:
        handler.setFormatter(logging.Formatter("%(message)s"))
        handler.emit(_record("written"))
        handler.flush()
        expected = tmp_path / "logs" / f"fleetledger_{date.today():%Y_%m_%d}.log"
        assert expected.read_text(encoding="utf-8").strip() == "written"
    finally:
        handler.close()
