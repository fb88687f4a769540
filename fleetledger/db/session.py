"""Opinionated SQLAlchemy session helpers."""
from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from functools import lru_cache
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from fleetledger.core.errors import FleetLedgerError, PersistenceError
from fleetledger.core.logger import get_logger

from .engine import create_sync_engine

LOGGER = get_logger(__name__)


def get_sessionmaker(url: str | None = None, **kwargs) -> sessionmaker:
    """Return a ``sessionmaker`` bound to a new engine."""

    engine = create_sync_engine(url, **kwargs)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@lru_cache(maxsize=1)
def get_default_sessionmaker() -> sessionmaker:
    """Return the process-wide session factory, created on first use."""

    return get_sessionmaker()


def get_db_session() -> Generator[Session, None, None]:
    """Yield a database session suitable for request-scoped usage."""

    session = get_default_sessionmaker()()
    try:
        yield session
    finally:
        session.close()


@contextmanager
def session_scope(url: str | None = None, **kwargs) -> Iterator[Session]:
    """Provide a transactional scope for imperative scripts."""

    Session = get_sessionmaker(url, **kwargs)
    session = Session()
    try:
        yield session
        session.commit()
    except Exception:  # pragma: no cover - re-raise for callers
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def unit_of_work(session: Session, label: str = "unit of work") -> Iterator[Session]:
    """Commit everything done inside the block, or roll all of it back.

    Domain errors propagate unchanged; database errors are re-raised as
    ``PersistenceError`` after the rollback.
    """

    try:
        yield session
        session.commit()
    except FleetLedgerError:
        session.rollback()
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        LOGGER.exception("%s rolled back", label)
        raise PersistenceError(f"Failed to complete {label}") from exc
    except Exception:
        session.rollback()
        raise
