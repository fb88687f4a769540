"""Shared fixtures: an in-memory SQLite database and authenticated principals."""
from __future__ import annotations

import os
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("LOG_DIR", "")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from fleetledger.core.security import (  # noqa: E402
    AuthenticatedUser,
    get_security_provider,
    hash_password,
)
from fleetledger.db.session import get_db_session  # noqa: E402
from fleetledger.models import Base, User, UserRole  # noqa: E402

PASSWORD = "s3cret-pass"


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def session(session_factory) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def _make_user(session: Session, username: str, role: str) -> User:
    user = User(
        username=username,
        password_hash=hash_password(PASSWORD),
        role=role,
        bank_details=f"{username.upper()} BANK 0001",
        is_active=True,
    )
    session.add(user)
    session.commit()
    return user


def _principal(user: User) -> AuthenticatedUser:
    return AuthenticatedUser(user_id=user.id, username=user.username, role=user.role)


@pytest.fixture()
def admin_user(session) -> User:
    return _make_user(session, "admin", UserRole.SUPER_ADMIN.value)


@pytest.fixture()
def owner_user(session) -> User:
    return _make_user(session, "owner", UserRole.USER.value)


@pytest.fixture()
def other_user(session) -> User:
    return _make_user(session, "other", UserRole.USER.value)


@pytest.fixture()
def admin(admin_user) -> AuthenticatedUser:
    return _principal(admin_user)


@pytest.fixture()
def actor(owner_user) -> AuthenticatedUser:
    return _principal(owner_user)


@pytest.fixture()
def other_actor(other_user) -> AuthenticatedUser:
    return _principal(other_user)


@pytest.fixture()
def app(session_factory):
    from fleetledger.main import create_app

    application = create_app()

    def _override_session() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    application.dependency_overrides[get_db_session] = _override_session
    return application


@pytest.fixture()
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture()
def auth_headers():
    def _headers(principal: AuthenticatedUser) -> dict[str, str]:
        token = get_security_provider().create_access_token(principal)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture()
def password() -> str:
    return PASSWORD
