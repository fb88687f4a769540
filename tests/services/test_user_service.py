"""Tests for user administration and credential checks."""
from __future__ import annotations

import pytest

from fleetledger.core.errors import AuthorizationError, ConflictError, ValidationError
from fleetledger.services import UserService


@pytest.fixture()
def users(session) -> UserService:
    return UserService(session)


def test_authenticate_accepts_valid_credentials(users, owner_user, password) -> None:
    principal = users.authenticate(" OWNER ", password)
    assert principal is not None
    assert principal.user_id == owner_user.id
    assert principal.role == "user"


def test_authenticate_rejects_bad_password_and_inactive(users, owner_user, session, password) -> None:
    assert users.authenticate("owner", "wrong") is None
    owner_user.is_active = False
    session.commit()
    assert users.authenticate("owner", password) is None


def test_create_user_hashes_and_lowercases(users, admin) -> None:
    user = users.create_user(admin, {"username": "NewUser", "password": "pw-123"})
    assert user.username == "newuser"
    assert user.password_hash != "pw-123"
    assert users.authenticate("newuser", "pw-123") is not None


def test_create_user_requires_admin_and_unique_name(users, admin, actor, owner_user) -> None:
    with pytest.raises(AuthorizationError):
        users.create_user(actor, {"username": "x", "password": "y"})
    with pytest.raises(ConflictError):
        users.create_user(admin, {"username": "Owner", "password": "y"})
    with pytest.raises(ValidationError):
        users.create_user(admin, {"username": "", "password": "y"})


def test_delete_user(users, admin, owner_user) -> None:
    users.delete_user(admin, owner_user.id)
    assert [user.username for user in users.list_users(admin)] == ["admin"]
    with pytest.raises(ValidationError):
        users.delete_user(admin, admin.user_id)
