"""User administration and credential checks."""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from fleetledger.core.errors import ConflictError, NotFoundError, ValidationError
from fleetledger.core.logger import get_logger
from fleetledger.core.security import AuthenticatedUser, hash_password, verify_password
from fleetledger.db.session import unit_of_work
from fleetledger.models import User, UserRole

from .access import ensure_super_admin

LOGGER = get_logger(__name__)


def normalize_username(value: object) -> str:
    return str(value or "").strip().lower()


class UserService:
    def __init__(self, session: Session) -> None:
        self._session = session

    def _get_by_username(self, username: str) -> User | None:
        return self._session.scalars(select(User).where(User.username == username)).first()

    def authenticate(self, username: object, password: object) -> AuthenticatedUser | None:
        """Return the principal for valid credentials, ``None`` otherwise."""

        name = normalize_username(username)
        if not name or not password:
            return None
        user = self._get_by_username(name)
        if user is None or not user.is_active:
            return None
        if not verify_password(str(password), user.password_hash):
            return None
        return AuthenticatedUser(user_id=user.id, username=user.username, role=user.role)

    def get_user(self, user_id: int) -> User:
        user = self._session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def list_users(self, actor: AuthenticatedUser) -> list[User]:
        ensure_super_admin(actor)
        return list(self._session.scalars(select(User).order_by(User.username)).all())

    def create_user(self, actor: AuthenticatedUser, payload: Mapping[str, Any]) -> User:
        ensure_super_admin(actor)
        username = normalize_username(payload.get("username"))
        password = str(payload.get("password") or "")
        if not username or not password:
            raise ValidationError("Username and password are required")
        role = str(payload.get("role") or UserRole.USER.value).strip().lower()
        if role not in {r.value for r in UserRole}:
            raise ValidationError("Invalid role")

        with unit_of_work(self._session, "user creation"):
            if self._get_by_username(username) is not None:
                raise ConflictError("Username already exists")
            user = User(
                username=username,
                password_hash=hash_password(password),
                role=role,
                address=str(payload.get("address") or "").strip() or None,
                bank_details=str(payload.get("bank_details") or "").strip() or None,
                is_active=True,
            )
            self._session.add(user)
            self._session.flush()

        LOGGER.info("User created", extra={"username": username, "role": role, "by": actor.username})
        return user

    def update_profile(
        self, actor: AuthenticatedUser, user_id: int, changes: Mapping[str, Any]
    ) -> User:
        """Users may edit their own address and bank details; admins anyone's."""

        if not actor.is_super_admin and actor.user_id != user_id:
            ensure_super_admin(actor)
        user = self.get_user(user_id)
        with unit_of_work(self._session, "profile update"):
            for field in ("address", "bank_details"):
                if field in changes:
                    setattr(user, field, str(changes.get(field) or "").strip() or None)
            if changes.get("password"):
                user.password_hash = hash_password(str(changes["password"]))
        return user

    def delete_user(self, actor: AuthenticatedUser, user_id: int) -> None:
        ensure_super_admin(actor)
        if user_id == actor.user_id:
            raise ValidationError("You cannot delete your own account")
        user = self.get_user(user_id)
        if user.is_super_admin:
            remaining = self._session.scalar(
                select(func.count())
                .select_from(User)
                .where(User.role == UserRole.SUPER_ADMIN.value, User.id != user.id)
            )
            if not remaining:
                raise ValidationError("Cannot delete the last super admin")
        with unit_of_work(self._session, "user deletion"):
            self._session.delete(user)
        LOGGER.info("User deleted", extra={"user_id": user_id, "by": actor.username})


__all__ = ["UserService", "normalize_username"]
