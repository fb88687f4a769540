"""Ownership rules shared by the tenant-scoped services."""
from __future__ import annotations

from fleetledger.core.errors import AuthorizationError, ValidationError
from fleetledger.core.security import AuthenticatedUser


def ensure_owner(actor: AuthenticatedUser, owner_id: int | None) -> None:
    """Super admins may touch anything; everyone else only their own rows."""

    if actor.is_super_admin:
        return
    if owner_id is None or int(owner_id) != actor.user_id:
        raise AuthorizationError("Unauthorized")


def ensure_super_admin(actor: AuthenticatedUser) -> None:
    if not actor.is_super_admin:
        raise AuthorizationError("Only super admin can perform this action")


def resolve_owner(actor: AuthenticatedUser, requested_user_id: object = None) -> int:
    """Return the user a new record belongs to.

    Admins may act for another user by passing ``user_id``; for other users
    the value is ignored.
    """

    if actor.is_super_admin and requested_user_id not in (None, ""):
        try:
            return int(requested_user_id)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Invalid user_id") from exc
    return actor.user_id


def owner_filter(actor: AuthenticatedUser, requested_user_id: object = None) -> int | None:
    """``user_id`` to scope a listing by, or ``None`` for an unscoped admin view."""

    if actor.is_super_admin:
        if requested_user_id in (None, ""):
            return None
        try:
            return int(requested_user_id)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Invalid user_id") from exc
    return actor.user_id


__all__ = ["ensure_owner", "ensure_super_admin", "owner_filter", "resolve_owner"]
