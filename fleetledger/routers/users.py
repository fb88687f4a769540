"""User administration (super admin only)."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from fleetledger.core.security import AuthenticatedUser, get_authenticated_user, require_super_admin
from fleetledger.schemas import ProfileUpdate, UserCreate, UserPayload
from fleetledger.services import UserService

from .dependencies import dump, dump_all, get_user_service

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("")
def list_users(
    user: AuthenticatedUser = Depends(require_super_admin),
    users: UserService = Depends(get_user_service),
) -> dict:
    return {"success": True, "users": dump_all(UserPayload, users.list_users(user))}


@router.post("", status_code=201)
def create_user(
    body: UserCreate,
    user: AuthenticatedUser = Depends(require_super_admin),
    users: UserService = Depends(get_user_service),
) -> dict:
    created = users.create_user(user, body.model_dump())
    return {"success": True, "user": dump(UserPayload, created)}


@router.patch("/{user_id}")
def update_profile(
    user_id: int,
    body: ProfileUpdate,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    users: UserService = Depends(get_user_service),
) -> dict:
    updated = users.update_profile(user, user_id, body.model_dump(exclude_unset=True))
    return {"success": True, "user": dump(UserPayload, updated)}


@router.delete("/{user_id}")
def delete_user(
    user_id: int,
    user: AuthenticatedUser = Depends(require_super_admin),
    users: UserService = Depends(get_user_service),
) -> dict:
    users.delete_user(user, user_id)
    return {"success": True, "message": "User deleted successfully"}


__all__ = ["router"]
