"""Authentication routes issuing and clearing the access token."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from fleetledger.core.logger import get_logger
from fleetledger.core.security import (
    AuthenticatedUser,
    SecurityProvider,
    get_authenticated_user,
    get_security_provider,
)
from fleetledger.schemas import LoginRequest, PrincipalPayload
from fleetledger.services import UserService

from .dependencies import get_user_service

LOGGER = get_logger(__name__)
router = APIRouter(prefix="/api/auth", tags=["auth"])


def get_security() -> SecurityProvider:
    return get_security_provider()


@router.post("/login")
def login(
    credentials: LoginRequest,
    users: UserService = Depends(get_user_service),
    security: SecurityProvider = Depends(get_security),
) -> JSONResponse:
    """Verify credentials and issue an access token cookie."""

    user = users.authenticate(credentials.username, credentials.password)
    if user is None:
        LOGGER.info("Invalid login attempt", extra={"username": credentials.username})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid username or password"
        )

    token = security.create_access_token(user)
    response = JSONResponse(
        {
            "success": True,
            "token": token,
            "user": PrincipalPayload.model_validate(user).model_dump(),
        }
    )
    response.set_cookie(
        security.cookie_name,
        token,
        max_age=security.token_ttl_seconds,
        httponly=True,
        samesite="lax",
        secure=security.cookie_secure,
    )
    LOGGER.info("User logged in", extra={"username": user.username, "role": user.role})
    return response


@router.post("/logout")
def logout(security: SecurityProvider = Depends(get_security)) -> JSONResponse:
    """Clear the access token cookie."""

    response = JSONResponse({"success": True})
    response.delete_cookie(security.cookie_name)
    return response


@router.get("/me")
def me(user: AuthenticatedUser = Depends(get_authenticated_user)) -> dict:
    return {"success": True, "user": PrincipalPayload.model_validate(user).model_dump()}


__all__ = ["router"]
