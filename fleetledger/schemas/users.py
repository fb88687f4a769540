"""Schemas for login and user administration."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class LoginRequest(BaseModel):
    username: str
    password: str


class UserCreate(BaseModel):
    username: str
    password: str
    role: str = "user"
    address: str | None = None
    bank_details: str | None = None


class ProfileUpdate(BaseModel):
    address: str | None = None
    bank_details: str | None = None
    password: str | None = None


class UserPayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    role: str
    address: str | None = None
    bank_details: str | None = None
    is_active: bool
    created_at: datetime | None = None


class PrincipalPayload(BaseModel):
    """The identity carried by the access token."""

    model_config = ConfigDict(from_attributes=True)

    user_id: int
    username: str
    role: str


__all__ = ["LoginRequest", "PrincipalPayload", "ProfileUpdate", "UserCreate", "UserPayload"]
