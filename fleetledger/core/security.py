"""Password hashing and JWT-backed authentication helpers."""
from __future__ import annotations

import hashlib
import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache

import jwt
from fastapi import Depends, HTTPException, Request, status
from jwt import ExpiredSignatureError, InvalidTokenError

from fleetledger.core.config import AuthSettings, get_settings
from fleetledger.models.users import UserRole

# interactive-login cost: 128 * n * r bytes = 16 MiB per hash, inside OpenSSL's
# default 32 MiB maxmem. Parameters are stored in each hash, so raising them
# later leaves existing hashes verifiable.
_SCRYPT_N = 2**14
_SCRYPT_R = 8
_SCRYPT_P = 1
_SCRYPT_DKLEN = 64


class AuthenticationError(Exception):
    """A token could not be decoded or carries unusable claims."""


@dataclass(frozen=True, slots=True)
class AuthenticatedUser:
    """The principal decoded from a signed token."""

    user_id: int
    username: str
    role: str

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN.value


def hash_password(password: str) -> str:
    """Return a salted scrypt hash encoded as ``scrypt$n$r$p$salt$digest``."""

    if not password:
        raise ValueError("password must not be empty")
    salt = secrets.token_bytes(16)
    digest = hashlib.scrypt(
        password.encode("utf-8"),
        salt=salt,
        n=_SCRYPT_N,
        r=_SCRYPT_R,
        p=_SCRYPT_P,
        dklen=_SCRYPT_DKLEN,
    )
    return f"scrypt${_SCRYPT_N}${_SCRYPT_R}${_SCRYPT_P}${salt.hex()}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    """Check ``password`` against a hash produced by :func:`hash_password`."""

    try:
        scheme, n, r, p, salt_hex, digest_hex = encoded.split("$")
    except (AttributeError, ValueError):
        return False
    if scheme != "scrypt":
        return False
    try:
        expected = bytes.fromhex(digest_hex)
        candidate = hashlib.scrypt(
            password.encode("utf-8"),
            salt=bytes.fromhex(salt_hex),
            n=int(n),
            r=int(r),
            p=int(p),
            dklen=len(expected),
        )
    except ValueError:
        return False
    return hmac.compare_digest(candidate, expected)


class SecurityProvider:
    """Issue and verify JWT access tokens."""

    def __init__(self, settings: AuthSettings) -> None:
        self._settings = settings

    @property
    def cookie_name(self) -> str:
        return self._settings.cookie_name

    @property
    def cookie_secure(self) -> bool:
        return self._settings.cookie_secure

    @property
    def token_ttl_seconds(self) -> int:
        """Lifetime used for both the token `exp` claim and the cookie max-age."""

        return int(self._settings.access_token_expire_minutes * 60)

    def create_access_token(self, user: AuthenticatedUser, *, expires_in: timedelta | None = None) -> str:
        """Sign a token carrying username, user id and role."""

        now = datetime.now(tz=timezone.utc)
        ttl = expires_in if expires_in is not None else timedelta(seconds=self.token_ttl_seconds)
        payload: dict[str, object] = {
            "sub": user.username,
            "uid": user.user_id,
            "role": user.role,
            "iat": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
        }
        return jwt.encode(payload, self._settings.secret_key, algorithm=self._settings.algorithm)

    def decode_token(self, token: str) -> AuthenticatedUser:
        """Verify signature and expiry; raise :class:`AuthenticationError` on any problem."""

        try:
            payload = jwt.decode(
                token,
                self._settings.secret_key,
                algorithms=[self._settings.algorithm],
            )
        except ExpiredSignatureError as exc:
            raise AuthenticationError("Token expired") from exc
        except InvalidTokenError as exc:
            raise AuthenticationError("Invalid token") from exc

        username = payload.get("sub")
        role = payload.get("role")
        if not isinstance(username, str) or not isinstance(role, str):
            raise AuthenticationError("Token payload missing required claims")
        if role not in {r.value for r in UserRole}:
            raise AuthenticationError("Token role claim invalid")
        try:
            user_id = int(payload.get("uid"))
        except (TypeError, ValueError) as exc:
            raise AuthenticationError("Token uid claim invalid") from exc

        return AuthenticatedUser(user_id=user_id, username=username, role=role)


@lru_cache(maxsize=1)
def get_security_provider() -> SecurityProvider:
    """Return a cached security provider instance."""

    return SecurityProvider(get_settings().auth)


def get_optional_user(request: Request) -> AuthenticatedUser | None:
    """Return the principal attached by the middleware, if any."""

    return getattr(request.state, "user", None)


def get_authenticated_user(request: Request) -> AuthenticatedUser:
    """Dependency for routes that need a logged-in principal (401 otherwise)."""

    user = get_optional_user(request)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Login required")
    return user


def require_role(*roles: str):
    """Build a dependency that admits only principals holding one of ``roles``."""

    allowed = frozenset(roles)

    def _dependency(
        user: AuthenticatedUser = Depends(get_authenticated_user),
    ) -> AuthenticatedUser:
        if user.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
        return user

    return _dependency


def require_super_admin(
    user: AuthenticatedUser = Depends(get_authenticated_user),
) -> AuthenticatedUser:
    """Dependency admitting only super admins."""

    if not user.is_super_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator access required",
        )
    return user


__all__ = [
    "AuthenticatedUser",
    "AuthenticationError",
    "SecurityProvider",
    "get_authenticated_user",
    "get_optional_user",
    "get_security_provider",
    "hash_password",
    "require_role",
    "require_super_admin",
    "verify_password",
]
