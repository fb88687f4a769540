"""Tests for password hashing and access tokens."""
from __future__ import annotations

import hashlib
from datetime import timedelta

import jwt
import pytest

from fleetledger.core.config import AuthSettings
from fleetledger.core.security import (
    AuthenticatedUser,
    AuthenticationError,
    SecurityProvider,
    hash_password,
    verify_password,
)


@pytest.fixture()
def provider() -> SecurityProvider:
    return SecurityProvider(
        AuthSettings(secret_key="unit-test", algorithm="HS256", access_token_expire_minutes=5)
    )


def test_hash_is_salted_and_verifies() -> None:
    first = hash_password("hunter2")
    second = hash_password("hunter2")

    assert first != second
    assert first.startswith("scrypt$")
    assert verify_password("hunter2", first)
    assert not verify_password("hunter3", first)


def test_stored_hash_records_its_cost_and_verifies_at_it() -> None:
    encoded = hash_password("correct horse")
    scheme, n, r, p, salt_hex, digest_hex = encoded.split("$")

    assert (scheme, n, r, p) == ("scrypt", "16384", "8", "1")
    assert len(bytes.fromhex(salt_hex)) == 16
    assert len(bytes.fromhex(digest_hex)) == 64
    assert verify_password("correct horse", encoded)


def test_hash_with_other_stored_cost_still_verifies() -> None:
    salt = bytes(range(16))
    digest = hashlib.scrypt(b"legacy", salt=salt, n=2**10, r=8, p=1, dklen=32)
    encoded = f"scrypt${2**10}$8$1${salt.hex()}${digest.hex()}"

    assert verify_password("legacy", encoded)
    assert not verify_password("legacy!", encoded)


def test_malformed_hash_never_verifies() -> None:
    assert not verify_password("x", "plain-text")
    assert not verify_password("x", "bcrypt$1$2$3$aa$bb")


def test_token_round_trip(provider) -> None:
    user = AuthenticatedUser(user_id=7, username="owner", role="user")
    decoded = provider.decode_token(provider.create_access_token(user))
    assert decoded == user
    assert provider.token_ttl_seconds == 300


def test_expired_token_is_rejected(provider) -> None:
    user = AuthenticatedUser(user_id=7, username="owner", role="user")
    token = provider.create_access_token(user, expires_in=timedelta(seconds=-10))
    with pytest.raises(AuthenticationError, match="expired"):
        provider.decode_token(token)


def test_token_signed_with_other_key_is_rejected(provider) -> None:
    token = jwt.encode(
        {"sub": "owner", "uid": 1, "role": "super_admin", "exp": 9999999999},
        "another-key",
        algorithm="HS256",
    )
    with pytest.raises(AuthenticationError, match="Invalid token"):
        provider.decode_token(token)


def test_unknown_role_claim_is_rejected(provider) -> None:
    token = jwt.encode(
        {"sub": "owner", "uid": 1, "role": "root", "exp": 9999999999},
        "unit-test",
        algorithm="HS256",
    )
    with pytest.raises(AuthenticationError, match="role"):
        provider.decode_token(token)
