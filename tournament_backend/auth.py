"""
Account credentials and bearer tokens for tournament owners.

Passwords are stored as passlib pbkdf2_sha256 hashes. Tokens are HS256 JWTs
whose subject is the user id; they carry an issued-at time and a "typ" claim
so only access tokens minted here are accepted by the API.
"""
from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

ALGORITHM = "HS256"
TOKEN_TYPE = "access"
DEFAULT_EXPIRE_MINUTES = 60 * 24 * 7

_passwords = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def _secret_key() -> str:
    return os.environ.get("JWT_SECRET_KEY", "dev-secret-change-in-production")


def _token_lifetime() -> timedelta:
    return timedelta(minutes=int(os.environ.get("JWT_EXPIRE_MINUTES", DEFAULT_EXPIRE_MINUTES)))


# ---------- Passwords ----------


def hash_password(password: str) -> str:
    return _passwords.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    """False for an empty stored hash (no password set) as well as a mismatch."""
    return bool(hashed) and _passwords.verify(plain, hashed)


# ---------- Tokens ----------


def create_access_token(user_id: str, expires_in: timedelta | None = None) -> str:
    issued = datetime.now(timezone.utc)
    claims: dict[str, Any] = {
        "sub": user_id,
        "typ": TOKEN_TYPE,
        "iat": issued,
        "exp": issued + (expires_in if expires_in is not None else _token_lifetime()),
    }
    return jwt.encode(claims, _secret_key(), algorithm=ALGORITHM)


def decode_token(token: str) -> str | None:
    """
    User id carried by a valid access token.
    None when the signature, expiry or token type is wrong, or the subject is missing.
    """
    try:
        claims = jwt.decode(token, _secret_key(), algorithms=[ALGORITHM])
    except JWTError:
        return None
    if claims.get("typ") != TOKEN_TYPE:
        return None
    return claims.get("sub") or None
