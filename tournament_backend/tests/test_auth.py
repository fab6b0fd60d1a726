"""
Tests for password hashing and JWT tokens.
"""
from __future__ import annotations

from datetime import timedelta

from tournament_backend.auth import create_access_token, decode_token, hash_password, verify_password


def test_hash_and_verify():
    hashed = hash_password("secret123")
    assert hashed != "secret123"
    assert verify_password("secret123", hashed)
    assert not verify_password("wrong", hashed)


def test_verify_empty_hash():
    assert not verify_password("secret123", "")


def test_token_round_trip():
    token = create_access_token("user-42")
    assert decode_token(token) == "user-42"


def test_expired_token():
    token = create_access_token("user-42", expires_in=timedelta(seconds=-1))
    assert decode_token(token) is None


def test_garbage_token():
    assert decode_token("not-a-jwt") is None


def test_token_without_access_type_rejected():
    from jose import jwt

    from tournament_backend.auth import ALGORITHM, _secret_key

    token = jwt.encode({"sub": "user-42"}, _secret_key(), algorithm=ALGORITHM)
    assert decode_token(token) is None


def test_token_signed_with_other_key_rejected():
    from jose import jwt

    from tournament_backend.auth import ALGORITHM, TOKEN_TYPE

    token = jwt.encode({"sub": "user-42", "typ": TOKEN_TYPE}, "someone-else", algorithm=ALGORITHM)
    assert decode_token(token) is None


def test_expiry_from_environment(monkeypatch):
    monkeypatch.setenv("JWT_EXPIRE_MINUTES", "-1")
    assert decode_token(create_access_token("user-42")) is None
