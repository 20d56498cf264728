from __future__ import annotations

import time

import pytest

from rbac.core.security import (
    TokenError,
    decode_token,
    hash_password,
    sign_token,
    token_digest,
    verify_password,
)


def test_hash_password_verifies_and_salts() -> None:
    first = hash_password("password123", rounds=1000)
    second = hash_password("password123", rounds=1000)

    assert first != second
    assert first.startswith("pbkdf2_sha256$1000$")
    assert verify_password("password123", first)
    assert not verify_password("password124", first)


def test_verify_password_rejects_malformed_hash() -> None:
    assert not verify_password("password123", "not-a-hash")
    assert not verify_password("password123", "bcrypt$10$abc$def")


def test_sign_and_decode_token_roundtrip() -> None:
    now = int(time.time())
    token = sign_token({"sub": "u1", "exp": now + 60}, "secret")

    claims = decode_token(token, "secret")

    assert claims["sub"] == "u1"


def test_decode_token_rejects_foreign_signature() -> None:
    token = sign_token({"sub": "u1", "exp": int(time.time()) + 60}, "secret")

    with pytest.raises(TokenError):
        decode_token(token, "other-secret")


def test_decode_token_rejects_expired_token() -> None:
    token = sign_token({"sub": "u1", "exp": 1_000}, "secret")

    with pytest.raises(TokenError):
        decode_token(token, "secret", now=1_000)


def test_decode_token_rejects_tampered_payload() -> None:
    token = sign_token({"sub": "u1", "exp": int(time.time()) + 60}, "secret")
    forged = sign_token({"sub": "admin", "exp": int(time.time()) + 60}, "secret")
    header, _, signature = token.split(".")
    _, payload, _ = forged.split(".")

    with pytest.raises(TokenError):
        decode_token(f"{header}.{payload}.{signature}", "secret")


def test_decode_token_rejects_malformed_input() -> None:
    with pytest.raises(TokenError):
        decode_token("abc", "secret")


def test_token_digest_is_keyed_and_deterministic() -> None:
    assert token_digest("t", "k1") == token_digest("t", "k1")
    assert token_digest("t", "k1") != token_digest("t", "k2")
