"""Security primitives: password hashing, compact JWT signing, token digests."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import os
import time
from typing import Any

PBKDF2_ALGORITHM = "pbkdf2_sha256"
PBKDF2_ROUNDS = 240_000


class TokenError(ValueError):
    """Raised when a signed token cannot be trusted."""


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def _b64url_decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode((value + padding).encode("utf-8"))


def hash_password(password: str, *, rounds: int = PBKDF2_ROUNDS) -> str:
    """Hash password using PBKDF2-HMAC-SHA256 with a random salt."""
    salt = os.urandom(16)
    derived = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
    return f"{PBKDF2_ALGORITHM}${rounds}${_b64url_encode(salt)}${_b64url_encode(derived)}"


def verify_password(password: str, stored_hash: str) -> bool:
    """Verify password against a stored PBKDF2 hash in constant time."""
    try:
        algo, rounds_raw, salt_b64, digest_b64 = stored_hash.split("$", 3)
        if algo != PBKDF2_ALGORITHM:
            return False
        rounds = int(rounds_raw)
        salt = _b64url_decode(salt_b64)
        expected = _b64url_decode(digest_b64)
    except (ValueError, TypeError):
        return False

    derived = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
    return hmac.compare_digest(derived, expected)


def sign_token(claims: dict[str, Any], secret_key: str) -> str:
    """Create a compact HS256 JWT for the given claims."""
    header = {"alg": "HS256", "typ": "JWT"}
    header_part = _b64url_encode(json.dumps(header, separators=(",", ":")).encode("utf-8"))
    payload_part = _b64url_encode(json.dumps(claims, separators=(",", ":")).encode("utf-8"))
    signing_input = f"{header_part}.{payload_part}".encode("utf-8")
    signature = hmac.new(secret_key.encode("utf-8"), signing_input, hashlib.sha256).digest()
    return f"{header_part}.{payload_part}.{_b64url_encode(signature)}"


def decode_token(token: str, secret_key: str, *, now: int | None = None) -> dict[str, Any]:
    """Verify signature and expiry of a compact JWT and return its claims.

    Raises :class:`TokenError` for malformed tokens, foreign signatures,
    unreadable payloads and tokens whose ``exp`` is in the past.
    """
    parts = (token or "").split(".")
    if len(parts) != 3:
        raise TokenError("Malformed token")
    header_part, payload_part, signature_part = parts

    signing_input = f"{header_part}.{payload_part}".encode("utf-8")
    expected_sig = hmac.new(secret_key.encode("utf-8"), signing_input, hashlib.sha256).digest()
    try:
        got_sig = _b64url_decode(signature_part)
    except ValueError as exc:
        raise TokenError("Malformed token signature") from exc
    if not hmac.compare_digest(expected_sig, got_sig):
        raise TokenError("Invalid token signature")

    try:
        claims = json.loads(_b64url_decode(payload_part).decode("utf-8"))
    except ValueError as exc:
        raise TokenError("Invalid token payload") from exc
    if not isinstance(claims, dict):
        raise TokenError("Invalid token payload")

    current = int(time.time()) if now is None else now
    exp = int(claims.get("exp") or 0)
    if not exp or exp <= current:
        raise TokenError("Token expired")
    return claims


def token_digest(token: str, secret_key: str) -> str:
    """Deterministic keyed digest used to store refresh tokens at rest."""
    return hmac.new(
        secret_key.encode("utf-8"), token.encode("utf-8"), hashlib.sha256
    ).hexdigest()
