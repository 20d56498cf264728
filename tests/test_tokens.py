from __future__ import annotations

import time

import pytest

from rbac.api.errors import UnauthorizedError
from rbac.auth.tokens import TokenService
from rbac.core.config import AuthConfig


def _config(issuer: str = "rbac-test") -> AuthConfig:
    return AuthConfig(
        access_token_secret="access-secret",
        refresh_token_secret="refresh-secret",
        access_token_ttl_seconds=900,
        refresh_token_ttl_seconds=3600,
        refresh_token_remember_ttl_seconds=86400,
        issuer=issuer,
        admin_email="admin@example.com",
        admin_password="Admin@123",
        default_role="user",
    )


def test_access_token_roundtrip() -> None:
    tokens = TokenService(_config())

    token = tokens.issue_access_token(user_id="u1", email="bob@example.com", roles=["user"])
    claims = tokens.verify_access_token(token)

    assert claims.user_id == "u1"
    assert claims.email == "bob@example.com"
    assert claims.roles == ["user"]
    assert claims.jti


def test_access_token_expires() -> None:
    tokens = TokenService(_config())
    token = tokens.issue_access_token(
        user_id="u1", email="bob@example.com", roles=[], now=int(time.time()) - 901
    )

    with pytest.raises(UnauthorizedError) as exc:
        tokens.verify_access_token(token)

    assert exc.value.message == "Invalid or expired token"


def test_refresh_token_is_not_accepted_as_access_token() -> None:
    tokens = TokenService(_config())
    refresh = tokens.issue_refresh_token(user_id="u1")

    with pytest.raises(UnauthorizedError):
        tokens.verify_access_token(refresh)
    assert tokens.verify_refresh_token(refresh).user_id == "u1"


def test_access_token_is_not_accepted_as_refresh_token() -> None:
    tokens = TokenService(_config())
    access = tokens.issue_access_token(user_id="u1", email="bob@example.com", roles=[])

    with pytest.raises(UnauthorizedError):
        tokens.verify_refresh_token(access)


def test_token_from_other_issuer_is_rejected() -> None:
    foreign = TokenService(_config(issuer="someone-else"))
    token = foreign.issue_access_token(user_id="u1", email="bob@example.com", roles=[])

    with pytest.raises(UnauthorizedError):
        TokenService(_config()).verify_access_token(token)


def test_remember_me_extends_refresh_lifetime() -> None:
    tokens = TokenService(_config())
    now = int(time.time())

    short = tokens.verify_refresh_token(tokens.issue_refresh_token(user_id="u1", now=now))
    long = tokens.verify_refresh_token(
        tokens.issue_refresh_token(user_id="u1", extended=True, now=now)
    )

    assert short.exp == now + 3600
    assert long.exp == now + 86400


def test_refresh_tokens_are_unique_and_hashed() -> None:
    tokens = TokenService(_config())
    now = int(time.time())

    first = tokens.issue_refresh_token(user_id="u1", now=now)
    second = tokens.issue_refresh_token(user_id="u1", now=now)

    assert first != second
    assert tokens.hash_refresh_token(first) != tokens.hash_refresh_token(second)
    assert first not in tokens.hash_refresh_token(first)
