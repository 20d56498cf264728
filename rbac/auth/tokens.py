"""Signed access/refresh token issuing and verification."""

from __future__ import annotations

import time
import uuid
from typing import Any

from rbac.api.errors import UnauthorizedError
from rbac.auth.models import AccessClaims, RefreshClaims
from rbac.core.config import AuthConfig
from rbac.core.security import TokenError, decode_token, sign_token, token_digest


class TokenService:
    """Issues short-lived access tokens and long-lived refresh tokens.

    The two token kinds are signed with distinct secrets, so a refresh token
    can never be presented where an access token is expected (and vice versa).
    """

    def __init__(self, config: AuthConfig) -> None:
        self._config = config

    @property
    def access_ttl_seconds(self) -> int:
        return self._config.access_token_ttl_seconds

    def refresh_ttl_seconds(self, extended: bool = False) -> int:
        if extended:
            return self._config.refresh_token_remember_ttl_seconds
        return self._config.refresh_token_ttl_seconds

    def issue_access_token(
        self, *, user_id: str, email: str, roles: list[str], now: int | None = None
    ) -> str:
        issued_at = int(time.time()) if now is None else now
        claims = {
            "iss": self._config.issuer,
            "sub": user_id,
            "email": email,
            "roles": list(roles),
            "type": "access",
            "iat": issued_at,
            "exp": issued_at + self._config.access_token_ttl_seconds,
            "jti": uuid.uuid4().hex,
        }
        return sign_token(claims, self._config.access_token_secret)

    def issue_refresh_token(
        self, *, user_id: str, extended: bool = False, now: int | None = None
    ) -> str:
        issued_at = int(time.time()) if now is None else now
        claims = {
            "iss": self._config.issuer,
            "sub": user_id,
            "type": "refresh",
            "iat": issued_at,
            "exp": issued_at + self.refresh_ttl_seconds(extended),
            "jti": uuid.uuid4().hex,
        }
        return sign_token(claims, self._config.refresh_token_secret)

    def verify_access_token(self, token: str) -> AccessClaims:
        payload = self._decode(token, self._config.access_token_secret, "access")
        return AccessClaims(
            user_id=str(payload.get("sub") or ""),
            email=str(payload.get("email") or ""),
            roles=[str(role) for role in payload.get("roles") or []],
            jti=str(payload.get("jti") or ""),
            exp=int(payload.get("exp") or 0),
        )

    def verify_refresh_token(self, token: str) -> RefreshClaims:
        payload = self._decode(token, self._config.refresh_token_secret, "refresh")
        return RefreshClaims(
            user_id=str(payload.get("sub") or ""),
            jti=str(payload.get("jti") or ""),
            exp=int(payload.get("exp") or 0),
        )

    def hash_refresh_token(self, token: str) -> str:
        """Digest stored in the session record instead of the raw token."""
        return token_digest(token, self._config.refresh_token_secret)

    def _decode(self, token: str, secret: str, expected_type: str) -> dict[str, Any]:
        try:
            payload = decode_token(token, secret)
        except TokenError as exc:
            raise UnauthorizedError("Invalid or expired token") from exc
        if str(payload.get("iss") or "") != self._config.issuer:
            raise UnauthorizedError("Invalid or expired token")
        if str(payload.get("type") or "") != expected_type:
            raise UnauthorizedError("Invalid or expired token")
        if not payload.get("sub"):
            raise UnauthorizedError("Invalid or expired token")
        return payload
