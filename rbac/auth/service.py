"""Authentication service: registration, login, refresh rotation and logout."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Protocol

from rbac.access.models import Role
from rbac.access.service import AccessService
from rbac.api.errors import ConflictError, NotFoundError, UnauthorizedError
from rbac.auth.models import (
    DeviceInfo,
    LoginRequest,
    LoginResult,
    RefreshResult,
    RegisterRequest,
    Session,
    User,
)
from rbac.auth.tokens import TokenService
from rbac.core.config import AuthConfig
from rbac.core.security import hash_password, verify_password
from rbac.storage.documents import DuplicateKeyError

INVALID_CREDENTIALS = "Invalid credentials"


class UserRepositoryProtocol(Protocol):
    def create(self, user: User) -> User: ...

    def get_by_id(self, user_id: str) -> User | None: ...

    def get_by_email(self, email: str) -> User | None: ...

    def update_last_login(self, user_id: str, ip: str) -> None: ...


class SessionRepositoryProtocol(Protocol):
    def create(
        self,
        *,
        user_id: str,
        token_hash: str,
        device_info: DeviceInfo,
        expires_at: datetime,
        remember_me: bool = False,
    ) -> Session: ...

    def find_by_token_hash(self, token_hash: str) -> Session | None: ...

    def invalidate(self, token_hash: str) -> bool: ...

    def invalidate_all_for_user(self, user_id: str) -> bool: ...


@dataclass
class UserProfile:
    user: User
    roles: list[Role] = field(default_factory=list)
    permissions: list[str] = field(default_factory=list)


class AuthService:
    """Credential verification plus the access/refresh token lifecycle."""

    def __init__(
        self,
        users: UserRepositoryProtocol,
        sessions: SessionRepositoryProtocol,
        tokens: TokenService,
        access: AccessService,
        config: AuthConfig,
        logger: logging.Logger | None = None,
    ) -> None:
        self._users = users
        self._sessions = sessions
        self._tokens = tokens
        self._access = access
        self._config = config
        self._logger = logger or logging.getLogger(__name__)
        self._dummy_hash: str | None = None

    def bootstrap_admin_user(self) -> None:
        """Seed the permission catalog, default roles and the first admin."""
        self._access.seed_defaults()
        if self._users.get_by_email(self._config.admin_email) is not None:
            return
        admin_role = self._access.get_role_by_name("admin")
        self._users.create(
            User(
                email=self._config.admin_email,
                password_hash=hash_password(self._config.admin_password),
                first_name="System",
                last_name="Administrator",
                is_email_verified=True,
                role_ids=[admin_role.role_id] if admin_role else [],
            )
        )
        self._logger.info("admin_bootstrapped", extra={"email": self._config.admin_email})

    def register(
        self,
        data: RegisterRequest,
        *,
        roles: list[str] | None = None,
        is_active: bool = True,
    ) -> User:
        """Create a user; without explicit roles the configured base role is assigned."""
        email = str(data.email).strip().lower()
        if self._users.get_by_email(email) is not None:
            raise ConflictError("User with this email already exists")

        if roles:
            role_ids = self._access.resolve_role_refs(roles)
        else:
            default_role = self._access.get_role_by_name(self._config.default_role)
            role_ids = [default_role.role_id] if default_role else []

        user = User(
            email=email,
            password_hash=hash_password(data.password),
            first_name=data.first_name.strip(),
            last_name=data.last_name.strip(),
            is_active=is_active,
            role_ids=role_ids,
        )
        try:
            return self._users.create(user)
        except DuplicateKeyError as exc:
            raise ConflictError("User with this email already exists") from exc

    def login(self, credentials: LoginRequest, device_info: DeviceInfo) -> LoginResult:
        """Verify credentials, open a session and issue the token pair.

        Unknown email, inactive account and wrong password all fail with the
        same error so callers cannot enumerate accounts.
        """
        user = self._users.get_by_email(str(credentials.email))
        if user is None:
            verify_password(credentials.password, self._placeholder_hash())
            raise UnauthorizedError(INVALID_CREDENTIALS)
        password_ok = verify_password(credentials.password, user.password_hash)
        if not password_ok or not user.is_active:
            raise UnauthorizedError(INVALID_CREDENTIALS)

        self._users.update_last_login(user.user_id, device_info.ip)
        refresh_token = self._open_session(
            user.user_id, device_info, remember_me=credentials.remember_me
        )
        access_token = self._tokens.issue_access_token(
            user_id=user.user_id,
            email=user.email,
            roles=self._access.role_names_for(user.role_ids),
        )
        return LoginResult(
            user=user,
            access_token=access_token,
            refresh_token=refresh_token,
            remember_me=credentials.remember_me,
        )

    def refresh_access_token(
        self,
        refresh_token: str,
        *,
        rotate: bool = True,
        device_info: DeviceInfo | None = None,
    ) -> RefreshResult:
        """Exchange a refresh token for a new access token.

        With ``rotate`` the presented session is invalidated and replaced, so a
        refresh token can be used at most once.
        """
        try:
            claims = self._tokens.verify_refresh_token(refresh_token)
        except UnauthorizedError as exc:
            raise UnauthorizedError("Invalid refresh token") from exc

        token_hash = self._tokens.hash_refresh_token(refresh_token)
        session = self._sessions.find_by_token_hash(token_hash)
        if session is None or session.user_id != claims.user_id:
            raise UnauthorizedError("Session expired")

        user = self._users.get_by_id(claims.user_id)
        if user is None or not user.is_active:
            raise UnauthorizedError("User not found or inactive")

        access_token = self._tokens.issue_access_token(
            user_id=user.user_id,
            email=user.email,
            roles=self._access.role_names_for(user.role_ids),
        )
        new_refresh_token: str | None = None
        if rotate:
            # Losing this race means another refresh already redeemed the token.
            if not self._sessions.invalidate(token_hash):
                raise UnauthorizedError("Session expired")
            new_refresh_token = self._open_session(
                user.user_id,
                device_info or session.device_info,
                remember_me=session.remember_me,
            )
        return RefreshResult(
            user=user,
            access_token=access_token,
            refresh_token=new_refresh_token,
            remember_me=session.remember_me,
        )

    def logout(self, refresh_token: str | None) -> bool:
        """Invalidate the session behind a refresh token; unknown tokens are ignored."""
        if not refresh_token:
            return False
        return self._sessions.invalidate(self._tokens.hash_refresh_token(refresh_token))

    def logout_all_sessions(self, user_id: str) -> bool:
        return self._sessions.invalidate_all_for_user(user_id)

    def get_user_profile(self, user_id: str) -> UserProfile:
        user = self._users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User")
        return UserProfile(
            user=user,
            roles=self._access.roles_for(user.role_ids),
            permissions=self._access.resolve_permission_names(user.role_ids),
        )

    def _open_session(self, user_id: str, device_info: DeviceInfo, *, remember_me: bool) -> str:
        refresh_token = self._tokens.issue_refresh_token(user_id=user_id, extended=remember_me)
        expires_at = datetime.now(timezone.utc) + timedelta(
            seconds=self._tokens.refresh_ttl_seconds(remember_me)
        )
        self._sessions.create(
            user_id=user_id,
            token_hash=self._tokens.hash_refresh_token(refresh_token),
            device_info=device_info,
            expires_at=expires_at,
            remember_me=remember_me,
        )
        return refresh_token

    def _placeholder_hash(self) -> str:
        if self._dummy_hash is None:
            self._dummy_hash = hash_password("placeholder-password")
        return self._dummy_hash
