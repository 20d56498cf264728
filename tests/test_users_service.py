from __future__ import annotations

from pathlib import Path

import pytest

from rbac.access.repository import PermissionRepository, RoleRepository
from rbac.access.service import AccessService
from rbac.api.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    ValidationFailedError,
)
from rbac.auth.models import (
    CreateUserRequest,
    DeviceInfo,
    LoginRequest,
    UpdateUserRequest,
    User,
)
from rbac.auth.repository import SessionRepository, UserFilters, UserRepository
from rbac.auth.service import AuthService
from rbac.auth.tokens import TokenService
from rbac.core.config import AuthConfig
from rbac.storage.documents import DocumentStore
from rbac.users.service import UsersService


def _config() -> AuthConfig:
    return AuthConfig(
        access_token_secret="access-secret",
        refresh_token_secret="refresh-secret",
        access_token_ttl_seconds=300,
        refresh_token_ttl_seconds=1200,
        refresh_token_remember_ttl_seconds=7200,
        issuer="rbac-test",
        admin_email="admin@example.com",
        admin_password="Admin@123",
        default_role="user",
    )


def _build_service(tmp_path: Path) -> tuple[UsersService, AuthService]:
    config = _config()
    store = DocumentStore.in_directory(tmp_path)
    users = UserRepository(store)
    sessions = SessionRepository(store)
    access = AccessService(RoleRepository(store), PermissionRepository(store), role_usage=users)
    auth = AuthService(users, sessions, TokenService(config), access, config)
    auth.bootstrap_admin_user()
    return UsersService(users, sessions, access, auth), auth


def _create(service: UsersService, email: str, roles: list[str] | None = None) -> User:
    return service.create_user(
        CreateUserRequest(
            email=email,
            password="password123",
            first_name="Test",
            last_name="User",
            roles=roles or [],
        )
    )


def test_create_user_with_named_roles(tmp_path: Path) -> None:
    service, _ = _build_service(tmp_path)

    user = _create(service, "mia@example.com", roles=["manager"])
    view = service.user_view(user)

    assert [role.name for role in view.roles] == ["manager"]
    assert "users.read" in view.permissions
    with pytest.raises(ValidationFailedError):
        _create(service, "ghost@example.com", roles=["ghost"])


def test_list_users_filters_by_role_name(tmp_path: Path) -> None:
    service, _ = _build_service(tmp_path)
    _create(service, "mia@example.com", roles=["manager"])
    _create(service, "bob@example.com")

    managers, pagination = service.list_users(UserFilters(role_id="manager"))
    everyone, total_page = service.list_users(UserFilters(limit=2))

    assert [u.email for u in managers] == ["mia@example.com"]
    assert pagination.total == 1
    assert total_page.total == 3
    assert total_page.total_pages == 2
    assert len(everyone) == 2


def test_update_user_self_service_cannot_change_roles(tmp_path: Path) -> None:
    service, _ = _build_service(tmp_path)
    user = _create(service, "bob@example.com")

    renamed = service.update_user(
        user.user_id, UpdateUserRequest(first_name="Robert"), can_manage=False
    )
    with pytest.raises(ForbiddenError):
        service.update_user(user.user_id, UpdateUserRequest(roles=["admin"]), can_manage=False)
    with pytest.raises(ForbiddenError):
        service.update_user(user.user_id, UpdateUserRequest(is_active=False), can_manage=False)

    assert renamed.first_name == "Robert"


def test_update_user_rejects_taken_email(tmp_path: Path) -> None:
    service, _ = _build_service(tmp_path)
    user = _create(service, "bob@example.com")

    with pytest.raises(ConflictError):
        service.update_user(
            user.user_id, UpdateUserRequest(email="admin@example.com"), can_manage=True
        )


def test_password_change_and_deactivation_revoke_sessions(tmp_path: Path) -> None:
    service, auth = _build_service(tmp_path)
    user = _create(service, "bob@example.com")
    credentials = LoginRequest(email="bob@example.com", password="password123")
    first = auth.login(credentials, DeviceInfo())

    service.update_user(
        user.user_id, UpdateUserRequest(password="new-password-1"), can_manage=False
    )
    with pytest.raises(UnauthorizedError):
        auth.refresh_access_token(first.refresh_token)
    second = auth.login(
        LoginRequest(email="bob@example.com", password="new-password-1"), DeviceInfo()
    )
    service.update_user(user.user_id, UpdateUserRequest(is_active=False), can_manage=True)

    with pytest.raises(UnauthorizedError):
        auth.refresh_access_token(second.refresh_token)
    assert service.get_user(user.user_id).is_active is False


def test_set_user_roles_replaces_assignment(tmp_path: Path) -> None:
    service, _ = _build_service(tmp_path)
    user = _create(service, "bob@example.com")

    updated = service.set_user_roles(user.user_id, ["manager", "user"])

    assert [r.name for r in service.user_view(updated).roles] == ["manager", "user"]


def test_delete_user_rules(tmp_path: Path) -> None:
    service, _ = _build_service(tmp_path)
    user = _create(service, "bob@example.com")

    with pytest.raises(ForbiddenError):
        service.delete_user(user.user_id, user.user_id)
    deleted = service.delete_user("someone-else", user.user_id)

    assert deleted.email == "bob@example.com"
    with pytest.raises(NotFoundError):
        service.get_user(user.user_id)
