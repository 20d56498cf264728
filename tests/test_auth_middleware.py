from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import pytest
from starlette.requests import Request
from starlette.responses import Response

from rbac.access.models import CreateRoleRequest
from rbac.access.repository import PermissionRepository, RoleRepository
from rbac.access.service import AccessService
from rbac.api.errors import ForbiddenError, UnauthorizedError
from rbac.auth.middleware import (
    AuthContext,
    AuthDependencies,
    RequestAuthenticator,
    create_auth_middleware,
    extract_access_token,
)
from rbac.auth.models import User
from rbac.auth.repository import UserRepository
from rbac.auth.tokens import TokenService
from rbac.core.config import AuthConfig
from rbac.storage.documents import DocumentStore


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


def _request(
    path: str, method: str = "GET", headers: list[tuple[bytes, bytes]] | None = None
) -> Request:
    scope: dict[str, Any] = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "raw_path": path.encode("utf-8"),
        "query_string": b"",
        "root_path": "",
        "headers": headers or [],
        "client": ("127.0.0.1", 1234),
        "server": ("testserver", 80),
        "state": {},
    }

    async def receive() -> dict[str, Any]:
        return {"type": "http.request", "body": b"", "more_body": False}

    return Request(scope, receive)


def _bearer(token: str) -> list[tuple[bytes, bytes]]:
    return [(b"authorization", f"Bearer {token}".encode("utf-8"))]


def _build(
    tmp_path: Path,
) -> tuple[RequestAuthenticator, TokenService, UserRepository, AccessService]:
    store = DocumentStore.in_directory(tmp_path)
    users = UserRepository(store)
    access = AccessService(RoleRepository(store), PermissionRepository(store), role_usage=users)
    access.seed_defaults()
    tokens = TokenService(_config())
    return RequestAuthenticator(tokens, users, access), tokens, users, access


def _user_with_role(users: UserRepository, access: AccessService, role_name: str) -> User:
    role = access.get_role_by_name(role_name)
    assert role is not None
    return users.create(
        User(
            email=f"{role_name}@example.com",
            password_hash="hash",
            first_name=role_name.title(),
            last_name="Tester",
            role_ids=[role.role_id],
        )
    )


def _context(user: User, roles: list[str]) -> AuthContext:
    return AuthContext(user_id=user.user_id, email=user.email, roles=roles)


def test_extract_access_token_prefers_cookie() -> None:
    request = _request(
        "/api/auth/me",
        headers=[(b"cookie", b"accessToken=from-cookie"), *_bearer("from-header")],
    )

    assert extract_access_token(request) == "from-cookie"
    assert extract_access_token(_request("/api/auth/me", headers=_bearer("abc"))) == "abc"
    assert (
        extract_access_token(_request("/api/auth/me", headers=[(b"authorization", b"Basic x")]))
        == ""
    )


def test_authenticate_request_builds_context(tmp_path: Path) -> None:
    authenticator, tokens, users, access = _build(tmp_path)
    user = _user_with_role(users, access, "manager")
    token = tokens.issue_access_token(user_id=user.user_id, email=user.email, roles=["manager"])
    request = _request(
        "/api/users",
        headers=[*_bearer(token), (b"x-forwarded-for", b"203.0.113.7, 10.0.0.1")],
    )

    ctx = authenticator.authenticate_request(request)
    behind_proxy = RequestAuthenticator(tokens, users, access, trust_proxy_headers=True)

    assert ctx.user_id == user.user_id
    assert ctx.roles == ["manager"]
    assert ctx.ip == "127.0.0.1"
    assert behind_proxy.authenticate_request(request).ip == "203.0.113.7"


def test_authenticate_request_requires_token(tmp_path: Path) -> None:
    authenticator, _, _, _ = _build(tmp_path)

    with pytest.raises(UnauthorizedError) as missing:
        authenticator.authenticate_request(_request("/api/users"))
    with pytest.raises(UnauthorizedError) as garbage:
        authenticator.authenticate_request(_request("/api/users", headers=_bearer("x.y.z")))

    assert missing.value.message == "Authentication required"
    assert garbage.value.message == "Invalid or expired token"


def test_authorize_request_requires_every_permission(tmp_path: Path) -> None:
    authenticator, _, users, access = _build(tmp_path)
    ctx = _context(_user_with_role(users, access, "manager"), ["manager"])

    authenticator.authorize_request(ctx, ["users.read", "users.update"])
    with pytest.raises(ForbiddenError) as exc:
        authenticator.authorize_request(ctx, ["users.read", "users.delete", "roles.delete"])

    assert exc.value.message == "Missing required permissions: users.delete, roles.delete"


def test_require_any_permission_and_role(tmp_path: Path) -> None:
    authenticator, _, users, access = _build(tmp_path)
    ctx = _context(_user_with_role(users, access, "user"), ["user"])

    authenticator.require_any_permission(ctx, ["users.read", "projects.read"])
    with pytest.raises(ForbiddenError) as any_exc:
        authenticator.require_any_permission(ctx, ["users.read", "users.update"])
    with pytest.raises(ForbiddenError) as role_exc:
        authenticator.require_role(ctx, "admin")
    authenticator.require_role(ctx, "user")

    assert any_exc.value.message == "Requires one of: users.read, users.update"
    assert role_exc.value.message == "Requires role: admin"


def test_authorize_self_or_permission(tmp_path: Path) -> None:
    authenticator, _, users, access = _build(tmp_path)
    member = _user_with_role(users, access, "user")
    manager = _user_with_role(users, access, "manager")

    authenticator.authorize_self_or_permission(
        _context(member, ["user"]), member.user_id, "users.read"
    )
    authenticator.authorize_self_or_permission(
        _context(manager, ["manager"]), member.user_id, "users.read"
    )
    with pytest.raises(ForbiddenError):
        authenticator.authorize_self_or_permission(
            _context(member, ["user"]), manager.user_id, "users.read"
        )


def test_permissions_follow_current_role_assignment(tmp_path: Path) -> None:
    authenticator, _, users, access = _build(tmp_path)
    member = _user_with_role(users, access, "user")
    custom = access.create_role(
        CreateRoleRequest(
            name="auditor",
            display_name="Auditor",
            description="Reads analytics",
            hierarchy=4,
            permissions=["analytics.view"],
        )
    )

    before = authenticator.has_permission(_context(member, ["user"]), "analytics.view")
    users.set_roles(member.user_id, [custom.role_id])
    after = authenticator.has_permission(_context(member, ["user"]), "analytics.view")

    assert before is False
    assert after is True


def test_deactivated_user_loses_access_immediately(tmp_path: Path) -> None:
    authenticator, _, users, access = _build(tmp_path)
    member = _user_with_role(users, access, "user")
    users.update(member.user_id, {"is_active": False})

    with pytest.raises(UnauthorizedError):
        authenticator.permissions_for(_context(member, ["user"]))


def test_deactivated_user_cannot_act_on_own_account(tmp_path: Path) -> None:
    authenticator, _, users, access = _build(tmp_path)
    member = _user_with_role(users, access, "user")
    users.update(member.user_id, {"is_active": False})

    with pytest.raises(UnauthorizedError):
        authenticator.authorize_self_or_permission(
            _context(member, ["user"]), member.user_id, "users.read"
        )


def test_auth_middleware_rejects_protected_path_without_token(tmp_path: Path) -> None:
    authenticator, _, _, _ = _build(tmp_path)
    middleware = create_auth_middleware(authenticator, api_prefix="/api")
    calls: list[str] = []

    async def call_next(request: Request) -> Response:
        calls.append(request.url.path)
        return Response(content="ok", status_code=200)

    denied = asyncio.run(middleware(_request("/api/users"), call_next))
    public = asyncio.run(middleware(_request("/api/auth/login", method="POST"), call_next))
    preflight = asyncio.run(middleware(_request("/api/users", method="OPTIONS"), call_next))
    outside = asyncio.run(middleware(_request("/docs"), call_next))

    assert denied.status_code == 401
    assert json.loads(denied.body) == {
        "success": False,
        "error": {"code": "UNAUTHORIZED", "message": "Authentication required"},
    }
    assert public.status_code == 200
    assert preflight.status_code == 200
    assert outside.status_code == 200
    assert calls == ["/api/auth/login", "/api/users", "/docs"]


def test_auth_middleware_attaches_context(tmp_path: Path) -> None:
    authenticator, tokens, users, access = _build(tmp_path)
    user = _user_with_role(users, access, "admin")
    token = tokens.issue_access_token(user_id=user.user_id, email=user.email, roles=["admin"])
    middleware = create_auth_middleware(authenticator)
    seen: list[AuthContext] = []

    async def call_next(request: Request) -> Response:
        seen.append(request.state.auth)
        return Response(content="ok", status_code=200)

    request = _request("/api/roles", headers=[(b"cookie", f"accessToken={token}".encode())])

    response = asyncio.run(middleware(request, call_next))

    assert response.status_code == 200
    assert seen[0].user_id == user.user_id


def test_auth_dependencies_require_permissions(tmp_path: Path) -> None:
    authenticator, tokens, users, access = _build(tmp_path)
    user = _user_with_role(users, access, "user")
    token = tokens.issue_access_token(user_id=user.user_id, email=user.email, roles=["user"])
    deps = AuthDependencies(authenticator)

    ctx = deps.require("projects.read")(_request("/api/projects", headers=_bearer(token)))
    with pytest.raises(ForbiddenError):
        deps.require("users.read")(_request("/api/users", headers=_bearer(token)))

    assert ctx.user_id == user.user_id
    assert ctx.permissions is not None
