"""Request authentication, permission checks and the HTTP auth middleware."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable, Protocol

from fastapi import Request
from fastapi.responses import JSONResponse

from rbac.access.service import AccessService
from rbac.api.errors import ApiError, ForbiddenError, UnauthorizedError, to_error_payload
from rbac.audit.models import AuditActor
from rbac.auth.device import client_ip
from rbac.auth.models import User
from rbac.auth.tokens import TokenService
from rbac.core.logging import set_request_user

ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"

PUBLIC_AUTH_PATHS = (
    "/health",
    "/auth/register",
    "/auth/login",
    "/auth/refresh",
    "/auth/logout",
)


class UserLookupProtocol(Protocol):
    def get_by_id(self, user_id: str) -> User | None: ...


@dataclass
class AuthContext:
    """Authenticated caller attached to ``request.state.auth``."""

    user_id: str
    email: str
    roles: list[str] = field(default_factory=list)
    ip: str = "unknown"
    user_agent: str = ""
    permissions: list[str] | None = None

    @property
    def audit_actor(self) -> AuditActor:
        return AuditActor(user_id=self.user_id, email=self.email)


def _extract_bearer_token(authorization: str) -> str:
    parts = (authorization or "").strip().split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return ""
    return parts[1].strip()


def extract_access_token(request: Request) -> str:
    """Access token from the cookie, falling back to the Authorization header."""
    token = request.cookies.get(ACCESS_TOKEN_COOKIE, "").strip()
    if token:
        return token
    return _extract_bearer_token(request.headers.get("authorization", ""))


class RequestAuthenticator:
    """Turns requests into :class:`AuthContext` and enforces permissions."""

    def __init__(
        self,
        tokens: TokenService,
        users: UserLookupProtocol,
        access: AccessService,
        *,
        trust_proxy_headers: bool = False,
    ) -> None:
        self._tokens = tokens
        self._users = users
        self._access = access
        self._trust_proxy = trust_proxy_headers

    def authenticate_request(self, request: Request) -> AuthContext:
        token = extract_access_token(request)
        if not token:
            raise UnauthorizedError("Authentication required")
        claims = self._tokens.verify_access_token(token)
        return AuthContext(
            user_id=claims.user_id,
            email=claims.email,
            roles=claims.roles,
            ip=client_ip(request, trust_proxy=self._trust_proxy),
            user_agent=request.headers.get("user-agent", ""),
        )

    def permissions_for(self, ctx: AuthContext) -> list[str]:
        """Resolve the caller's permission names once per request.

        The user record is re-read so role changes and deactivation take
        effect before the access token expires.
        """
        if ctx.permissions is None:
            user = self._users.get_by_id(ctx.user_id)
            if user is None or not user.is_active:
                raise UnauthorizedError("User not found or inactive")
            ctx.permissions = self._access.resolve_permission_names(user.role_ids)
        return ctx.permissions

    def has_permission(self, ctx: AuthContext, permission: str) -> bool:
        return permission in self.permissions_for(ctx)

    def authorize_request(self, ctx: AuthContext, required_permissions: Iterable[str]) -> None:
        """Require every listed permission."""
        granted = set(self.permissions_for(ctx))
        missing = [p for p in required_permissions if p not in granted]
        if missing:
            raise ForbiddenError(f"Missing required permissions: {', '.join(missing)}")

    def require_permission(self, ctx: AuthContext, permission: str) -> None:
        self.authorize_request(ctx, [permission])

    def require_any_permission(self, ctx: AuthContext, permissions: Iterable[str]) -> None:
        wanted = list(permissions)
        granted = set(self.permissions_for(ctx))
        if not any(p in granted for p in wanted):
            raise ForbiddenError(f"Requires one of: {', '.join(wanted)}")

    def require_role(self, ctx: AuthContext, role_name: str) -> None:
        if role_name not in ctx.roles:
            raise ForbiddenError(f"Requires role: {role_name}")

    def authorize_self_or_permission(
        self, ctx: AuthContext, target_user_id: str, permission: str
    ) -> None:
        """Callers may act on their own account; anyone else needs ``permission``."""
        # Rejects deleted or deactivated accounts before the self shortcut.
        self.permissions_for(ctx)
        if ctx.user_id == target_user_id:
            return
        self.require_permission(ctx, permission)


def create_auth_middleware(
    authenticator: RequestAuthenticator,
    *,
    api_prefix: str = "/api",
    public_paths: Iterable[str] = PUBLIC_AUTH_PATHS,
) -> Callable:
    """Create middleware that authenticates every non-public API path."""
    public = {f"{api_prefix}{path}" for path in public_paths}

    async def auth_middleware(request: Request, call_next: Callable):
        path = request.url.path.rstrip("/") or "/"
        if not path.startswith(f"{api_prefix}/") or path in public:
            return await call_next(request)
        if request.method == "OPTIONS":
            return await call_next(request)

        try:
            ctx = authenticator.authenticate_request(request)
        except ApiError as exc:
            return JSONResponse(
                status_code=exc.status_code,
                content=to_error_payload(exc.detail, exc.status_code),
            )
        request.state.auth = ctx
        set_request_user(ctx.user_id)
        return await call_next(request)

    return auth_middleware


class AuthDependencies:
    """FastAPI dependencies built on a :class:`RequestAuthenticator`."""

    def __init__(self, authenticator: RequestAuthenticator) -> None:
        self.authenticator = authenticator

    def current_auth(self, request: Request) -> AuthContext:
        ctx = getattr(request.state, "auth", None)
        if ctx is None:
            ctx = self.authenticator.authenticate_request(request)
            request.state.auth = ctx
        return ctx

    def require(self, *permissions: str) -> Callable[[Request], AuthContext]:
        def dependency(request: Request) -> AuthContext:
            ctx = self.current_auth(request)
            self.authenticator.authorize_request(ctx, permissions)
            return ctx

        return dependency
