"""Authentication API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from rbac.api.contracts import (
    ApiErrorResponse,
    ApiResponse,
    SessionsRevokedData,
    UserData,
)
from rbac.api.errors import ApiError, NotFoundError, UnauthorizedError
from rbac.audit.models import AuditActor
from rbac.audit.service import AuditLogger
from rbac.auth.cookies import clear_auth_cookies, set_auth_cookies
from rbac.auth.device import client_ip, device_info_from_request
from rbac.auth.middleware import REFRESH_TOKEN_COOKIE, AuthContext, AuthDependencies
from rbac.auth.models import LoginRequest, RefreshRequest, RegisterRequest
from rbac.auth.rate_limiter import RateLimiter
from rbac.auth.service import AuthService
from rbac.auth.tokens import TokenService
from rbac.users.mapper import user_to_view

_ERRORS = {401: {"model": ApiErrorResponse}, 429: {"model": ApiErrorResponse}}


def _refresh_token_from(request: Request, req: RefreshRequest | None) -> str:
    token = request.cookies.get(REFRESH_TOKEN_COOKIE, "").strip()
    if not token and req is not None and req.refresh_token:
        token = req.refresh_token.strip()
    return token


def create_auth_router(
    *,
    service: AuthService,
    tokens: TokenService,
    deps: AuthDependencies,
    audit: AuditLogger,
    login_limiter: RateLimiter,
    register_limiter: RateLimiter,
    cookie_secure: bool,
    trust_proxy_headers: bool = False,
    prefix: str = "/api",
) -> APIRouter:
    """Build authentication router with register/login/refresh/logout/me endpoints."""
    router = APIRouter(prefix=f"{prefix}/auth", tags=["auth"])

    def _user_data(user_id: str) -> UserData:
        profile = service.get_user_profile(user_id)
        return UserData(user=user_to_view(profile.user, profile.roles, profile.permissions))

    @router.post(
        "/register",
        status_code=201,
        response_model=ApiResponse[UserData],
        responses={409: {"model": ApiErrorResponse}, **_ERRORS},
    )
    def register(req: RegisterRequest, request: Request) -> ApiResponse[UserData]:
        """Create a new account with the default role."""
        register_limiter.check(client_ip(request, trust_proxy=trust_proxy_headers))
        user = service.register(req)
        audit.log_registration(
            AuditActor.from_user(user),
            ip_address=client_ip(request, trust_proxy=trust_proxy_headers),
            user_agent=request.headers.get("user-agent"),
        )
        return ApiResponse[UserData](
            message="User registered successfully", data=_user_data(user.user_id)
        )

    @router.post("/login", response_model=ApiResponse[UserData], responses=_ERRORS)
    def login(req: LoginRequest, request: Request, response: Response) -> ApiResponse[UserData]:
        """Verify credentials and set the access/refresh cookies."""
        device_info = device_info_from_request(request, trust_proxy=trust_proxy_headers)
        login_limiter.check(device_info.ip)
        try:
            result = service.login(req, device_info)
        except UnauthorizedError as exc:
            audit.log_login(
                AuditActor(email=str(req.email).lower()),
                success=False,
                ip_address=device_info.ip,
                user_agent=device_info.user_agent,
                error_message=exc.message,
            )
            raise

        set_auth_cookies(
            response,
            access_token=result.access_token,
            access_max_age=tokens.access_ttl_seconds,
            refresh_token=result.refresh_token,
            refresh_max_age=tokens.refresh_ttl_seconds(result.remember_me),
            secure=cookie_secure,
        )
        audit.log_login(
            AuditActor.from_user(result.user),
            success=True,
            ip_address=device_info.ip,
            user_agent=device_info.user_agent,
        )
        return ApiResponse[UserData](
            message="Login successful", data=_user_data(result.user.user_id)
        )

    @router.post("/refresh", response_model=ApiResponse[UserData], responses=_ERRORS)
    def refresh(
        request: Request, response: Response, req: RefreshRequest | None = None
    ) -> ApiResponse[UserData]:
        """Rotate the refresh session and issue a fresh access token."""
        token = _refresh_token_from(request, req)
        if not token:
            raise UnauthorizedError("Refresh token required")
        device_info = device_info_from_request(request, trust_proxy=trust_proxy_headers)
        result = service.refresh_access_token(token, rotate=True, device_info=device_info)
        set_auth_cookies(
            response,
            access_token=result.access_token,
            access_max_age=tokens.access_ttl_seconds,
            refresh_token=result.refresh_token,
            refresh_max_age=tokens.refresh_ttl_seconds(result.remember_me),
            secure=cookie_secure,
        )
        return ApiResponse[UserData](
            message="Token refreshed successfully", data=_user_data(result.user.user_id)
        )

    @router.post("/logout", response_model=ApiResponse[SessionsRevokedData])
    def logout(
        request: Request, response: Response, req: RefreshRequest | None = None
    ) -> ApiResponse[SessionsRevokedData]:
        """Invalidate the current refresh session and clear cookies."""
        revoked = service.logout(_refresh_token_from(request, req))
        clear_auth_cookies(response, secure=cookie_secure)
        try:
            ctx = deps.authenticator.authenticate_request(request)
        except ApiError:
            ctx = None
        if ctx is not None:
            audit.log_logout(
                ctx.audit_actor,
                ip_address=ctx.ip,
                user_agent=ctx.user_agent,
            )
        return ApiResponse[SessionsRevokedData](
            message="Logout successful", data=SessionsRevokedData(revoked=revoked)
        )

    @router.post(
        "/logout-all",
        response_model=ApiResponse[SessionsRevokedData],
        responses={401: {"model": ApiErrorResponse}},
    )
    def logout_all(
        response: Response, ctx: AuthContext = Depends(deps.current_auth)
    ) -> ApiResponse[SessionsRevokedData]:
        """Invalidate every refresh session of the caller."""
        revoked = service.logout_all_sessions(ctx.user_id)
        clear_auth_cookies(response, secure=cookie_secure)
        audit.log(
            ctx.audit_actor,
            "logout_all",
            "auth",
            ip_address=ctx.ip,
            user_agent=ctx.user_agent,
        )
        return ApiResponse[SessionsRevokedData](
            message="Logged out from all sessions", data=SessionsRevokedData(revoked=revoked)
        )

    @router.get(
        "/me",
        response_model=ApiResponse[UserData],
        responses={401: {"model": ApiErrorResponse}},
    )
    def me(ctx: AuthContext = Depends(deps.current_auth)) -> ApiResponse[UserData]:
        """Return the caller with roles and resolved permissions."""
        try:
            profile = service.get_user_profile(ctx.user_id)
        except NotFoundError as exc:
            raise UnauthorizedError("User not found or inactive") from exc
        if not profile.user.is_active:
            raise UnauthorizedError("User not found or inactive")
        return ApiResponse[UserData](
            data=UserData(user=user_to_view(profile.user, profile.roles, profile.permissions))
        )

    return router
