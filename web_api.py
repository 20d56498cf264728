from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rbac.access.repository import PermissionRepository, RoleRepository
from rbac.access.router import create_permissions_router, create_roles_router
from rbac.access.service import AccessService
from rbac.api.contracts import HealthResponse
from rbac.api.http_setup import register_exception_handlers, register_http_middleware
from rbac.audit.repository import AuditLogRepository
from rbac.audit.router import create_audit_router
from rbac.audit.service import AuditLogger
from rbac.auth.middleware import AuthDependencies, RequestAuthenticator, create_auth_middleware
from rbac.auth.rate_limiter import RateLimiter, build_rate_limit_backend
from rbac.auth.repository import SessionRepository, UserRepository
from rbac.auth.router import create_auth_router
from rbac.auth.service import AuthService
from rbac.auth.tokens import TokenService
from rbac.core.config import AppConfig
from rbac.core.logging import setup_logging
from rbac.settings.repository import SettingsRepository
from rbac.settings.router import create_settings_router
from rbac.storage.documents import open_document_store
from rbac.users.router import create_users_router
from rbac.users.service import UsersService

load_dotenv()
APP_CONFIG = AppConfig.from_env()
setup_logging(APP_CONFIG.logging.level)
LOGGER = logging.getLogger(__name__)

APP_ROOT = Path(__file__).resolve().parent


def create_app(config: AppConfig = APP_CONFIG, *, app_root: Path = APP_ROOT) -> FastAPI:
    store = open_document_store(config.storage, app_root=app_root)
    prefix = config.api_prefix

    users_repo = UserRepository(store)
    sessions_repo = SessionRepository(store)
    access_service = AccessService(
        RoleRepository(store), PermissionRepository(store), role_usage=users_repo
    )
    tokens = TokenService(config.auth)
    auth_service = AuthService(
        users_repo, sessions_repo, tokens, access_service, config.auth
    )
    users_service = UsersService(users_repo, sessions_repo, access_service, auth_service)
    audit_logger = AuditLogger(AuditLogRepository(store))
    settings_repo = SettingsRepository(store)

    authenticator = RequestAuthenticator(
        tokens,
        users_repo,
        access_service,
        trust_proxy_headers=config.security.trust_proxy_headers,
    )
    deps = AuthDependencies(authenticator)

    rate_limit_backend = build_rate_limit_backend(
        config.security.rate_limit_backend,
        sqlite_path=(app_root / config.security.rate_limit_sqlite_path).resolve(),
    )
    login_limiter = RateLimiter(
        rate_limit_backend,
        name="login",
        max_requests=config.security.login_rate_limit_max_requests,
        window_seconds=config.security.login_rate_limit_window_seconds,
    )
    register_limiter = RateLimiter(
        rate_limit_backend,
        name="register",
        max_requests=config.security.register_rate_limit_max_requests,
        window_seconds=config.security.register_rate_limit_window_seconds,
    )

    auth_service.bootstrap_admin_user()

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        rate_limit_backend.close()
        store.close()

    app = FastAPI(title="RBAC Auth API", version="1.0.0", lifespan=lifespan)
    app.middleware("http")(create_auth_middleware(authenticator, api_prefix=prefix))
    register_http_middleware(app, config=config, logger=LOGGER)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.security.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    )
    register_exception_handlers(app, logger=LOGGER)

    @app.get(f"{prefix}/health", response_model=HealthResponse, tags=["runtime"])
    def health() -> HealthResponse:
        return HealthResponse(status="ok")

    app.include_router(
        create_auth_router(
            service=auth_service,
            tokens=tokens,
            deps=deps,
            audit=audit_logger,
            login_limiter=login_limiter,
            register_limiter=register_limiter,
            cookie_secure=config.security.cookie_secure,
            trust_proxy_headers=config.security.trust_proxy_headers,
            prefix=prefix,
        )
    )
    app.include_router(
        create_users_router(service=users_service, deps=deps, audit=audit_logger, prefix=prefix)
    )
    app.include_router(
        create_roles_router(service=access_service, deps=deps, audit=audit_logger, prefix=prefix)
    )
    app.include_router(
        create_permissions_router(
            service=access_service, deps=deps, audit=audit_logger, prefix=prefix
        )
    )
    app.include_router(
        create_settings_router(repo=settings_repo, deps=deps, audit=audit_logger, prefix=prefix)
    )
    app.include_router(create_audit_router(audit=audit_logger, deps=deps, prefix=prefix))

    LOGGER.info("app_started backend=%s", store.backend)
    return app


app = create_app()
