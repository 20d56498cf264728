"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AuthConfig:
    """Authentication-related configuration."""

    access_token_secret: str
    refresh_token_secret: str
    access_token_ttl_seconds: int
    refresh_token_ttl_seconds: int
    refresh_token_remember_ttl_seconds: int
    issuer: str
    admin_email: str
    admin_password: str
    default_role: str


@dataclass(frozen=True)
class StorageConfig:
    """Document store location settings."""

    mongodb_uri: str
    mongodb_db: str
    file_store_dir: str


@dataclass(frozen=True)
class LoggingConfig:
    """Structured logging configuration."""

    level: str


@dataclass(frozen=True)
class SecurityConfig:
    """API perimeter security settings."""

    cors_allowed_origins: list[str]
    request_max_bytes: int
    cookie_secure: bool
    rate_limit_backend: str
    rate_limit_sqlite_path: str
    login_rate_limit_max_requests: int
    login_rate_limit_window_seconds: int
    register_rate_limit_max_requests: int
    register_rate_limit_window_seconds: int
    trust_proxy_headers: bool = False


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""

    auth: AuthConfig
    storage: StorageConfig
    logging: LoggingConfig
    security: SecurityConfig
    api_prefix: str = "/api"

    @staticmethod
    def from_env() -> "AppConfig":
        """Build app config from process environment."""
        app_env = os.getenv("APP_ENV", "development").strip().lower()
        access_secret = (
            os.getenv("AUTH_ACCESS_TOKEN_SECRET", "").strip()
            or "dev-insecure-access-secret-change-me"
        )
        refresh_secret = (
            os.getenv("AUTH_REFRESH_TOKEN_SECRET", "").strip()
            or "dev-insecure-refresh-secret-change-me"
        )
        access_ttl = int(os.getenv("AUTH_ACCESS_TOKEN_TTL_SECONDS", str(15 * 60)))
        refresh_ttl = int(
            os.getenv("AUTH_REFRESH_TOKEN_TTL_SECONDS", str(7 * 24 * 60 * 60))
        )
        remember_ttl = int(
            os.getenv("AUTH_REFRESH_TOKEN_REMEMBER_TTL_SECONDS", str(30 * 24 * 60 * 60))
        )
        issuer = os.getenv("AUTH_ISSUER", "rbac-core").strip() or "rbac-core"
        admin_email = (
            os.getenv("AUTH_ADMIN_EMAIL", "admin@example.com").strip().lower()
        )
        admin_password = os.getenv("AUTH_ADMIN_PASSWORD", "Admin@123").strip()
        default_role = os.getenv("AUTH_DEFAULT_ROLE", "user").strip().lower()

        mongodb_uri = os.getenv("MONGODB_URI", "").strip()
        mongodb_db = os.getenv("MONGODB_DB", "rbac").strip() or "rbac"
        file_store_dir = (
            os.getenv("FILE_STORE_DIR", "runtime/rbac_store").strip()
            or "runtime/rbac_store"
        )

        log_level = os.getenv("LOG_LEVEL", "INFO").strip() or "INFO"
        cors_allowed_origins = [
            origin.strip()
            for origin in os.getenv(
                "CORS_ALLOWED_ORIGINS",
                "http://localhost:3000,http://127.0.0.1:3000",
            ).split(",")
            if origin.strip()
        ]
        request_max_bytes = int(os.getenv("REQUEST_MAX_BYTES", str(1024 * 1024)))
        cookie_secure = _env_flag(
            "COOKIE_SECURE", "1" if app_env == "production" else "0"
        )
        rate_limit_backend = (
            os.getenv("RATE_LIMIT_BACKEND", "memory").strip().lower() or "memory"
        )
        rate_limit_sqlite_path = (
            os.getenv("RATE_LIMIT_SQLITE_PATH", "runtime/rate_limit.db").strip()
            or "runtime/rate_limit.db"
        )

        return AppConfig(
            auth=AuthConfig(
                access_token_secret=access_secret,
                refresh_token_secret=refresh_secret,
                access_token_ttl_seconds=access_ttl,
                refresh_token_ttl_seconds=refresh_ttl,
                refresh_token_remember_ttl_seconds=remember_ttl,
                issuer=issuer,
                admin_email=admin_email,
                admin_password=admin_password,
                default_role=default_role,
            ),
            storage=StorageConfig(
                mongodb_uri=mongodb_uri,
                mongodb_db=mongodb_db,
                file_store_dir=file_store_dir,
            ),
            logging=LoggingConfig(level=log_level),
            security=SecurityConfig(
                cors_allowed_origins=cors_allowed_origins,
                request_max_bytes=request_max_bytes,
                cookie_secure=cookie_secure,
                rate_limit_backend=rate_limit_backend,
                rate_limit_sqlite_path=rate_limit_sqlite_path,
                login_rate_limit_max_requests=int(
                    os.getenv("LOGIN_RATE_LIMIT_MAX_REQUESTS", "5")
                ),
                login_rate_limit_window_seconds=int(
                    os.getenv("LOGIN_RATE_LIMIT_WINDOW_SECONDS", "60")
                ),
                register_rate_limit_max_requests=int(
                    os.getenv("REGISTER_RATE_LIMIT_MAX_REQUESTS", "3")
                ),
                register_rate_limit_window_seconds=int(
                    os.getenv("REGISTER_RATE_LIMIT_WINDOW_SECONDS", "3600")
                ),
                trust_proxy_headers=_env_flag("TRUST_PROXY_HEADERS"),
            ),
            api_prefix=os.getenv("API_PREFIX", "/api").rstrip("/"),
        )
