"""Pydantic models for the authentication domain."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, EmailStr, Field, field_validator

from rbac.api.contracts import ApiModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


class User(BaseModel):
    """Persisted user record."""

    user_id: str = Field(default_factory=new_id)
    email: str
    password_hash: str
    first_name: str
    last_name: str
    is_active: bool = True
    is_email_verified: bool = False
    role_ids: list[str] = Field(default_factory=list)
    last_login_at: datetime | None = None
    last_login_ip: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class DeviceInfo(BaseModel):
    """Client device the session was opened from."""

    user_agent: str = ""
    ip: str = "unknown"
    browser: str = "Unknown"
    os: str = "Unknown"


class Session(BaseModel):
    """Refresh-token session; only a digest of the token is stored."""

    session_id: str = Field(default_factory=new_id)
    user_id: str
    token_hash: str
    device_info: DeviceInfo = Field(default_factory=DeviceInfo)
    is_valid: bool = True
    remember_me: bool = False
    expires_at: datetime
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class AccessClaims(BaseModel):
    user_id: str
    email: str
    roles: list[str] = Field(default_factory=list)
    jti: str = ""
    exp: int = 0


class RefreshClaims(BaseModel):
    user_id: str
    jti: str = ""
    exp: int = 0


class RegisterRequest(ApiModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)


class LoginRequest(ApiModel):
    email: EmailStr
    password: str = Field(min_length=1)
    remember_me: bool = False


class RefreshRequest(ApiModel):
    """Optional body for clients that cannot send the refresh cookie."""

    refresh_token: str | None = None


class CreateUserRequest(RegisterRequest):
    roles: list[str] = Field(default_factory=list)
    is_active: bool = True


class UpdateUserRequest(ApiModel):
    email: EmailStr | None = None
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    password: str | None = Field(default=None, min_length=8, max_length=128)
    roles: list[str] | None = None
    is_active: bool | None = None


class SetUserRolesRequest(ApiModel):
    roles: list[str]


class LoginResult(BaseModel):
    user: User
    access_token: str
    refresh_token: str
    remember_me: bool = False


class RefreshResult(BaseModel):
    user: User
    access_token: str
    refresh_token: str | None = None
    remember_me: bool = False
