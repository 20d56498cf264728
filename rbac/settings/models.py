from __future__ import annotations

import re
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from rbac.api.contracts import ApiModel
from rbac.auth.models import utc_now

SETTINGS_ID = "global"
DURATION_RE = re.compile(r"^\d+[smhd]$")

DEFAULT_SETTINGS = {
    "app_name": "RBAC App",
    "app_logo": "",
    "company_name": "My Company",
    "company_logo": "",
    "jwt_access_token_expires_in": "15m",
    "jwt_refresh_token_expires_in": "7d",
    "max_login_attempts": 5,
    "lockout_duration": 15,
}


class Settings(BaseModel):
    """Application-wide display and policy settings (single document)."""

    setting_id: str = SETTINGS_ID
    app_name: str = DEFAULT_SETTINGS["app_name"]
    app_logo: str = ""
    company_name: str = DEFAULT_SETTINGS["company_name"]
    company_logo: str = ""
    jwt_access_token_expires_in: str = "15m"
    jwt_refresh_token_expires_in: str = "7d"
    max_login_attempts: int = 5
    lockout_duration: int = 15
    updated_by: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class UpdateSettingsRequest(ApiModel):
    app_name: str | None = Field(default=None, min_length=1, max_length=100)
    app_logo: str | None = None
    company_name: str | None = Field(default=None, min_length=1, max_length=100)
    company_logo: str | None = None
    jwt_access_token_expires_in: str | None = None
    jwt_refresh_token_expires_in: str | None = None
    max_login_attempts: int | None = Field(default=None, ge=1, le=100)
    lockout_duration: int | None = Field(default=None, ge=1, le=1440)

    @field_validator("jwt_access_token_expires_in", "jwt_refresh_token_expires_in")
    @classmethod
    def _duration(cls, value: str | None) -> str | None:
        if value is not None and not DURATION_RE.match(value.strip()):
            raise ValueError("Duration must look like '15m', '7d', '3600s' or '12h'")
        return value.strip() if value is not None else None
