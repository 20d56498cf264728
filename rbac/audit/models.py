from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from rbac.auth.models import User, new_id, utc_now

AuditStatus = Literal["success", "failure"]


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class AuditActor(BaseModel):
    """Who performed an audited action."""

    user_id: str = ""
    email: str = ""
    name: str = ""

    @classmethod
    def from_user(cls, user: User) -> "AuditActor":
        return cls(user_id=user.user_id, email=user.email, name=user.full_name)


class AuditLogEntry(BaseModel):
    log_id: str = Field(default_factory=new_id)
    user_id: str = ""
    user_email: str = ""
    user_name: str = ""
    action: str
    resource: str
    resource_id: str | None = None
    details: dict[str, Any] | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    status: AuditStatus = "success"
    error_message: str | None = None
    timestamp: datetime = Field(default_factory=utc_now)


class AuditLogFilters(BaseModel):
    user_id: str | None = None
    user_email: str | None = None
    action: str | None = None
    resource: str | None = None
    resource_id: str | None = None
    status: AuditStatus | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1, le=100)

    @field_validator("start_date", "end_date")
    @classmethod
    def _utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)
