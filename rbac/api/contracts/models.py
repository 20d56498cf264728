"""Pydantic API contracts used in OpenAPI schemas and responses."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DataT = TypeVar("DataT")


class ApiModel(BaseModel):
    """Base for wire models: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiErrorBody(BaseModel):
    """Error object nested in the failure envelope."""

    code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error message")
    details: Any = None


class ApiErrorResponse(BaseModel):
    """Stable failure envelope for API responses."""

    success: Literal[False] = False
    error: ApiErrorBody


class ApiResponse(BaseModel, Generic[DataT]):
    """Stable success envelope for API responses."""

    success: Literal[True] = True
    message: str | None = None
    data: DataT | None = None


class HealthResponse(BaseModel):
    status: Literal["ok"]


class PermissionView(ApiModel):
    id: str
    name: str
    display_name: str
    description: str = ""
    resource: str
    action: str
    category: str
    is_system_permission: bool = False


class RoleSummaryView(ApiModel):
    id: str
    name: str
    display_name: str
    description: str = ""
    hierarchy: int


class RoleView(RoleSummaryView):
    is_system_role: bool = False
    permissions: list[PermissionView] = Field(default_factory=list)
    created_at: datetime | None = None


class UserView(ApiModel):
    """Client-facing user shape; never carries the password hash."""

    id: str
    email: str
    first_name: str
    last_name: str
    full_name: str
    is_active: bool
    is_email_verified: bool = False
    roles: list[RoleSummaryView] = Field(default_factory=list)
    permissions: list[str] = Field(default_factory=list)
    last_login_at: datetime | None = None
    created_at: datetime | None = None


class Pagination(ApiModel):
    total: int
    page: int
    limit: int
    total_pages: int


class UserData(ApiModel):
    user: UserView


class UsersPageData(ApiModel):
    users: list[UserView]
    pagination: Pagination


class RoleData(ApiModel):
    role: RoleView


class RolesData(ApiModel):
    roles: list[RoleView]


class PermissionData(ApiModel):
    permission: PermissionView


class PermissionsData(ApiModel):
    permissions: list[PermissionView]


class CategorizedPermissionsData(ApiModel):
    categories: dict[str, list[PermissionView]]


class SettingsView(ApiModel):
    app_name: str
    app_logo: str
    company_name: str
    company_logo: str
    jwt_access_token_expires_in: str
    jwt_refresh_token_expires_in: str
    max_login_attempts: int
    lockout_duration: int
    updated_at: datetime | None = None


class SettingsData(ApiModel):
    settings: SettingsView


class AuditLogView(ApiModel):
    id: str
    user_id: str
    user_email: str
    user_name: str
    action: str
    resource: str
    resource_id: str | None = None
    details: dict[str, Any] | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    status: Literal["success", "failure"]
    error_message: str | None = None
    timestamp: datetime


class AuditLogsPageData(ApiModel):
    logs: list[AuditLogView]
    pagination: Pagination


class AuditUserCount(ApiModel):
    user_id: str
    user_email: str
    count: int


class AuditStatistics(ApiModel):
    total_logs: int
    success_count: int
    failure_count: int
    by_action: dict[str, int]
    by_resource: dict[str, int]
    by_user: list[AuditUserCount]


class AuditStatisticsData(ApiModel):
    statistics: AuditStatistics


class SessionsRevokedData(ApiModel):
    revoked: bool


class AuditLogsData(ApiModel):
    logs: list[AuditLogView]
