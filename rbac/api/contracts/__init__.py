"""Public API request/response contracts."""

from rbac.api.contracts.models import (
    ApiErrorBody,
    ApiErrorResponse,
    ApiModel,
    ApiResponse,
    AuditLogsData,
    AuditLogsPageData,
    AuditLogView,
    AuditStatistics,
    AuditStatisticsData,
    AuditUserCount,
    CategorizedPermissionsData,
    HealthResponse,
    Pagination,
    PermissionData,
    PermissionsData,
    PermissionView,
    RoleData,
    RolesData,
    RoleSummaryView,
    RoleView,
    SessionsRevokedData,
    SettingsData,
    SettingsView,
    UserData,
    UsersPageData,
    UserView,
)

__all__ = [
    "ApiErrorBody",
    "ApiErrorResponse",
    "ApiModel",
    "ApiResponse",
    "AuditLogsData",
    "AuditLogsPageData",
    "AuditLogView",
    "AuditStatistics",
    "AuditStatisticsData",
    "AuditUserCount",
    "CategorizedPermissionsData",
    "HealthResponse",
    "Pagination",
    "PermissionData",
    "PermissionsData",
    "PermissionView",
    "RoleData",
    "RolesData",
    "RoleSummaryView",
    "RoleView",
    "SessionsRevokedData",
    "SettingsData",
    "SettingsView",
    "UserData",
    "UsersPageData",
    "UserView",
]
