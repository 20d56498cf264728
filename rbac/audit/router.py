"""Audit log API router."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query

from rbac.access import catalog
from rbac.api.contracts import (
    ApiErrorResponse,
    ApiResponse,
    AuditLogsPageData,
    AuditStatisticsData,
)
from rbac.audit.mapper import entry_to_view
from rbac.audit.models import AuditLogFilters
from rbac.audit.service import AuditLogger
from rbac.auth.middleware import AuthContext, AuthDependencies


def create_audit_router(
    *,
    audit: AuditLogger,
    deps: AuthDependencies,
    prefix: str = "/api",
) -> APIRouter:
    router = APIRouter(
        prefix=f"{prefix}/audit-logs",
        tags=["audit"],
        responses={401: {"model": ApiErrorResponse}, 403: {"model": ApiErrorResponse}},
    )

    @router.get("", response_model=ApiResponse[AuditLogsPageData])
    def list_audit_logs(
        user_id: str | None = Query(default=None, alias="userId"),
        user_email: str | None = Query(default=None, alias="userEmail"),
        action: str | None = Query(default=None),
        resource: str | None = Query(default=None),
        resource_id: str | None = Query(default=None, alias="resourceId"),
        status: Literal["success", "failure"] | None = Query(default=None),
        start_date: datetime | None = Query(default=None, alias="startDate"),
        end_date: datetime | None = Query(default=None, alias="endDate"),
        page: int = Query(default=1, ge=1),
        limit: int = Query(default=50, ge=1, le=100),
        ctx: AuthContext = Depends(deps.require(catalog.USERS_READ)),
    ) -> ApiResponse[AuditLogsPageData]:
        """Paginated audit trail, newest first."""
        logs, pagination = audit.get_audit_logs(
            AuditLogFilters(
                user_id=user_id,
                user_email=user_email,
                action=action,
                resource=resource,
                resource_id=resource_id,
                status=status,
                start_date=start_date,
                end_date=end_date,
                page=page,
                limit=limit,
            )
        )
        return ApiResponse[AuditLogsPageData](
            data=AuditLogsPageData(
                logs=[entry_to_view(entry) for entry in logs], pagination=pagination
            )
        )

    @router.get("/statistics", response_model=ApiResponse[AuditStatisticsData])
    def audit_statistics(
        start_date: datetime | None = Query(default=None, alias="startDate"),
        end_date: datetime | None = Query(default=None, alias="endDate"),
        ctx: AuthContext = Depends(deps.require(catalog.ANALYTICS_VIEW)),
    ) -> ApiResponse[AuditStatisticsData]:
        statistics = audit.get_statistics(start_date, end_date)
        return ApiResponse[AuditStatisticsData](
            data=AuditStatisticsData(statistics=statistics)
        )

    return router
