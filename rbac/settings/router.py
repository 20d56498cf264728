"""Application settings API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from rbac.access import catalog
from rbac.api.contracts import ApiErrorResponse, ApiResponse, SettingsData, SettingsView
from rbac.audit.service import AuditLogger
from rbac.auth.middleware import AuthContext, AuthDependencies
from rbac.settings.models import Settings, UpdateSettingsRequest
from rbac.settings.repository import SettingsRepository


def _to_view(settings: Settings) -> SettingsView:
    return SettingsView.model_validate(settings.model_dump())


def create_settings_router(
    *,
    repo: SettingsRepository,
    deps: AuthDependencies,
    audit: AuditLogger,
    prefix: str = "/api",
) -> APIRouter:
    router = APIRouter(
        prefix=f"{prefix}/settings",
        tags=["settings"],
        responses={401: {"model": ApiErrorResponse}, 403: {"model": ApiErrorResponse}},
    )

    @router.get("", response_model=ApiResponse[SettingsData])
    def get_settings(
        ctx: AuthContext = Depends(deps.require(catalog.SETTINGS_VIEW)),
    ) -> ApiResponse[SettingsData]:
        return ApiResponse[SettingsData](data=SettingsData(settings=_to_view(repo.get())))

    @router.patch("", response_model=ApiResponse[SettingsData])
    def update_settings(
        req: UpdateSettingsRequest,
        ctx: AuthContext = Depends(deps.require(catalog.SETTINGS_MANAGE)),
    ) -> ApiResponse[SettingsData]:
        changes = req.model_dump(exclude_none=True)
        settings = repo.update(changes, updated_by=ctx.user_id)
        audit.log(
            ctx.audit_actor,
            "update",
            "settings",
            details={"fields": sorted(changes)},
            ip_address=ctx.ip,
            user_agent=ctx.user_agent,
        )
        return ApiResponse[SettingsData](
            message="Settings updated successfully",
            data=SettingsData(settings=_to_view(settings)),
        )

    return router
