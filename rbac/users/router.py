"""User administration API router."""

from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, Depends, Query

from rbac.access import catalog
from rbac.api.contracts import (
    ApiErrorResponse,
    ApiResponse,
    AuditLogsData,
    UserData,
    UsersPageData,
)
from rbac.audit.mapper import entry_to_view
from rbac.audit.service import AuditLogger
from rbac.auth.middleware import AuthContext, AuthDependencies
from rbac.auth.models import CreateUserRequest, SetUserRolesRequest, UpdateUserRequest
from rbac.auth.repository import UserFilters
from rbac.users.service import UsersService

_ERRORS = {
    401: {"model": ApiErrorResponse},
    403: {"model": ApiErrorResponse},
    404: {"model": ApiErrorResponse},
}


def create_users_router(
    *,
    service: UsersService,
    deps: AuthDependencies,
    audit: AuditLogger,
    prefix: str = "/api",
) -> APIRouter:
    """Build users router: list/get/create/update/delete and role assignment."""
    router = APIRouter(prefix=f"{prefix}/users", tags=["users"], responses=_ERRORS)
    authz = deps.authenticator

    def _audit(ctx: AuthContext, action: str, user_id: str, details: dict[str, Any]) -> None:
        audit.log(
            ctx.audit_actor,
            action,
            "users",
            resource_id=user_id,
            details=details,
            ip_address=ctx.ip,
            user_agent=ctx.user_agent,
        )

    @router.get("", response_model=ApiResponse[UsersPageData])
    def list_users(
        page: int = Query(default=1, ge=1),
        limit: int = Query(default=20, ge=1, le=100),
        search: str = Query(default=""),
        role: str = Query(default=""),
        is_active: bool | None = Query(default=None, alias="isActive"),
        sort_by: str = Query(default="created_at", alias="sortBy"),
        order: Literal["asc", "desc"] = Query(default="desc"),
        ctx: AuthContext = Depends(deps.require(catalog.USERS_READ)),
    ) -> ApiResponse[UsersPageData]:
        users, pagination = service.list_users(
            UserFilters(
                search=search,
                role_id=role,
                is_active=is_active,
                page=page,
                limit=limit,
                sort_by=sort_by,
                order=order,
            )
        )
        return ApiResponse[UsersPageData](
            data=UsersPageData(users=users, pagination=pagination)
        )

    @router.post("", status_code=201, response_model=ApiResponse[UserData])
    def create_user(
        req: CreateUserRequest,
        ctx: AuthContext = Depends(deps.require(catalog.USERS_CREATE)),
    ) -> ApiResponse[UserData]:
        user = service.create_user(req)
        _audit(ctx, "create", user.user_id, {"email": user.email})
        return ApiResponse[UserData](
            message="User created successfully", data=UserData(user=service.user_view(user))
        )

    @router.get("/{user_id}", response_model=ApiResponse[UserData])
    def get_user(
        user_id: str, ctx: AuthContext = Depends(deps.current_auth)
    ) -> ApiResponse[UserData]:
        authz.authorize_self_or_permission(ctx, user_id, catalog.USERS_READ)
        user = service.get_user(user_id)
        return ApiResponse[UserData](data=UserData(user=service.user_view(user)))

    @router.patch("/{user_id}", response_model=ApiResponse[UserData])
    def update_user(
        user_id: str,
        req: UpdateUserRequest,
        ctx: AuthContext = Depends(deps.current_auth),
    ) -> ApiResponse[UserData]:
        authz.authorize_self_or_permission(ctx, user_id, catalog.USERS_UPDATE)
        user = service.update_user(
            user_id, req, can_manage=authz.has_permission(ctx, catalog.USERS_UPDATE)
        )
        changed = sorted(req.model_dump(exclude_none=True, exclude={"password"}))
        _audit(ctx, "update", user_id, {"fields": changed})
        return ApiResponse[UserData](
            message="User updated successfully", data=UserData(user=service.user_view(user))
        )

    @router.delete("/{user_id}", response_model=ApiResponse[UserData])
    def delete_user(
        user_id: str,
        ctx: AuthContext = Depends(deps.require(catalog.USERS_DELETE)),
    ) -> ApiResponse[UserData]:
        user = service.delete_user(ctx.user_id, user_id)
        _audit(ctx, "delete", user_id, {"email": user.email})
        return ApiResponse[UserData](message="User deleted successfully")

    @router.put("/{user_id}/roles", response_model=ApiResponse[UserData])
    def set_user_roles(
        user_id: str,
        req: SetUserRolesRequest,
        ctx: AuthContext = Depends(deps.require(catalog.USERS_UPDATE)),
    ) -> ApiResponse[UserData]:
        user = service.set_user_roles(user_id, req.roles)
        _audit(ctx, "assign_roles", user_id, {"roles": req.roles})
        return ApiResponse[UserData](
            message="User roles updated successfully",
            data=UserData(user=service.user_view(user)),
        )

    @router.get("/{user_id}/activity", response_model=ApiResponse[AuditLogsData])
    def user_activity(
        user_id: str,
        limit: int = Query(default=50, ge=1, le=100),
        ctx: AuthContext = Depends(deps.current_auth),
    ) -> ApiResponse[AuditLogsData]:
        authz.authorize_self_or_permission(ctx, user_id, catalog.USERS_READ)
        logs = audit.get_user_activity(user_id, limit=limit)
        return ApiResponse[AuditLogsData](
            data=AuditLogsData(logs=[entry_to_view(entry) for entry in logs])
        )

    return router
