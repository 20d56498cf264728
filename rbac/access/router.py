"""Roles and permissions API routers."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from rbac.access import catalog
from rbac.access.mapper import permission_to_view
from rbac.access.models import (
    CreatePermissionRequest,
    CreateRoleRequest,
    RolePermissionsRequest,
    UpdatePermissionRequest,
    UpdateRoleRequest,
)
from rbac.access.service import AccessService
from rbac.api.contracts import (
    ApiErrorResponse,
    ApiResponse,
    CategorizedPermissionsData,
    PermissionData,
    PermissionsData,
    RoleData,
    RolesData,
)
from rbac.audit.service import AuditLogger
from rbac.auth.middleware import AuthContext, AuthDependencies

_ERRORS = {
    401: {"model": ApiErrorResponse},
    403: {"model": ApiErrorResponse},
    404: {"model": ApiErrorResponse},
    409: {"model": ApiErrorResponse},
}


def create_roles_router(
    *,
    service: AccessService,
    deps: AuthDependencies,
    audit: AuditLogger,
    prefix: str = "/api",
) -> APIRouter:
    """Build roles router: CRUD plus permission assignment."""
    router = APIRouter(prefix=f"{prefix}/roles", tags=["roles"], responses=_ERRORS)

    def _audit(ctx: AuthContext, action: str, role_id: str, details: dict[str, Any]) -> None:
        audit.log(
            ctx.audit_actor,
            action,
            "roles",
            resource_id=role_id,
            details=details,
            ip_address=ctx.ip,
            user_agent=ctx.user_agent,
        )

    @router.get("", response_model=ApiResponse[RolesData])
    def list_roles(
        ctx: AuthContext = Depends(deps.require(catalog.ROLES_READ)),
    ) -> ApiResponse[RolesData]:
        """List roles ordered by hierarchy (most senior first)."""
        roles = [service.role_view(role) for role in service.list_roles()]
        return ApiResponse[RolesData](data=RolesData(roles=roles))

    @router.post("", status_code=201, response_model=ApiResponse[RoleData])
    def create_role(
        req: CreateRoleRequest,
        ctx: AuthContext = Depends(deps.require(catalog.ROLES_CREATE)),
    ) -> ApiResponse[RoleData]:
        role = service.create_role(req)
        _audit(ctx, "create", role.role_id, {"name": role.name})
        return ApiResponse[RoleData](
            message="Role created successfully", data=RoleData(role=service.role_view(role))
        )

    @router.get("/{role_id}", response_model=ApiResponse[RoleData])
    def get_role(
        role_id: str,
        ctx: AuthContext = Depends(deps.require(catalog.ROLES_READ)),
    ) -> ApiResponse[RoleData]:
        role = service.get_role(role_id)
        return ApiResponse[RoleData](data=RoleData(role=service.role_view(role)))

    @router.patch("/{role_id}", response_model=ApiResponse[RoleData])
    def update_role(
        role_id: str,
        req: UpdateRoleRequest,
        ctx: AuthContext = Depends(deps.require(catalog.ROLES_UPDATE)),
    ) -> ApiResponse[RoleData]:
        role = service.update_role(role_id, req)
        _audit(ctx, "update", role_id, {"fields": sorted(req.model_dump(exclude_none=True))})
        return ApiResponse[RoleData](
            message="Role updated successfully", data=RoleData(role=service.role_view(role))
        )

    @router.delete("/{role_id}", response_model=ApiResponse[RoleData])
    def delete_role(
        role_id: str,
        ctx: AuthContext = Depends(deps.require(catalog.ROLES_DELETE)),
    ) -> ApiResponse[RoleData]:
        service.delete_role(role_id)
        _audit(ctx, "delete", role_id, {})
        return ApiResponse[RoleData](message="Role deleted successfully")

    @router.post("/{role_id}/permissions", response_model=ApiResponse[RoleData])
    def add_permissions(
        role_id: str,
        req: RolePermissionsRequest,
        ctx: AuthContext = Depends(deps.require(catalog.ROLES_UPDATE)),
    ) -> ApiResponse[RoleData]:
        role = service.add_role_permissions(role_id, req.permissions)
        _audit(ctx, "add_permissions", role_id, {"permissions": req.permissions})
        return ApiResponse[RoleData](
            message="Permissions added successfully", data=RoleData(role=service.role_view(role))
        )

    @router.put("/{role_id}/permissions", response_model=ApiResponse[RoleData])
    def set_permissions(
        role_id: str,
        req: RolePermissionsRequest,
        ctx: AuthContext = Depends(deps.require(catalog.ROLES_UPDATE)),
    ) -> ApiResponse[RoleData]:
        role = service.set_role_permissions(role_id, req.permissions)
        _audit(ctx, "set_permissions", role_id, {"permissions": req.permissions})
        return ApiResponse[RoleData](
            message="Permissions updated successfully",
            data=RoleData(role=service.role_view(role)),
        )

    @router.delete("/{role_id}/permissions", response_model=ApiResponse[RoleData])
    def remove_permissions(
        role_id: str,
        req: RolePermissionsRequest,
        ctx: AuthContext = Depends(deps.require(catalog.ROLES_UPDATE)),
    ) -> ApiResponse[RoleData]:
        role = service.remove_role_permissions(role_id, req.permissions)
        _audit(ctx, "remove_permissions", role_id, {"permissions": req.permissions})
        return ApiResponse[RoleData](
            message="Permissions removed successfully",
            data=RoleData(role=service.role_view(role)),
        )

    return router


def create_permissions_router(
    *,
    service: AccessService,
    deps: AuthDependencies,
    audit: AuditLogger,
    prefix: str = "/api",
) -> APIRouter:
    """Build permissions router: catalog listing and custom permission CRUD."""
    router = APIRouter(prefix=f"{prefix}/permissions", tags=["permissions"], responses=_ERRORS)

    def _audit(ctx: AuthContext, action: str, permission_id: str, details: dict[str, Any]) -> None:
        audit.log(
            ctx.audit_actor,
            action,
            "permissions",
            resource_id=permission_id,
            details=details,
            ip_address=ctx.ip,
            user_agent=ctx.user_agent,
        )

    @router.get("", response_model=ApiResponse[PermissionsData])
    def list_permissions(
        category: str | None = Query(default=None),
        ctx: AuthContext = Depends(deps.require(catalog.PERMISSIONS_READ)),
    ) -> ApiResponse[PermissionsData]:
        permissions = [permission_to_view(p) for p in service.list_permissions(category)]
        return ApiResponse[PermissionsData](data=PermissionsData(permissions=permissions))

    @router.get("/categorized", response_model=ApiResponse[CategorizedPermissionsData])
    def categorized_permissions(
        ctx: AuthContext = Depends(deps.require(catalog.PERMISSIONS_READ)),
    ) -> ApiResponse[CategorizedPermissionsData]:
        categories = {
            category: [permission_to_view(p) for p in permissions]
            for category, permissions in service.categorized_permissions().items()
        }
        return ApiResponse[CategorizedPermissionsData](
            data=CategorizedPermissionsData(categories=categories)
        )

    @router.post("", status_code=201, response_model=ApiResponse[PermissionData])
    def create_permission(
        req: CreatePermissionRequest,
        ctx: AuthContext = Depends(deps.require(catalog.PERMISSIONS_MANAGE)),
    ) -> ApiResponse[PermissionData]:
        permission = service.create_permission(req)
        _audit(ctx, "create", permission.permission_id, {"name": permission.name})
        return ApiResponse[PermissionData](
            message="Permission created successfully",
            data=PermissionData(permission=permission_to_view(permission)),
        )

    @router.get("/{permission_id}", response_model=ApiResponse[PermissionData])
    def get_permission(
        permission_id: str,
        ctx: AuthContext = Depends(deps.require(catalog.PERMISSIONS_READ)),
    ) -> ApiResponse[PermissionData]:
        permission = service.get_permission(permission_id)
        return ApiResponse[PermissionData](
            data=PermissionData(permission=permission_to_view(permission))
        )

    @router.patch("/{permission_id}", response_model=ApiResponse[PermissionData])
    def update_permission(
        permission_id: str,
        req: UpdatePermissionRequest,
        ctx: AuthContext = Depends(deps.require(catalog.PERMISSIONS_MANAGE)),
    ) -> ApiResponse[PermissionData]:
        permission = service.update_permission(permission_id, req)
        _audit(ctx, "update", permission_id, {"fields": sorted(req.model_dump(exclude_none=True))})
        return ApiResponse[PermissionData](
            message="Permission updated successfully",
            data=PermissionData(permission=permission_to_view(permission)),
        )

    @router.delete("/{permission_id}", response_model=ApiResponse[PermissionData])
    def delete_permission(
        permission_id: str,
        ctx: AuthContext = Depends(deps.require(catalog.PERMISSIONS_MANAGE)),
    ) -> ApiResponse[PermissionData]:
        service.delete_permission(permission_id)
        _audit(ctx, "delete", permission_id, {})
        return ApiResponse[PermissionData](message="Permission deleted successfully")

    return router
