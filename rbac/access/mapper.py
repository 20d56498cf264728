from __future__ import annotations

from rbac.access.models import Permission, Role
from rbac.api.contracts import PermissionView, RoleSummaryView, RoleView


def permission_to_view(permission: Permission) -> PermissionView:
    return PermissionView(
        id=permission.permission_id,
        name=permission.name,
        display_name=permission.display_name,
        description=permission.description,
        resource=permission.resource,
        action=permission.action,
        category=permission.category,
        is_system_permission=permission.is_system_permission,
    )


def role_to_summary(role: Role) -> RoleSummaryView:
    return RoleSummaryView(
        id=role.role_id,
        name=role.name,
        display_name=role.display_name,
        description=role.description,
        hierarchy=role.hierarchy,
    )


def role_to_view(role: Role, permissions: list[Permission]) -> RoleView:
    return RoleView(
        id=role.role_id,
        name=role.name,
        display_name=role.display_name,
        description=role.description,
        hierarchy=role.hierarchy,
        is_system_role=role.is_system_role,
        permissions=[permission_to_view(p) for p in permissions],
        created_at=role.created_at,
    )
