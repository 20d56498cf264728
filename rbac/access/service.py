"""Role/permission graph: traversal, catalog seeding and admin rules."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from rbac.access.catalog import ALL_PERMISSIONS, DEFAULT_ROLES, describe_permission
from rbac.access.mapper import role_to_view
from rbac.access.models import (
    CreatePermissionRequest,
    CreateRoleRequest,
    Permission,
    Role,
    UpdatePermissionRequest,
    UpdateRoleRequest,
)
from rbac.api.contracts import RoleView
from rbac.api.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationFailedError,
)
from rbac.storage.documents import DuplicateKeyError


class PermissionRepositoryProtocol(Protocol):
    def create(self, permission: Permission) -> Permission: ...

    def get_by_id(self, permission_id: str) -> Permission | None: ...

    def get_by_name(self, name: str) -> Permission | None: ...

    def list_all(self) -> list[Permission]: ...

    def list_by_category(self, category: str) -> list[Permission]: ...

    def list_by_ids(self, permission_ids: list[str]) -> list[Permission]: ...

    def update(self, permission_id: str, changes: dict[str, Any]) -> Permission | None: ...

    def delete(self, permission_id: str) -> bool: ...


class RoleRepositoryProtocol(Protocol):
    def create(self, role: Role) -> Role: ...

    def get_by_id(self, role_id: str) -> Role | None: ...

    def get_by_name(self, name: str) -> Role | None: ...

    def list_all(self) -> list[Role]: ...

    def list_by_ids(self, role_ids: list[str]) -> list[Role]: ...

    def update(self, role_id: str, changes: dict[str, Any]) -> Role | None: ...

    def add_permissions(self, role_id: str, permission_ids: list[str]) -> Role | None: ...

    def remove_permissions(self, role_id: str, permission_ids: list[str]) -> Role | None: ...

    def detach_permission(self, permission_id: str) -> int: ...

    def delete(self, role_id: str) -> bool: ...


class RoleUsageProtocol(Protocol):
    def count_with_role(self, role_id: str) -> int: ...


class AccessService:
    """Resolves User -> Roles -> Permissions and guards graph mutations."""

    def __init__(
        self,
        roles: RoleRepositoryProtocol,
        permissions: PermissionRepositoryProtocol,
        role_usage: RoleUsageProtocol | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._roles = roles
        self._permissions = permissions
        self._role_usage = role_usage
        self._logger = logger or logging.getLogger(__name__)

    # Graph traversal

    def roles_for(self, role_ids: list[str]) -> list[Role]:
        """Roles that still exist for the given references, senior first."""
        return self._roles.list_by_ids(list(role_ids))

    def role_names_for(self, role_ids: list[str]) -> list[str]:
        return [role.name for role in self.roles_for(role_ids)]

    def resolve_permission_names(self, role_ids: list[str]) -> list[str]:
        """Union of permission names granted by the referenced roles.

        References to deleted roles or permissions are dropped silently.
        """
        permission_ids: list[str] = []
        for role in self.roles_for(role_ids):
            permission_ids.extend(role.permission_ids)
        if not permission_ids:
            return []
        permissions = self._permissions.list_by_ids(list(dict.fromkeys(permission_ids)))
        return sorted({permission.name for permission in permissions})

    def resolve_role_refs(self, refs: list[str]) -> list[str]:
        """Map role ids or names to ids; unknown references are rejected."""
        resolved: list[str] = []
        unknown: list[str] = []
        for ref in dict.fromkeys(ref.strip() for ref in refs if ref.strip()):
            role = self._roles.get_by_id(ref) or self._roles.get_by_name(ref)
            if role is None:
                unknown.append(ref)
            else:
                resolved.append(role.role_id)
        if unknown:
            raise ValidationFailedError(
                "Unknown roles", details=[{"field": "roles", "value": ref} for ref in unknown]
            )
        return list(dict.fromkeys(resolved))

    def resolve_permission_refs(self, refs: list[str]) -> list[str]:
        """Map permission ids or names to ids; unknown references are rejected."""
        resolved: list[str] = []
        unknown: list[str] = []
        for ref in dict.fromkeys(ref.strip() for ref in refs if ref.strip()):
            permission = self._permissions.get_by_id(ref) or self._permissions.get_by_name(ref)
            if permission is None:
                unknown.append(ref)
            else:
                resolved.append(permission.permission_id)
        if unknown:
            raise ValidationFailedError(
                "Unknown permissions",
                details=[{"field": "permissions", "value": ref} for ref in unknown],
            )
        return list(dict.fromkeys(resolved))

    # Catalog

    def seed_defaults(self) -> None:
        """Create missing catalog permissions and default system roles."""
        ids_by_name: dict[str, str] = {}
        for name in ALL_PERMISSIONS:
            existing = self._permissions.get_by_name(name)
            if existing is None:
                existing = self._permissions.create(
                    Permission(**describe_permission(name), is_system_permission=True)
                )
                self._logger.info("permission_seeded", extra={"action": name})
            ids_by_name[name] = existing.permission_id

        for definition in DEFAULT_ROLES:
            wanted = [ids_by_name[name] for name in definition["permissions"]]
            role = self._roles.get_by_name(definition["name"])
            if role is None:
                self._roles.create(
                    Role(
                        name=definition["name"],
                        display_name=definition["display_name"],
                        description=definition["description"],
                        hierarchy=definition["hierarchy"],
                        permission_ids=wanted,
                        is_system_role=True,
                    )
                )
                self._logger.info("role_seeded", extra={"resource": definition["name"]})
            elif definition["name"] == "admin":
                missing = [pid for pid in wanted if pid not in role.permission_ids]
                if missing:
                    self._roles.add_permissions(role.role_id, missing)

    def get_role_by_name(self, name: str) -> Role | None:
        return self._roles.get_by_name(name)

    # Permissions

    def list_permissions(self, category: str | None = None) -> list[Permission]:
        if category:
            return self._permissions.list_by_category(category)
        return self._permissions.list_all()

    def categorized_permissions(self) -> dict[str, list[Permission]]:
        grouped: dict[str, list[Permission]] = {}
        for permission in self._permissions.list_all():
            grouped.setdefault(permission.category, []).append(permission)
        return grouped

    def get_permission(self, permission_id: str) -> Permission:
        permission = self._permissions.get_by_id(permission_id)
        if permission is None:
            raise NotFoundError("Permission")
        return permission

    def create_permission(self, req: CreatePermissionRequest) -> Permission:
        if self._permissions.get_by_name(req.name) is not None:
            raise ConflictError("Permission with this name already exists")
        resource, action = req.name.split(".", 1)
        try:
            return self._permissions.create(
                Permission(
                    name=req.name,
                    display_name=req.display_name,
                    description=req.description,
                    resource=resource,
                    action=action,
                    category=req.category,
                )
            )
        except DuplicateKeyError as exc:
            raise ConflictError("Permission with this name already exists") from exc

    def update_permission(self, permission_id: str, req: UpdatePermissionRequest) -> Permission:
        self.get_permission(permission_id)
        changes = req.model_dump(exclude_none=True)
        updated = self._permissions.update(permission_id, changes)
        if updated is None:
            raise NotFoundError("Permission")
        return updated

    def delete_permission(self, permission_id: str) -> None:
        permission = self.get_permission(permission_id)
        if permission.is_system_permission:
            raise ForbiddenError("Cannot delete system permission")
        self._roles.detach_permission(permission_id)
        self._permissions.delete(permission_id)
        self._logger.info("permission_deleted", extra={"resource": permission.name})

    # Roles

    def list_roles(self) -> list[Role]:
        return self._roles.list_all()

    def get_role(self, role_id: str) -> Role:
        role = self._roles.get_by_id(role_id)
        if role is None:
            raise NotFoundError("Role")
        return role

    def role_view(self, role: Role) -> RoleView:
        return role_to_view(role, self._permissions.list_by_ids(role.permission_ids))

    def create_role(self, req: CreateRoleRequest) -> Role:
        if self._roles.get_by_name(req.name) is not None:
            raise ConflictError("Role with this name already exists")
        permission_ids = self.resolve_permission_refs(req.permissions)
        try:
            return self._roles.create(
                Role(
                    name=req.name,
                    display_name=req.display_name,
                    description=req.description,
                    hierarchy=req.hierarchy,
                    permission_ids=permission_ids,
                )
            )
        except DuplicateKeyError as exc:
            raise ConflictError("Role with this name already exists") from exc

    def update_role(self, role_id: str, req: UpdateRoleRequest) -> Role:
        self.get_role(role_id)
        changes = req.model_dump(exclude_none=True, exclude={"permissions"})
        if req.permissions is not None:
            changes["permission_ids"] = self.resolve_permission_refs(req.permissions)
        updated = self._roles.update(role_id, changes)
        if updated is None:
            raise NotFoundError("Role")
        return updated

    def delete_role(self, role_id: str) -> None:
        role = self.get_role(role_id)
        if role.is_system_role:
            raise ForbiddenError("Cannot delete system role")
        if self._role_usage is not None:
            assigned = self._role_usage.count_with_role(role_id)
            if assigned:
                raise ConflictError(f"Role is assigned to {assigned} user(s)")
        self._roles.delete(role_id)

    def add_role_permissions(self, role_id: str, refs: list[str]) -> Role:
        self.get_role(role_id)
        updated = self._roles.add_permissions(role_id, self.resolve_permission_refs(refs))
        if updated is None:
            raise NotFoundError("Role")
        return updated

    def remove_role_permissions(self, role_id: str, refs: list[str]) -> Role:
        self.get_role(role_id)
        updated = self._roles.remove_permissions(role_id, self.resolve_permission_refs(refs))
        if updated is None:
            raise NotFoundError("Role")
        return updated

    def set_role_permissions(self, role_id: str, refs: list[str]) -> Role:
        self.get_role(role_id)
        updated = self._roles.update(
            role_id, {"permission_ids": self.resolve_permission_refs(refs)}
        )
        if updated is None:
            raise NotFoundError("Role")
        return updated
