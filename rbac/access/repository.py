"""Repositories for the role/permission graph."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from rbac.access.models import Permission, Role
from rbac.auth.models import utc_now
from rbac.storage.documents import DocumentStore

LOGGER = logging.getLogger(__name__)


class PermissionRepository:
    def __init__(self, store: DocumentStore) -> None:
        self._permissions = store.collection("permissions")

    @staticmethod
    def _to_model(doc: dict[str, Any] | None) -> Permission | None:
        if not doc:
            return None
        try:
            return Permission.model_validate(doc)
        except ValidationError:
            LOGGER.warning("invalid_permission_document")
            return None

    def _many(self, docs: list[dict[str, Any]]) -> list[Permission]:
        return [p for p in (self._to_model(doc) for doc in docs) if p]

    def create(self, permission: Permission) -> Permission:
        self._permissions.insert_one(permission.model_dump())
        return permission

    def get_by_id(self, permission_id: str) -> Permission | None:
        return self._to_model(self._permissions.find_one({"permission_id": permission_id}))

    def get_by_name(self, name: str) -> Permission | None:
        return self._to_model(self._permissions.find_one({"name": name.strip().lower()}))

    def list_all(self) -> list[Permission]:
        return self._many(self._permissions.find({}, sort=[("category", 1), ("name", 1)]))

    def list_by_category(self, category: str) -> list[Permission]:
        return self._many(self._permissions.find({"category": category}, sort=[("name", 1)]))

    def list_by_ids(self, permission_ids: list[str]) -> list[Permission]:
        if not permission_ids:
            return []
        return self._many(self._permissions.find({"permission_id": {"$in": permission_ids}}))

    def update(self, permission_id: str, changes: dict[str, Any]) -> Permission | None:
        if changes:
            fields = dict(changes, updated_at=utc_now())
            self._permissions.update_one({"permission_id": permission_id}, {"$set": fields})
        return self.get_by_id(permission_id)

    def delete(self, permission_id: str) -> bool:
        return self._permissions.delete_one({"permission_id": permission_id})


class RoleRepository:
    def __init__(self, store: DocumentStore) -> None:
        self._roles = store.collection("roles")

    @staticmethod
    def _to_model(doc: dict[str, Any] | None) -> Role | None:
        if not doc:
            return None
        try:
            return Role.model_validate(doc)
        except ValidationError:
            LOGGER.warning("invalid_role_document")
            return None

    def _many(self, docs: list[dict[str, Any]]) -> list[Role]:
        return [r for r in (self._to_model(doc) for doc in docs) if r]

    def create(self, role: Role) -> Role:
        self._roles.insert_one(role.model_dump())
        return role

    def get_by_id(self, role_id: str) -> Role | None:
        return self._to_model(self._roles.find_one({"role_id": role_id}))

    def get_by_name(self, name: str) -> Role | None:
        return self._to_model(self._roles.find_one({"name": name.strip().lower()}))

    def list_all(self) -> list[Role]:
        return self._many(self._roles.find({}, sort=[("hierarchy", 1), ("name", 1)]))

    def list_by_ids(self, role_ids: list[str]) -> list[Role]:
        if not role_ids:
            return []
        return self._many(
            self._roles.find({"role_id": {"$in": role_ids}}, sort=[("hierarchy", 1)])
        )

    def update(self, role_id: str, changes: dict[str, Any]) -> Role | None:
        if changes:
            fields = dict(changes, updated_at=utc_now())
            self._roles.update_one({"role_id": role_id}, {"$set": fields})
        return self.get_by_id(role_id)

    def add_permissions(self, role_id: str, permission_ids: list[str]) -> Role | None:
        self._roles.update_one(
            {"role_id": role_id},
            {
                "$addToSet": {"permission_ids": {"$each": permission_ids}},
                "$set": {"updated_at": utc_now()},
            },
        )
        return self.get_by_id(role_id)

    def remove_permissions(self, role_id: str, permission_ids: list[str]) -> Role | None:
        self._roles.update_one(
            {"role_id": role_id},
            {
                "$pull": {"permission_ids": {"$in": permission_ids}},
                "$set": {"updated_at": utc_now()},
            },
        )
        return self.get_by_id(role_id)

    def detach_permission(self, permission_id: str) -> int:
        """Drop a permission reference from every role that holds it."""
        return self._roles.update_many(
            {"permission_ids": permission_id},
            {"$pull": {"permission_ids": {"$in": [permission_id]}}},
        )

    def delete(self, role_id: str) -> bool:
        return self._roles.delete_one({"role_id": role_id})
