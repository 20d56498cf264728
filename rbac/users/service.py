"""User administration on top of the credential store."""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Any, Protocol

from rbac.access.service import AccessService
from rbac.api.contracts import Pagination, UserView
from rbac.api.errors import ConflictError, ForbiddenError, NotFoundError
from rbac.auth.models import CreateUserRequest, UpdateUserRequest, User
from rbac.auth.repository import UserFilters
from rbac.auth.service import AuthService
from rbac.core.security import hash_password
from rbac.storage.documents import DuplicateKeyError
from rbac.users.mapper import user_to_view


class UserAdminRepositoryProtocol(Protocol):
    def get_by_id(self, user_id: str) -> User | None: ...

    def get_by_email(self, email: str) -> User | None: ...

    def list(self, filters: UserFilters) -> tuple[list[User], int]: ...

    def update(self, user_id: str, changes: dict[str, Any]) -> User | None: ...

    def set_roles(self, user_id: str, role_ids: list[str]) -> User | None: ...

    def delete(self, user_id: str) -> bool: ...


class SessionRevokerProtocol(Protocol):
    def invalidate_all_for_user(self, user_id: str) -> bool: ...


class UsersService:
    def __init__(
        self,
        users: UserAdminRepositoryProtocol,
        sessions: SessionRevokerProtocol,
        access: AccessService,
        auth: AuthService,
        logger: logging.Logger | None = None,
    ) -> None:
        self._users = users
        self._sessions = sessions
        self._access = access
        self._auth = auth
        self._logger = logger or logging.getLogger(__name__)

    def user_view(self, user: User) -> UserView:
        return user_to_view(
            user,
            self._access.roles_for(user.role_ids),
            self._access.resolve_permission_names(user.role_ids),
        )

    def list_users(self, filters: UserFilters) -> tuple[list[UserView], Pagination]:
        if filters.role_id:
            role = self._access.get_role_by_name(filters.role_id)
            if role is not None:
                filters = replace(filters, role_id=role.role_id)
        users, total = self._users.list(filters)
        return [self.user_view(user) for user in users], Pagination(
            total=total,
            page=filters.page,
            limit=filters.limit,
            total_pages=math.ceil(total / filters.limit) if total else 0,
        )

    def get_user(self, user_id: str) -> User:
        user = self._users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User")
        return user

    def create_user(self, req: CreateUserRequest) -> User:
        return self._auth.register(req, roles=req.roles or None, is_active=req.is_active)

    def update_user(
        self, user_id: str, req: UpdateUserRequest, *, can_manage: bool
    ) -> User:
        """Apply profile changes.

        Only callers allowed to manage users may change roles or activation;
        password changes and deactivation revoke every session of the user.
        """
        user = self.get_user(user_id)
        if not can_manage and (req.roles is not None or req.is_active is not None):
            raise ForbiddenError("Only administrators can change roles or account status")

        changes = req.model_dump(exclude_none=True, exclude={"password", "roles"})
        if "email" in changes:
            changes["email"] = str(changes["email"]).strip().lower()
            owner = self._users.get_by_email(changes["email"])
            if owner is not None and owner.user_id != user_id:
                raise ConflictError("User with this email already exists")
        if req.password is not None:
            changes["password_hash"] = hash_password(req.password)
        if req.roles is not None:
            changes["role_ids"] = self._access.resolve_role_refs(req.roles)

        try:
            updated = self._users.update(user_id, changes)
        except DuplicateKeyError as exc:
            raise ConflictError("User with this email already exists") from exc
        if updated is None:
            raise NotFoundError("User")

        if req.password is not None or (user.is_active and req.is_active is False):
            self._sessions.invalidate_all_for_user(user_id)
            self._logger.info("user_sessions_revoked", extra={"user_id": user_id})
        return updated

    def set_user_roles(self, user_id: str, refs: list[str]) -> User:
        self.get_user(user_id)
        updated = self._users.set_roles(user_id, self._access.resolve_role_refs(refs))
        if updated is None:
            raise NotFoundError("User")
        return updated

    def delete_user(self, actor_id: str, user_id: str) -> User:
        if actor_id == user_id:
            raise ForbiddenError("Cannot delete your own account")
        user = self.get_user(user_id)
        self._sessions.invalidate_all_for_user(user_id)
        self._users.delete(user_id)
        return user
