"""Repositories for users (credential store) and refresh-token sessions."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from rbac.auth.models import DeviceInfo, Session, User, utc_now
from rbac.storage.documents import DocumentStore

LOGGER = logging.getLogger(__name__)

USER_SORT_FIELDS = {"created_at", "updated_at", "email", "first_name", "last_name", "last_login_at"}


@dataclass(frozen=True)
class UserFilters:
    search: str = ""
    role_id: str = ""
    is_active: bool | None = None
    page: int = 1
    limit: int = 20
    sort_by: str = "created_at"
    order: str = "desc"


def _user_query(filters: UserFilters) -> dict[str, Any]:
    query: dict[str, Any] = {}
    if filters.search:
        pattern = re.escape(filters.search.strip())
        query["$or"] = [
            {field: {"$regex": pattern, "$options": "i"}}
            for field in ("first_name", "last_name", "email")
        ]
    if filters.role_id:
        query["role_ids"] = filters.role_id
    if filters.is_active is not None:
        query["is_active"] = filters.is_active
    return query


class UserRepository:
    """Persisted users; email uniqueness is enforced by the store."""

    def __init__(self, store: DocumentStore) -> None:
        self._users = store.collection("users")

    @staticmethod
    def _to_model(doc: dict[str, Any] | None) -> User | None:
        if not doc:
            return None
        try:
            return User.model_validate(doc)
        except ValidationError:
            LOGGER.warning("invalid_user_document", extra={"user_id": doc.get("user_id")})
            return None

    def create(self, user: User) -> User:
        self._users.insert_one(user.model_dump())
        return user

    def get_by_id(self, user_id: str) -> User | None:
        return self._to_model(self._users.find_one({"user_id": user_id}))

    def get_by_email(self, email: str) -> User | None:
        return self._to_model(self._users.find_one({"email": email.strip().lower()}))

    def list(self, filters: UserFilters) -> tuple[list[User], int]:
        query = _user_query(filters)
        sort_by = filters.sort_by if filters.sort_by in USER_SORT_FIELDS else "created_at"
        direction = 1 if filters.order == "asc" else -1
        page = max(1, filters.page)
        docs = self._users.find(
            query,
            sort=[(sort_by, direction)],
            skip=(page - 1) * filters.limit,
            limit=filters.limit,
        )
        users = [user for user in (self._to_model(doc) for doc in docs) if user]
        return users, self._users.count(query)

    def count_with_role(self, role_id: str) -> int:
        return self._users.count({"role_ids": role_id})

    def update(self, user_id: str, changes: dict[str, Any]) -> User | None:
        if changes:
            fields = dict(changes)
            if "email" in fields:
                fields["email"] = str(fields["email"]).strip().lower()
            fields["updated_at"] = utc_now()
            self._users.update_one({"user_id": user_id}, {"$set": fields})
        return self.get_by_id(user_id)

    def set_roles(self, user_id: str, role_ids: list[str]) -> User | None:
        return self.update(user_id, {"role_ids": list(dict.fromkeys(role_ids))})

    def update_last_login(self, user_id: str, ip: str) -> None:
        self._users.update_one(
            {"user_id": user_id},
            {"$set": {"last_login_at": utc_now(), "last_login_ip": ip}},
        )

    def delete(self, user_id: str) -> bool:
        return self._users.delete_one({"user_id": user_id})


class SessionRepository:
    """Revocable refresh-token sessions keyed by token digest."""

    def __init__(self, store: DocumentStore) -> None:
        self._sessions = store.collection("sessions")

    @staticmethod
    def _to_model(doc: dict[str, Any] | None) -> Session | None:
        if not doc:
            return None
        try:
            return Session.model_validate(doc)
        except ValidationError:
            LOGGER.warning("invalid_session_document")
            return None

    def create(
        self,
        *,
        user_id: str,
        token_hash: str,
        device_info: DeviceInfo,
        expires_at: datetime,
        remember_me: bool = False,
    ) -> Session:
        session = Session(
            user_id=user_id,
            token_hash=token_hash,
            device_info=device_info,
            expires_at=expires_at,
            remember_me=remember_me,
        )
        self._sessions.insert_one(session.model_dump())
        return session

    def find_by_token_hash(self, token_hash: str) -> Session | None:
        """Return the session only while it is valid and unexpired."""
        return self._to_model(
            self._sessions.find_one(
                {
                    "token_hash": token_hash,
                    "is_valid": True,
                    "expires_at": {"$gt": utc_now()},
                }
            )
        )

    def find_active_for_user(self, user_id: str) -> list[Session]:
        docs = self._sessions.find(
            {"user_id": user_id, "is_valid": True, "expires_at": {"$gt": utc_now()}},
            sort=[("created_at", -1)],
        )
        return [s for s in (self._to_model(doc) for doc in docs) if s]

    def invalidate(self, token_hash: str) -> bool:
        return bool(
            self._sessions.update_one(
                {"token_hash": token_hash, "is_valid": True},
                {"$set": {"is_valid": False, "updated_at": utc_now()}},
            )
        )

    def invalidate_all_for_user(self, user_id: str) -> bool:
        return bool(
            self._sessions.update_many(
                {"user_id": user_id, "is_valid": True},
                {"$set": {"is_valid": False, "updated_at": utc_now()}},
            )
        )

    def purge_expired(self) -> int:
        return self._sessions.delete_many({"expires_at": {"$lt": utc_now()}})
