"""Audit logger: fire-and-forget append plus read-side queries."""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Protocol

from rbac.api.contracts import AuditStatistics, AuditUserCount, Pagination
from rbac.audit.models import (
    AuditActor,
    AuditLogEntry,
    AuditLogFilters,
    AuditStatus,
    as_utc,
)


class AuditLogRepositoryProtocol(Protocol):
    def append(self, entry: AuditLogEntry) -> None: ...

    def find(self, filters: AuditLogFilters) -> tuple[list[AuditLogEntry], int]: ...

    def recent(self, *, limit: int, user_id: str | None = None) -> list[AuditLogEntry]: ...

    def count(self, query: dict[str, Any]) -> int: ...

    def group_count(
        self, query: dict[str, Any], fields: tuple[str, ...]
    ) -> list[tuple[tuple[Any, ...], int]]: ...

    def time_range_query(
        self, start: datetime | None, end: datetime | None
    ) -> dict[str, Any]: ...


class AuditLogger:
    """Records security-relevant actions.

    Writing an entry never raises: a failing audit store must not break the
    request that is being audited, so errors are reported to the operational
    log instead.
    """

    def __init__(
        self, repo: AuditLogRepositoryProtocol, logger: logging.Logger | None = None
    ) -> None:
        self._repo = repo
        self._logger = logger or logging.getLogger(__name__)

    def log(
        self,
        actor: AuditActor,
        action: str,
        resource: str,
        *,
        resource_id: str | None = None,
        status: AuditStatus = "success",
        details: dict[str, Any] | None = None,
        error_message: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        try:
            self._repo.append(
                AuditLogEntry(
                    user_id=actor.user_id,
                    user_email=actor.email,
                    user_name=actor.name,
                    action=action,
                    resource=resource,
                    resource_id=resource_id,
                    details=details,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    status=status,
                    error_message=error_message,
                )
            )
        except Exception:
            self._logger.exception(
                "audit_log_write_failed",
                extra={"action": action, "resource": resource, "user_id": actor.user_id},
            )

    def log_login(
        self,
        actor: AuditActor,
        *,
        success: bool,
        ip_address: str | None = None,
        user_agent: str | None = None,
        error_message: str | None = None,
    ) -> None:
        self.log(
            actor,
            "login",
            "auth",
            status="success" if success else "failure",
            error_message=error_message,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    def log_logout(
        self,
        actor: AuditActor,
        *,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        self.log(actor, "logout", "auth", ip_address=ip_address, user_agent=user_agent)

    def log_registration(
        self,
        actor: AuditActor,
        *,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        self.log(
            actor,
            "register",
            "auth",
            resource_id=actor.user_id or None,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    def get_audit_logs(
        self, filters: AuditLogFilters
    ) -> tuple[list[AuditLogEntry], Pagination]:
        logs, total = self._repo.find(filters)
        return logs, Pagination(
            total=total,
            page=filters.page,
            limit=filters.limit,
            total_pages=math.ceil(total / filters.limit) if total else 0,
        )

    def get_statistics(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> AuditStatistics:
        query = self._repo.time_range_query(as_utc(start), as_utc(end))
        total = self._repo.count(query)
        success = self._repo.count({**query, "status": "success"})
        failure = self._repo.count({**query, "status": "failure"})
        by_action = {
            str(key[0]): count for key, count in self._repo.group_count(query, ("action",))
        }
        by_resource = {
            str(key[0]): count for key, count in self._repo.group_count(query, ("resource",))
        }
        by_user = sorted(
            self._repo.group_count(query, ("user_id", "user_email")),
            key=lambda row: row[1],
            reverse=True,
        )[:10]
        return AuditStatistics(
            total_logs=total,
            success_count=success,
            failure_count=failure,
            by_action=by_action,
            by_resource=by_resource,
            by_user=[
                AuditUserCount(
                    user_id=str(key[0] or ""), user_email=str(key[1] or ""), count=count
                )
                for key, count in by_user
            ],
        )

    def get_user_activity(self, user_id: str, limit: int = 50) -> list[AuditLogEntry]:
        return self._repo.recent(limit=limit, user_id=user_id)

    def get_recent_activity(self, limit: int = 20) -> list[AuditLogEntry]:
        return self._repo.recent(limit=limit)
