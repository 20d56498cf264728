"""Append-only audit log persistence."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from rbac.audit.models import AuditLogEntry, AuditLogFilters
from rbac.storage.documents import DocumentStore

LOGGER = logging.getLogger(__name__)


def _time_range(start: datetime | None, end: datetime | None) -> dict[str, Any]:
    bounds: dict[str, Any] = {}
    if start is not None:
        bounds["$gte"] = start
    if end is not None:
        bounds["$lte"] = end
    return bounds


def build_audit_query(filters: AuditLogFilters) -> dict[str, Any]:
    query: dict[str, Any] = {}
    for field_name in ("user_id", "action", "resource", "resource_id", "status"):
        value = getattr(filters, field_name)
        if value:
            query[field_name] = value
    if filters.user_email:
        query["user_email"] = {"$regex": re.escape(filters.user_email), "$options": "i"}
    bounds = _time_range(filters.start_date, filters.end_date)
    if bounds:
        query["timestamp"] = bounds
    return query


class AuditLogRepository:
    def __init__(self, store: DocumentStore) -> None:
        self._logs = store.collection("audit_logs")

    def append(self, entry: AuditLogEntry) -> None:
        self._logs.insert_one(entry.model_dump())

    def _many(self, docs: list[dict[str, Any]]) -> list[AuditLogEntry]:
        entries: list[AuditLogEntry] = []
        for doc in docs:
            try:
                entries.append(AuditLogEntry.model_validate(doc))
            except ValidationError:
                LOGGER.warning("invalid_audit_document")
        return entries

    def find(self, filters: AuditLogFilters) -> tuple[list[AuditLogEntry], int]:
        query = build_audit_query(filters)
        docs = self._logs.find(
            query,
            sort=[("timestamp", -1)],
            skip=(filters.page - 1) * filters.limit,
            limit=filters.limit,
        )
        return self._many(docs), self._logs.count(query)

    def recent(self, *, limit: int, user_id: str | None = None) -> list[AuditLogEntry]:
        query = {"user_id": user_id} if user_id else {}
        return self._many(self._logs.find(query, sort=[("timestamp", -1)], limit=limit))

    def count(self, query: dict[str, Any]) -> int:
        return self._logs.count(query)

    def group_count(
        self, query: dict[str, Any], fields: tuple[str, ...]
    ) -> list[tuple[tuple[Any, ...], int]]:
        return self._logs.group_count(query, fields)

    def time_range_query(
        self, start: datetime | None, end: datetime | None
    ) -> dict[str, Any]:
        bounds = _time_range(start, end)
        return {"timestamp": bounds} if bounds else {}
