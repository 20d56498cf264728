from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from rbac.audit.mapper import entry_to_view
from rbac.audit.models import AuditActor, AuditLogEntry, AuditLogFilters
from rbac.audit.repository import AuditLogRepository, build_audit_query
from rbac.audit.service import AuditLogger
from rbac.storage.documents import DocumentStore


class _BrokenRepo(AuditLogRepository):
    def append(self, entry: AuditLogEntry) -> None:
        raise RuntimeError("disk full")


def _logger(tmp_path: Path) -> AuditLogger:
    return AuditLogger(AuditLogRepository(DocumentStore.in_directory(tmp_path)))


def test_audit_log_never_raises_when_store_fails(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    audit = AuditLogger(_BrokenRepo(DocumentStore.in_directory(tmp_path)))

    with caplog.at_level(logging.ERROR):
        audit.log(AuditActor(user_id="u1", email="bob@example.com"), "create", "users")

    assert any(r.getMessage() == "audit_log_write_failed" for r in caplog.records)


def test_audit_login_records_failure_status(tmp_path: Path) -> None:
    audit = _logger(tmp_path)

    audit.log_login(
        AuditActor(email="bob@example.com"),
        success=False,
        ip_address="127.0.0.1",
        error_message="Invalid credentials",
    )
    logs, pagination = audit.get_audit_logs(AuditLogFilters(status="failure"))

    assert pagination.total == 1
    assert logs[0].action == "login"
    assert logs[0].resource == "auth"
    assert logs[0].error_message == "Invalid credentials"
    assert logs[0].user_id == ""


def test_audit_filters_and_pagination(tmp_path: Path) -> None:
    audit = _logger(tmp_path)
    bob = AuditActor(user_id="u1", email="Bob@Example.com", name="Bob Tester")
    alice = AuditActor(user_id="u2", email="alice@example.com", name="Alice Tester")
    for _ in range(3):
        audit.log(bob, "update", "users", resource_id="u9")
    audit.log(alice, "delete", "roles", resource_id="r1")

    bob_logs, bob_page = audit.get_audit_logs(
        AuditLogFilters(user_email="bob@example", limit=2, page=2)
    )
    role_logs, _ = audit.get_audit_logs(AuditLogFilters(resource="roles", action="delete"))

    assert bob_page.total == 3
    assert bob_page.total_pages == 2
    assert len(bob_logs) == 1
    assert [log.resource_id for log in role_logs] == ["r1"]
    assert [log.user_id for log in audit.get_user_activity("u2")] == ["u2"]
    assert len(audit.get_recent_activity(limit=2)) == 2


def test_audit_date_range_treats_naive_dates_as_utc(tmp_path: Path) -> None:
    audit = _logger(tmp_path)
    audit.log(AuditActor(user_id="u1"), "login", "auth")
    now = datetime.now(timezone.utc)

    inside, _ = audit.get_audit_logs(
        AuditLogFilters(start_date=(now - timedelta(minutes=5)).replace(tzinfo=None))
    )
    outside, _ = audit.get_audit_logs(AuditLogFilters(end_date=now - timedelta(days=1)))

    assert len(inside) == 1
    assert outside == []


def test_audit_statistics(tmp_path: Path) -> None:
    audit = _logger(tmp_path)
    bob = AuditActor(user_id="u1", email="bob@example.com")
    alice = AuditActor(user_id="u2", email="alice@example.com")
    audit.log_login(bob, success=True)
    audit.log_login(bob, success=False, error_message="Invalid credentials")
    audit.log_logout(bob)
    audit.log(alice, "create", "roles", resource_id="r1")

    stats = audit.get_statistics()

    assert stats.total_logs == 4
    assert stats.success_count == 3
    assert stats.failure_count == 1
    assert stats.by_action == {"login": 2, "logout": 1, "create": 1}
    assert stats.by_resource == {"auth": 3, "roles": 1}
    assert stats.by_user[0].user_id == "u1"
    assert stats.by_user[0].count == 3


def test_build_audit_query_escapes_email_pattern() -> None:
    query = build_audit_query(AuditLogFilters(user_email="a.b+c@example.com", status="success"))

    assert query["status"] == "success"
    assert query["user_email"] == {"$regex": r"a\.b\+c@example\.com", "$options": "i"}


def test_entry_to_view_uses_camel_case_aliases() -> None:
    entry = AuditLogEntry(user_id="u1", action="login", resource="auth", ip_address="10.0.0.1")

    payload = entry_to_view(entry).model_dump(by_alias=True)

    assert payload["id"] == entry.log_id
    assert payload["ipAddress"] == "10.0.0.1"
    assert payload["userId"] == "u1"
