from __future__ import annotations

from rbac.api.contracts import AuditLogView
from rbac.audit.models import AuditLogEntry


def entry_to_view(entry: AuditLogEntry) -> AuditLogView:
    return AuditLogView(
        id=entry.log_id,
        user_id=entry.user_id,
        user_email=entry.user_email,
        user_name=entry.user_name,
        action=entry.action,
        resource=entry.resource,
        resource_id=entry.resource_id,
        details=entry.details,
        ip_address=entry.ip_address,
        user_agent=entry.user_agent,
        status=entry.status,
        error_message=entry.error_message,
        timestamp=entry.timestamp,
    )
