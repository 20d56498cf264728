"""Versioned MongoDB index migrations for RBAC collections."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from rbac.core.logging import CORRELATION_ID_CTX

LOGGER = logging.getLogger(__name__)

MigrationFn = Callable[[Any], None]


def _migration_20260301_01_identity_indexes(db: Any) -> None:
    db["users"].create_index("user_id", unique=True)
    db["users"].create_index("email", unique=True)
    db["users"].create_index([("created_at", -1)])
    db["roles"].create_index("role_id", unique=True)
    db["roles"].create_index("name", unique=True)
    db["roles"].create_index("hierarchy")
    db["permissions"].create_index("permission_id", unique=True)
    db["permissions"].create_index("name", unique=True)
    db["permissions"].create_index([("category", 1), ("name", 1)])


def _migration_20260301_02_session_indexes(db: Any) -> None:
    db["sessions"].create_index("session_id", unique=True)
    db["sessions"].create_index("token_hash", unique=True)
    db["sessions"].create_index([("user_id", 1), ("is_valid", 1)])
    db["sessions"].create_index(
        "expires_at",
        expireAfterSeconds=0,
        name="idx_sessions_expires_at_ttl",
    )


def _migration_20260301_03_audit_indexes(db: Any) -> None:
    db["audit_logs"].create_index("log_id", unique=True)
    db["audit_logs"].create_index([("timestamp", -1)])
    db["audit_logs"].create_index([("user_id", 1), ("timestamp", -1)])
    db["audit_logs"].create_index([("resource", 1), ("timestamp", -1)])
    db["audit_logs"].create_index([("action", 1), ("timestamp", -1)])
    db["settings"].create_index("setting_id", unique=True)


MIGRATIONS: list[tuple[str, MigrationFn]] = [
    ("20260301_01_identity_indexes", _migration_20260301_01_identity_indexes),
    ("20260301_02_session_indexes", _migration_20260301_02_session_indexes),
    ("20260301_03_audit_indexes", _migration_20260301_03_audit_indexes),
]


def apply_mongo_migrations(db: Any) -> list[str]:
    """Apply pending migrations to ``db`` and return the ids applied now."""
    migration_collection = db["schema_migrations"]
    migration_collection.create_index("migration_id", unique=True)

    applied: list[str] = []
    for migration_id, migration_fn in MIGRATIONS:
        if migration_collection.find_one({"migration_id": migration_id}):
            continue
        migration_fn(db)
        migration_collection.insert_one(
            {
                "migration_id": migration_id,
                "applied_at": datetime.now(timezone.utc),
                "correlation_id": CORRELATION_ID_CTX.get(),
            }
        )
        applied.append(migration_id)
        LOGGER.info("mongo_migration_applied", extra={"action": migration_id})
    return applied
