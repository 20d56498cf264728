"""Versioned SQL migrations for the SQLite rate-limit database."""

from __future__ import annotations

import hashlib
import sqlite3
from contextlib import closing
from pathlib import Path

MIGRATIONS_DIR = Path(__file__).resolve().parent / "sql"

_LEDGER_DDL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
  migration_id TEXT PRIMARY KEY,
  checksum TEXT NOT NULL,
  applied_at INTEGER NOT NULL
)
"""


class MigrationDriftError(RuntimeError):
    """An applied migration file was edited after it ran."""


def _checksum(script: str) -> str:
    return hashlib.sha256(script.encode("utf-8")).hexdigest()


def apply_migrations(database_path: Path, migrations_dir: Path = MIGRATIONS_DIR) -> list[str]:
    """Run pending ``*.sql`` files in name order and return the ids applied now.

    Files already recorded in ``schema_migrations`` are skipped, but their
    checksum must still match; an edited migration raises ``MigrationDriftError``.
    """
    database_path.parent.mkdir(parents=True, exist_ok=True)
    applied: list[str] = []
    with closing(sqlite3.connect(str(database_path))) as connection:
        connection.execute(_LEDGER_DDL)
        recorded = dict(
            connection.execute("SELECT migration_id, checksum FROM schema_migrations").fetchall()
        )
        for path in sorted(migrations_dir.glob("*.sql")):
            script = path.read_text(encoding="utf-8")
            checksum = _checksum(script)
            if path.name in recorded:
                if recorded[path.name] != checksum:
                    raise MigrationDriftError(f"Migration {path.name} changed after it was applied")
                continue
            connection.executescript(script)
            connection.execute(
                "INSERT INTO schema_migrations(migration_id, checksum, applied_at) "
                "VALUES (?, ?, strftime('%s','now'))",
                (path.name, checksum),
            )
            applied.append(path.name)
        connection.commit()
    return applied
