from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from rbac.core.migrations import MigrationDriftError, apply_migrations


def test_apply_migrations_creates_rate_limit_table(tmp_path: Path) -> None:
    db_path = tmp_path / "nested" / "rate_limit.db"

    applied = apply_migrations(db_path)

    connection = sqlite3.connect(str(db_path))
    try:
        cursor = connection.cursor()
        tables = {
            row[0]
            for row in cursor.execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            ).fetchall()
        }

        assert "schema_migrations" in tables
        assert "rate_limit_hits" in tables

        migration_ids = {
            row[0]
            for row in cursor.execute(
                "SELECT migration_id FROM schema_migrations"
            ).fetchall()
        }
        assert "0001_rate_limit_hits.sql" in migration_ids
        assert applied == ["0001_rate_limit_hits.sql"]
    finally:
        connection.close()


def test_apply_migrations_is_idempotent(tmp_path: Path) -> None:
    db_path = tmp_path / "rate_limit.db"

    apply_migrations(db_path)
    second = apply_migrations(db_path)

    assert second == []


def test_apply_migrations_detects_edited_migration(tmp_path: Path) -> None:
    migrations_dir = tmp_path / "sql"
    migrations_dir.mkdir()
    script = migrations_dir / "0001_hits.sql"
    script.write_text("CREATE TABLE hits (key TEXT);", encoding="utf-8")
    db_path = tmp_path / "hits.db"

    assert apply_migrations(db_path, migrations_dir) == ["0001_hits.sql"]
    script.write_text("CREATE TABLE hits (key TEXT, at INTEGER);", encoding="utf-8")

    with pytest.raises(MigrationDriftError):
        apply_migrations(db_path, migrations_dir)
