"""SQLite schema migrations for runtime state."""

from rbac.core.migrations.runner import MigrationDriftError, apply_migrations

__all__ = ["MigrationDriftError", "apply_migrations"]
