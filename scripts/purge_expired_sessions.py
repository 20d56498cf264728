#!/usr/bin/env python3
"""Delete expired refresh-token sessions.

MongoDB removes them on its own through the TTL index; the JSON-file backend
relies on this script being run periodically (cron or similar).
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

from rbac.auth.models import utc_now
from rbac.auth.repository import SessionRepository
from rbac.core.config import AppConfig
from rbac.storage.documents import open_document_store

DEFAULT_APP_ROOT = Path(__file__).resolve().parent.parent


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Purge expired refresh-token sessions.")
    parser.add_argument(
        "--app-root",
        type=Path,
        default=DEFAULT_APP_ROOT,
        help="Directory the file-store path is resolved against.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Count expired sessions without deleting them.",
    )
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    load_dotenv()
    config = AppConfig.from_env()

    store = None
    try:
        store = open_document_store(config.storage, app_root=args.app_root)
        if args.dry_run:
            expired = store.collection("sessions").count({"expires_at": {"$lt": utc_now()}})
            print(f"Expired sessions: {expired}")
            print("Mode: dry-run")
            return 0
        purged = SessionRepository(store).purge_expired()
        print(f"Purged sessions: {purged}")
        print(f"Backend: {store.backend}")
        return 0
    except Exception as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    finally:
        if store is not None:
            store.close()


if __name__ == "__main__":
    raise SystemExit(main())
