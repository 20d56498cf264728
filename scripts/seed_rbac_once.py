#!/usr/bin/env python3
"""One-shot seeding of the permission catalog, default roles and admin account."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

from rbac.access.catalog import ALL_PERMISSIONS, DEFAULT_ROLES
from rbac.access.repository import PermissionRepository, RoleRepository
from rbac.access.service import AccessService
from rbac.auth.repository import SessionRepository, UserRepository
from rbac.auth.service import AuthService
from rbac.auth.tokens import TokenService
from rbac.core.config import AppConfig
from rbac.core.logging import setup_logging
from rbac.storage.documents import open_document_store

DEFAULT_APP_ROOT = Path(__file__).resolve().parent.parent


def _parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Seed permissions, default roles and the bootstrap admin user."
    )
    parser.add_argument(
        "--app-root",
        type=Path,
        default=DEFAULT_APP_ROOT,
        help="Directory the file-store path is resolved against.",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only report what is missing; do not write anything.",
    )
    return parser.parse_args()


def _print_check_report(access: AccessService, users: UserRepository, admin_email: str) -> None:
    """Print which catalog entries are absent from the store."""
    existing_permissions = {p.name for p in access.list_permissions()}
    existing_roles = {r.name for r in access.list_roles()}
    missing_permissions = [name for name in ALL_PERMISSIONS if name not in existing_permissions]
    missing_roles = [r["name"] for r in DEFAULT_ROLES if r["name"] not in existing_roles]

    print(f"Permissions in store: {len(existing_permissions)}")
    print(f"Missing catalog permissions: {len(missing_permissions)}")
    if missing_permissions:
        print(f"Missing preview: {', '.join(missing_permissions[:10])}")
    print(f"Roles in store: {len(existing_roles)}")
    print(f"Missing default roles: {', '.join(missing_roles) or '-'}")
    print(f"Admin account present: {users.get_by_email(admin_email) is not None}")


def main() -> int:
    """Execute check or seed flow."""
    args = _parse_args()
    load_dotenv()
    config = AppConfig.from_env()
    setup_logging(config.logging.level)

    store = None
    try:
        store = open_document_store(config.storage, app_root=args.app_root)
        users = UserRepository(store)
        access = AccessService(
            RoleRepository(store), PermissionRepository(store), role_usage=users
        )
        if args.check:
            _print_check_report(access, users, config.auth.admin_email)
            return 0

        auth = AuthService(
            users, SessionRepository(store), TokenService(config.auth), access, config.auth
        )
        auth.bootstrap_admin_user()
        print(f"Backend: {store.backend}")
        print(f"Permissions total now: {len(access.list_permissions())}")
        print(f"Roles total now: {len(access.list_roles())}")
        print(f"Admin account: {config.auth.admin_email}")
        return 0
    except Exception as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    finally:
        if store is not None:
            store.close()


if __name__ == "__main__":
    raise SystemExit(main())
