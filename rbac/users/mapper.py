from __future__ import annotations

from rbac.access.mapper import role_to_summary
from rbac.access.models import Role
from rbac.api.contracts import UserView
from rbac.auth.models import User


def user_to_view(user: User, roles: list[Role], permissions: list[str]) -> UserView:
    """Build the client-facing user; the password hash is never copied."""
    return UserView(
        id=user.user_id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        full_name=user.full_name,
        is_active=user.is_active,
        is_email_verified=user.is_email_verified,
        roles=[role_to_summary(role) for role in roles],
        permissions=permissions,
        last_login_at=user.last_login_at,
        created_at=user.created_at,
    )
