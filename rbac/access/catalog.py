"""Built-in permission catalog and default role definitions."""

from __future__ import annotations

from typing import Any

USERS_CREATE = "users.create"
USERS_READ = "users.read"
USERS_UPDATE = "users.update"
USERS_DELETE = "users.delete"
ROLES_CREATE = "roles.create"
ROLES_READ = "roles.read"
ROLES_UPDATE = "roles.update"
ROLES_DELETE = "roles.delete"
PERMISSIONS_READ = "permissions.read"
PERMISSIONS_MANAGE = "permissions.manage"
PROJECTS_CREATE = "projects.create"
PROJECTS_READ = "projects.read"
PROJECTS_UPDATE = "projects.update"
PROJECTS_DELETE = "projects.delete"
ANALYTICS_VIEW = "analytics.view"
ANALYTICS_EXPORT = "analytics.export"
SETTINGS_VIEW = "settings.view"
SETTINGS_MANAGE = "settings.manage"

PERMISSION_CATEGORIES: dict[str, str] = {
    "users": "User Management",
    "roles": "Role Management",
    "permissions": "Permission Management",
    "projects": "Project Management",
    "analytics": "Analytics",
    "settings": "Settings",
}

ALL_PERMISSIONS: list[str] = [
    USERS_CREATE,
    USERS_READ,
    USERS_UPDATE,
    USERS_DELETE,
    ROLES_CREATE,
    ROLES_READ,
    ROLES_UPDATE,
    ROLES_DELETE,
    PERMISSIONS_READ,
    PERMISSIONS_MANAGE,
    PROJECTS_CREATE,
    PROJECTS_READ,
    PROJECTS_UPDATE,
    PROJECTS_DELETE,
    ANALYTICS_VIEW,
    ANALYTICS_EXPORT,
    SETTINGS_VIEW,
    SETTINGS_MANAGE,
]

DEFAULT_ROLES: list[dict[str, Any]] = [
    {
        "name": "admin",
        "display_name": "Administrator",
        "description": "Full system access with all permissions",
        "hierarchy": 1,
        "permissions": list(ALL_PERMISSIONS),
    },
    {
        "name": "manager",
        "display_name": "Manager",
        "description": "Manage users and projects within their scope",
        "hierarchy": 2,
        "permissions": [
            USERS_READ,
            USERS_UPDATE,
            PROJECTS_CREATE,
            PROJECTS_READ,
            PROJECTS_UPDATE,
            ANALYTICS_VIEW,
            SETTINGS_VIEW,
        ],
    },
    {
        "name": "user",
        "display_name": "User",
        "description": "Basic user access with limited permissions",
        "hierarchy": 3,
        "permissions": [PROJECTS_READ, SETTINGS_VIEW],
    },
]


def describe_permission(name: str) -> dict[str, str]:
    """Derive display fields for a dotted permission name."""
    resource, action = name.split(".", 1)
    return {
        "name": name,
        "display_name": f"{resource.title()} {action.title()}",
        "description": f"{action.capitalize()} {resource}",
        "resource": resource,
        "action": action,
        "category": PERMISSION_CATEGORIES.get(resource, resource.title()),
    }
