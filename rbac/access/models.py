"""Pydantic models for roles and permissions."""

from __future__ import annotations

import re
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from rbac.api.contracts import ApiModel
from rbac.auth.models import new_id, utc_now

PERMISSION_NAME_RE = re.compile(r"^[a-z][a-z0-9_-]*\.[a-z][a-z0-9_-]*$")
ROLE_NAME_RE = re.compile(r"^[a-z][a-z0-9_-]*$")


class Permission(BaseModel):
    """Atomic capability named ``resource.action``."""

    permission_id: str = Field(default_factory=new_id)
    name: str
    display_name: str
    description: str = ""
    resource: str
    action: str
    category: str
    is_system_permission: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Role(BaseModel):
    """Named bundle of permission references."""

    role_id: str = Field(default_factory=new_id)
    name: str
    display_name: str
    description: str = ""
    hierarchy: int = Field(ge=1)
    permission_ids: list[str] = Field(default_factory=list)
    is_system_role: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class CreatePermissionRequest(ApiModel):
    name: str
    display_name: str = Field(min_length=1)
    description: str = ""
    category: str = Field(min_length=1)

    @field_validator("name")
    @classmethod
    def _dotted_name(cls, value: str) -> str:
        value = value.strip().lower()
        if not PERMISSION_NAME_RE.match(value):
            raise ValueError("Permission name must look like 'resource.action'")
        return value


class UpdatePermissionRequest(ApiModel):
    display_name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    category: str | None = Field(default=None, min_length=1)


class CreateRoleRequest(ApiModel):
    name: str
    display_name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    hierarchy: int = Field(ge=1)
    permissions: list[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _machine_key(cls, value: str) -> str:
        value = value.strip().lower()
        if not ROLE_NAME_RE.match(value):
            raise ValueError("Role name must be a lower-case machine key")
        return value


class UpdateRoleRequest(ApiModel):
    display_name: str | None = Field(default=None, min_length=1)
    description: str | None = Field(default=None, min_length=1)
    hierarchy: int | None = Field(default=None, ge=1)
    permissions: list[str] | None = None


class RolePermissionsRequest(ApiModel):
    permissions: list[str]
