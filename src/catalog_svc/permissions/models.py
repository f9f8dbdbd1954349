"""Pydantic models for identity and role administration."""

from __future__ import annotations

from ..envelope import ApiModel


class CurrentUserModel(ApiModel):
    user: str
    role: str


class PermissionsModel(ApiModel):
    """Capability flags of the caller's current role."""
    user: str
    role: str
    has_app_access: bool
    can_create_requests: bool
    can_approve_glossary: bool
    can_approve_data_access: bool
    can_manage_roles: bool


class GrantBody(ApiModel):
    role: str = ""
    permission_type: str = ""


class RolePermissionModel(ApiModel):
    role: str
    permission_type: str
    granted_by: str | None = None
    granted_at: str | None = None
