"""FastAPI routes for caller identity and role-permission administration."""

from __future__ import annotations

from fastapi import APIRouter, Request

from ..context import open_db, resolve_caller
from ..envelope import ApiResponse
from .models import CurrentUserModel, GrantBody, PermissionsModel, RolePermissionModel
from .store import RolePermissionStore
from .types import Capability, RolePermission

# Create router
router = APIRouter(tags=["Permissions"])


def _grant_to_model(grant: RolePermission) -> RolePermissionModel:
    return RolePermissionModel(
        role=grant.role,
        permission_type=grant.permission_type.value,
        granted_by=grant.granted_by,
        granted_at=grant.granted_at,
    )


@router.get("/current-user", response_model=ApiResponse[CurrentUserModel])
async def current_user(request: Request):
    with open_db() as conn:
        caller = resolve_caller(request, conn)
        return ApiResponse(data=CurrentUserModel(user=caller.user, role=caller.role))


@router.get("/my-permissions", response_model=ApiResponse[PermissionsModel])
async def my_permissions(request: Request):
    """Capability flags for the caller's current role."""
    with open_db() as conn:
        caller = resolve_caller(request, conn)
        caps = caller.capabilities
        return ApiResponse(data=PermissionsModel(
            user=caller.user,
            role=caller.role,
            has_app_access=caps.has_app_access,
            can_create_requests=caps.can_create_requests,
            can_approve_glossary=caps.can_approve_glossary,
            can_approve_data_access=caps.can_approve_data_access,
            can_manage_roles=caps.can_manage_roles,
        ))


# =============================================================================
# Role administration
# =============================================================================

@router.get("/role-permissions", response_model=ApiResponse[list[RolePermissionModel]])
async def list_role_permissions(request: Request):
    with open_db() as conn:
        caller = resolve_caller(request, conn)
        caller.require(Capability.MANAGE_ROLES, "view role permissions")
        grants = RolePermissionStore(conn).list_all()
        return ApiResponse(data=[_grant_to_model(g) for g in grants])


@router.post("/role-permissions", response_model=ApiResponse[RolePermissionModel])
async def grant_role_permission(body: GrantBody, request: Request):
    """Grant a permission to a role (no-op if already held)."""
    with open_db() as conn:
        caller = resolve_caller(request, conn)
        caller.require(Capability.MANAGE_ROLES, "grant role permissions")
        grant = RolePermissionStore(conn).grant(body.role, body.permission_type, granted_by=caller.user)
        return ApiResponse(data=_grant_to_model(grant), message=f"Granted {grant.permission_type.value} to {grant.role}")


@router.delete("/role-permissions/{role}/{permission_type}", response_model=ApiResponse[None])
async def revoke_role_permission(role: str, permission_type: str, request: Request):
    with open_db() as conn:
        caller = resolve_caller(request, conn)
        caller.require(Capability.MANAGE_ROLES, "revoke role permissions")
        RolePermissionStore(conn).revoke(role, permission_type)
        return ApiResponse(message=f"Revoked {permission_type.upper()} from {role.upper()}")
