"""Permission types - capabilities granted to warehouse roles."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..errors import PermissionDeniedError


class Capability(str, Enum):
    """Permission names as stored in the role-permission table."""
    APP_ACCESS = "APP_ACCESS"
    CREATE_REQUESTS = "CREATE_REQUESTS"
    APPROVE_GLOSSARY = "APPROVE_GLOSSARY"
    APPROVE_DATA_ACCESS = "APPROVE_DATA_ACCESS"
    MANAGE_ROLES = "MANAGE_ROLES"


# Capability -> CapabilitySet attribute
_FLAG_NAMES: dict[Capability, str] = {
    Capability.APP_ACCESS: "has_app_access",
    Capability.CREATE_REQUESTS: "can_create_requests",
    Capability.APPROVE_GLOSSARY: "can_approve_glossary",
    Capability.APPROVE_DATA_ACCESS: "can_approve_data_access",
    Capability.MANAGE_ROLES: "can_manage_roles",
}


@dataclass(frozen=True, slots=True)
class CapabilitySet:
    """Coarse capabilities of one role, computed once per request."""
    has_app_access: bool = False
    can_create_requests: bool = False
    can_approve_glossary: bool = False
    can_approve_data_access: bool = False
    can_manage_roles: bool = False

    @classmethod
    def from_permissions(cls, permissions: set[str] | list[str]) -> CapabilitySet:
        """Build from permission names, ignoring names that are not capabilities."""
        flags = {}
        for name in permissions:
            try:
                flags[_FLAG_NAMES[Capability(name)]] = True
            except ValueError:
                continue
        return cls(**flags)

    def has(self, capability: Capability) -> bool:
        return getattr(self, _FLAG_NAMES[capability])


@dataclass(frozen=True, slots=True)
class CallerContext:
    """Who is calling and what they may do, threaded into every transition."""
    user: str
    role: str
    capabilities: CapabilitySet

    def require(self, capability: Capability, action: str = "") -> None:
        """Raise PermissionDeniedError unless the caller holds ``capability``."""
        if not self.capabilities.has(capability):
            what = f" to {action}" if action else ""
            raise PermissionDeniedError(
                f"Role {self.role} lacks {capability.value}{what}"
            )


@dataclass(frozen=True, slots=True)
class RolePermission:
    """One row of the role-permission table."""
    role: str
    permission_type: Capability
    granted_by: str | None = None
    granted_at: str | None = None
