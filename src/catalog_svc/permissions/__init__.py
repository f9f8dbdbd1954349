"""
Permission Gate

Maps a caller's warehouse role to a fixed set of coarse capabilities
(app access, create requests, approve glossary changes, approve data
access, manage roles). Workflows receive the resulting CallerContext
explicitly rather than reading ambient state.
"""

from .types import Capability, CapabilitySet, CallerContext, RolePermission
from .store import RolePermissionStore
from .gate import PermissionGate, PermissionSource

__all__ = [
    "Capability",
    "CapabilitySet",
    "CallerContext",
    "RolePermission",
    "RolePermissionStore",
    "PermissionGate",
    "PermissionSource",
]
