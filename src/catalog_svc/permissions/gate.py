"""Permission gate - maps a caller's role to a CapabilitySet."""

from __future__ import annotations

from typing import Protocol

from .types import CallerContext, CapabilitySet


class PermissionSource(Protocol):
    """Anything that can list the permission names granted to a role."""

    def permissions_for(self, role: str) -> set[str]: ...


class PermissionGate:
    """Synchronous role -> capability lookup."""

    def __init__(self, source: PermissionSource):
        self._source = source

    def capabilities_for(self, role: str) -> CapabilitySet:
        return CapabilitySet.from_permissions(self._source.permissions_for(role))

    def context_for(self, user: str, role: str) -> CallerContext:
        """Resolve a caller's capabilities once for the current request."""
        return CallerContext(user=user, role=role, capabilities=self.capabilities_for(role))
