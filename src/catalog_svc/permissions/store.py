"""Role-permission store - the administrative source behind the gate."""

from __future__ import annotations

import logging
import sqlite3

from ..db import transaction, utc_now
from ..errors import NotFoundError, ValidationError
from .types import Capability, RolePermission

logger = logging.getLogger(__name__)


def _parse_capability(name: str) -> Capability:
    try:
        return Capability(name.strip().upper())
    except ValueError:
        valid = ", ".join(c.value for c in Capability)
        raise ValidationError(f"Unknown permission type: {name} (expected one of {valid})") from None


def _normalize_role(role: str) -> str:
    role = (role or "").strip().upper()
    if not role:
        raise ValidationError("Role name is required")
    return role


class RolePermissionStore:
    """Role -> permission rows in SQLite."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def permissions_for(self, role: str) -> set[str]:
        """Permission names granted to a role (empty for unknown roles)."""
        cursor = self.conn.execute(
            "SELECT permission_type FROM role_permissions WHERE role = ?",
            ((role or "").upper(),),
        )
        return {row["permission_type"] for row in cursor.fetchall()}

    def list_all(self) -> list[RolePermission]:
        cursor = self.conn.execute(
            "SELECT * FROM role_permissions ORDER BY permission_type, role"
        )
        return [
            RolePermission(
                role=row["role"],
                permission_type=Capability(row["permission_type"]),
                granted_by=row["granted_by"],
                granted_at=row["granted_at"],
            )
            for row in cursor.fetchall()
        ]

    def grant(self, role: str, permission_type: str, granted_by: str | None = None) -> RolePermission:
        """Grant a permission to a role (no-op if already granted)."""
        role = _normalize_role(role)
        capability = _parse_capability(permission_type)
        now = utc_now()
        with transaction(self.conn):
            self.conn.execute(
                """
                INSERT OR IGNORE INTO role_permissions (role, permission_type, granted_by, granted_at)
                VALUES (?, ?, ?, ?)
                """,
                (role, capability.value, granted_by, now),
            )
        logger.info(f"Granted {capability.value} to role {role}")
        return RolePermission(role=role, permission_type=capability, granted_by=granted_by, granted_at=now)

    def revoke(self, role: str, permission_type: str) -> None:
        """Revoke a permission; NotFoundError if the role does not hold it."""
        role = _normalize_role(role)
        capability = _parse_capability(permission_type)
        with transaction(self.conn):
            cursor = self.conn.execute(
                "DELETE FROM role_permissions WHERE role = ? AND permission_type = ?",
                (role, capability.value),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"Role {role} does not hold {capability.value}")
        logger.info(f"Revoked {capability.value} from role {role}")

    def seed(self, roles: dict[str, list[str]]) -> int:
        """Write seed grants for roles that have no rows yet.

        Returns:
            Number of grants written.
        """
        written = 0
        for role, permissions in roles.items():
            if self.permissions_for(role):
                continue
            for permission in permissions:
                self.grant(role, permission, granted_by="config")
                written += 1
        if written:
            logger.info(f"Seeded {written} role permissions from config")
        return written
