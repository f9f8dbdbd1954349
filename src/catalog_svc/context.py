"""Per-request wiring shared by all routers.

Routers open one store connection per HTTP request with ``open_db()``
and resolve the caller with ``resolve_caller()``. Both are configured
once during app startup.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Generator

from starlette.requests import Request

from .db import DEFAULT_DB_PATH, DEFAULT_TIMEOUT_SECONDS, get_db
from .identity import IdentityExtractor
from .permissions import CallerContext, PermissionGate, RolePermissionStore

# Configuration - set during app startup
_db_path: str = DEFAULT_DB_PATH
_timeout: float = DEFAULT_TIMEOUT_SECONDS
_extractor: IdentityExtractor = IdentityExtractor()
_default_role: str = "PUBLIC"


def configure(
    db_path: str,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    extractor: IdentityExtractor | None = None,
    default_role: str = "PUBLIC",
) -> None:
    """Configure the store location and identity handling."""
    global _db_path, _timeout, _extractor, _default_role
    _db_path = db_path
    _timeout = timeout
    _extractor = extractor or IdentityExtractor()
    _default_role = default_role.upper()


@contextmanager
def open_db() -> Generator[sqlite3.Connection, None, None]:
    with get_db(_db_path, _timeout) as conn:
        yield conn


def resolve_caller(request: Request, conn: sqlite3.Connection) -> CallerContext:
    """Identify the caller and resolve their role's capabilities."""
    identity = _extractor.extract(request)
    role = identity.role or _default_role
    gate = PermissionGate(RolePermissionStore(conn))
    return gate.context_for(identity.user, role)
