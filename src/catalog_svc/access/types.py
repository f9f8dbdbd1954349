"""Access request types - table-level read grants with a validity window."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class AccessType(str, Enum):
    """Whether access is granted to a warehouse role or a single user."""
    ROLE = "ROLE"
    USER = "USER"


class AccessStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


@dataclass(slots=True)
class AccessRequest:
    """
    A request for read access to one table.

    The warehouse grant itself is issued elsewhere; this record is the
    decision trail.
    """
    request_id: str
    table_full_name: str
    requester: str
    justification: str
    access_type: AccessType
    grant_to_name: str
    access_start_date: str      # ISO date
    access_end_date: str        # ISO date, strictly after the start
    status: AccessStatus = AccessStatus.PENDING
    approver: str | None = None
    decision_comment: str | None = None
    decision_date: str | None = None
    requested_at: str | None = None
