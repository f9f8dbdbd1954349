"""Access request sub-flow: pending -> approved | denied.

No return-for-info and no resubmission. Approval records the decision
only; the warehouse grant is issued outside this service.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone

from ..catalog.repository import CatalogContentRepository
from ..db import transaction
from ..errors import NotFoundError, ValidationError
from ..permissions.types import CallerContext, Capability
from .store import AccessRequestStore
from .types import AccessRequest, AccessStatus, AccessType

logger = logging.getLogger(__name__)


def _parse_date(value: str, field_name: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        raise ValidationError(f"{field_name} must be an ISO date, got: {value}") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _require(value: str | None, field_name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


class AccessRequestWorkflow:
    """Submission and review of data-access requests."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.store = AccessRequestStore(conn)
        self.content = CatalogContentRepository(conn)

    def submit(
        self,
        caller: CallerContext,
        table_full_name: str | None,
        justification: str | None,
        access_type: str | None,
        grant_to_name: str | None,
        access_start_date: str | None,
        access_end_date: str | None,
    ) -> AccessRequest:
        """Create a pending access request.

        Every field is required and the window must end after it starts.
        """
        caller.require(Capability.CREATE_REQUESTS, "request data access")
        table = _require(table_full_name, "tableFullName")
        justification = _require(justification, "justification")
        grant_to = _require(grant_to_name, "grantToName")
        start = _require(access_start_date, "accessStartDate")
        end = _require(access_end_date, "accessEndDate")

        try:
            kind = AccessType(_require(access_type, "accessType").upper())
        except ValueError:
            raise ValidationError(f"accessType must be ROLE or USER, got: {access_type}") from None

        if _parse_date(end, "accessEndDate") <= _parse_date(start, "accessStartDate"):
            raise ValidationError("accessEndDate must be after accessStartDate")

        if not self.content.table_exists(table):
            raise NotFoundError(f"Table not found: {table}")

        return self.store.create(
            table_full_name=table,
            requester=caller.user,
            justification=justification,
            access_type=kind,
            grant_to_name=grant_to.upper(),
            access_start_date=start,
            access_end_date=end,
        )

    def approve(self, caller: CallerContext, request_id: str, comment: str | None = None) -> AccessRequest:
        caller.require(Capability.APPROVE_DATA_ACCESS, "approve access requests")
        with transaction(self.conn):
            decided = self.store.decide(request_id, AccessStatus.APPROVED, caller.user, comment)
        logger.info(f"Access request {request_id} approved by {caller.user} for {decided.grant_to_name}")
        return decided

    def deny(self, caller: CallerContext, request_id: str, comment: str | None = None) -> AccessRequest:
        caller.require(Capability.APPROVE_DATA_ACCESS, "deny access requests")
        with transaction(self.conn):
            return self.store.decide(request_id, AccessStatus.DENIED, caller.user, comment)
