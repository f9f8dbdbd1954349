"""Access request store."""

from __future__ import annotations

import logging
import sqlite3
import uuid

from ..db import utc_now
from ..errors import IllegalStateError, NotFoundError
from .types import AccessRequest, AccessStatus, AccessType

logger = logging.getLogger(__name__)


def _row_to_request(row: sqlite3.Row) -> AccessRequest:
    return AccessRequest(
        request_id=row["request_id"],
        table_full_name=row["table_full_name"],
        requester=row["requester"],
        justification=row["justification"],
        access_type=AccessType(row["access_type"]),
        grant_to_name=row["grant_to_name"],
        access_start_date=row["access_start_date"],
        access_end_date=row["access_end_date"],
        status=AccessStatus(row["status"]),
        approver=row["approver"],
        decision_comment=row["decision_comment"],
        decision_date=row["decision_date"],
        requested_at=row["requested_at"],
    )


class AccessRequestStore:
    """SQLite-backed store for access requests. Inputs are validated by the workflow."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    def create(
        self,
        table_full_name: str,
        requester: str,
        justification: str,
        access_type: AccessType,
        grant_to_name: str,
        access_start_date: str,
        access_end_date: str,
    ) -> AccessRequest:
        request = AccessRequest(
            request_id=str(uuid.uuid4()),
            table_full_name=table_full_name,
            requester=requester,
            justification=justification,
            access_type=access_type,
            grant_to_name=grant_to_name,
            access_start_date=access_start_date,
            access_end_date=access_end_date,
            requested_at=utc_now(),
        )
        self.conn.execute("""
            INSERT INTO access_requests (
                request_id, table_full_name, requester, justification, access_type,
                grant_to_name, access_start_date, access_end_date, status, requested_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            request.request_id, table_full_name, requester, justification, access_type.value,
            grant_to_name, access_start_date, access_end_date, request.status.value,
            request.requested_at,
        ))
        logger.info(
            f"Access request submitted: {request.request_id} for {table_full_name} "
            f"({access_type.value} {grant_to_name}) by {requester}"
        )
        return request

    def get(self, request_id: str) -> AccessRequest:
        row = self.conn.execute(
            "SELECT * FROM access_requests WHERE request_id = ?", (request_id,)
        ).fetchone()
        if not row:
            raise NotFoundError(f"Access request not found: {request_id}")
        return _row_to_request(row)

    def decide(
        self,
        request_id: str,
        to_status: AccessStatus,
        approver: str,
        comment: str | None = None,
    ) -> AccessRequest:
        """Record a decision on a pending request.

        Raises:
            NotFoundError: if no such request exists.
            IllegalStateError: if the request was already decided.
        """
        cursor = self.conn.execute("""
            UPDATE access_requests
            SET status = ?, approver = ?, decision_comment = ?, decision_date = ?
            WHERE request_id = ? AND status = ?
        """, (to_status.value, approver, comment, utc_now(), request_id, AccessStatus.PENDING.value))
        if cursor.rowcount == 0:
            current = self.get(request_id)
            raise IllegalStateError(
                f"Access request {request_id} is {current.status.value}; cannot move to {to_status.value}"
            )
        logger.info(f"Access request {request_id} status -> {to_status.value}")
        return self.get(request_id)

    def list_by_requester(self, requester: str) -> list[AccessRequest]:
        cursor = self.conn.execute(
            "SELECT * FROM access_requests WHERE requester = ? ORDER BY requested_at DESC",
            (requester,),
        )
        return [_row_to_request(row) for row in cursor.fetchall()]

    def list_pending(self) -> list[AccessRequest]:
        cursor = self.conn.execute(
            "SELECT * FROM access_requests WHERE status = ? ORDER BY requested_at DESC",
            (AccessStatus.PENDING.value,),
        )
        return [_row_to_request(row) for row in cursor.fetchall()]
