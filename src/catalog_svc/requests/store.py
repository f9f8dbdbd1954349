"""Change request store - durable records of proposed content edits.

The store never touches catalog content; applying a change is the
workflow's job. Status changes are compare-and-set updates guarded on
the current status, so they are safe both inside and outside an
enclosing transaction.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from typing import Any, Iterable

from ..db import utc_now
from ..errors import IllegalStateError, NotFoundError, ValidationError
from .types import (
    OPEN_STATUSES,
    ChangeRequest,
    ProposedChange,
    RequestFamily,
    RequestStatus,
    RequestType,
    parse_proposed_change,
    parse_request_type,
    proposed_change_to_dict,
)

logger = logging.getLogger(__name__)

# "Mine": requests waiting on the requester first
_MY_REQUESTS_ORDER = """
    ORDER BY CASE status
        WHEN 'more_info_needed' THEN 1
        WHEN 'pending' THEN 2
        WHEN 'approved' THEN 3
        WHEN 'denied' THEN 4
        ELSE 5
    END, requested_at DESC
"""

# Review history: open requests first
_FAMILY_ORDER = """
    ORDER BY CASE status
        WHEN 'pending' THEN 1
        WHEN 'more_info_needed' THEN 2
        WHEN 'approved' THEN 3
        WHEN 'denied' THEN 4
        ELSE 5
    END, requested_at DESC
"""


def _placeholders(values: Iterable[Any]) -> tuple[str, list[Any]]:
    params = list(values)
    return ", ".join("?" for _ in params), params


def _encode_current_value(value: Any) -> str | None:
    if value is None:
        return None
    return json.dumps(value)


def _decode_current_value(raw: str | None) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


class ChangeRequestStore:
    """SQLite-backed store for change requests."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    def _row_to_request(self, row: sqlite3.Row) -> ChangeRequest:
        request_type = RequestType(row["request_type"])
        return ChangeRequest(
            request_id=row["request_id"],
            request_type=request_type,
            target_object=row["target_object"],
            requester=row["requester"],
            justification=row["justification"],
            proposed_change=parse_proposed_change(request_type, json.loads(row["proposed_change"])),
            status=RequestStatus(row["status"]),
            current_value=_decode_current_value(row["current_value"]),
            assigned_to=row["assigned_to"],
            decision_comment=row["decision_comment"],
            decision_date=row["decision_date"],
            requested_at=row["requested_at"],
        )

    def create(
        self,
        request_type: RequestType | str,
        target_object: str,
        requester: str,
        justification: str,
        proposed_change: ProposedChange | dict[str, Any],
        current_value: Any = None,
        assigned_to: str | None = None,
    ) -> ChangeRequest:
        """Persist a new pending request.

        Raises:
            ValidationError: if the type is unknown, a required field is
                empty, or the payload does not match the type.
        """
        if isinstance(request_type, str) and not isinstance(request_type, RequestType):
            request_type = parse_request_type(request_type)
        if not justification or not justification.strip():
            raise ValidationError("Justification is required")
        if not target_object or not target_object.strip():
            raise ValidationError("Target object is required")
        if not requester:
            raise ValidationError("Requester is required")
        if isinstance(proposed_change, dict):
            proposed_change = parse_proposed_change(request_type, proposed_change)

        request = ChangeRequest(
            request_id=str(uuid.uuid4()),
            request_type=request_type,
            target_object=target_object.strip(),
            requester=requester,
            justification=justification.strip(),
            proposed_change=proposed_change,
            status=RequestStatus.PENDING,
            current_value=current_value,
            assigned_to=assigned_to,
            requested_at=utc_now(),
        )
        self.conn.execute("""
            INSERT INTO change_requests (
                request_id, request_type, target_object, requester, justification,
                proposed_change, current_value, status, assigned_to, requested_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            request.request_id,
            request.request_type.value,
            request.target_object,
            request.requester,
            request.justification,
            json.dumps(proposed_change_to_dict(request.proposed_change)),
            _encode_current_value(current_value),
            request.status.value,
            request.assigned_to,
            request.requested_at,
        ))
        logger.info(
            f"Change request submitted: {request.request_id} "
            f"({request.request_type.value} on {request.target_object}) by {requester}"
        )
        return request

    def get(self, request_id: str) -> ChangeRequest:
        """Get a request by ID.

        Raises:
            NotFoundError: if no such request exists.
        """
        row = self.conn.execute(
            "SELECT * FROM change_requests WHERE request_id = ?", (request_id,)
        ).fetchone()
        if not row:
            raise NotFoundError(f"Change request not found: {request_id}")
        return self._row_to_request(row)

    def update(
        self,
        request_id: str,
        justification: str,
        proposed_change: ProposedChange | dict[str, Any],
        current_value: Any = None,
    ) -> ChangeRequest:
        """Replace the justification and payload of a returned request.

        Only legal while the request is ``more_info_needed``; the request
        goes back to ``pending`` with the previous decision cleared. A
        ``current_value`` of None keeps the one captured at submission.
        """
        if not justification or not justification.strip():
            raise ValidationError("Justification is required")

        current = self.get(request_id)
        if isinstance(proposed_change, dict):
            proposed_change = parse_proposed_change(current.request_type, proposed_change)

        cursor = self.conn.execute("""
            UPDATE change_requests
            SET justification = ?, proposed_change = ?, current_value = COALESCE(?, current_value),
                status = ?,
                decision_comment = NULL, decision_date = NULL, requested_at = ?
            WHERE request_id = ? AND status = ?
        """, (
            justification.strip(),
            json.dumps(proposed_change_to_dict(proposed_change)),
            _encode_current_value(current_value),
            RequestStatus.PENDING.value,
            utc_now(),
            request_id,
            RequestStatus.MORE_INFO_NEEDED.value,
        ))
        if cursor.rowcount == 0:
            status = self.get(request_id).status
            raise IllegalStateError(
                f"Change request {request_id} is {status.value}; "
                f"only requests needing more info can be updated"
            )
        logger.info(f"Change request {request_id} status -> {RequestStatus.PENDING.value} (resubmitted)")
        return self.get(request_id)

    def transition(
        self,
        request_id: str,
        from_statuses: Iterable[RequestStatus],
        to_status: RequestStatus,
        decided_by: str,
        comment: str | None = None,
    ) -> ChangeRequest:
        """Move a request to a new status if it is currently in one of ``from_statuses``.

        Raises:
            NotFoundError: if no such request exists.
            IllegalStateError: if the request is in any other status.
        """
        allowed = tuple(from_statuses)
        marks, params = _placeholders(s.value for s in allowed)
        cursor = self.conn.execute(f"""
            UPDATE change_requests
            SET status = ?, assigned_to = ?, decision_comment = ?, decision_date = ?
            WHERE request_id = ? AND status IN ({marks})
        """, [to_status.value, decided_by, comment, utc_now(), request_id, *params])
        if cursor.rowcount == 0:
            status = self.get(request_id).status
            raise IllegalStateError(
                f"Change request {request_id} is {status.value}; cannot move to {to_status.value}"
            )
        logger.info(f"Change request {request_id} status -> {to_status.value}")
        return self.get(request_id)

    def list_pending(self, family: RequestFamily | None = None) -> list[ChangeRequest]:
        """Requests awaiting a reviewer (pending or more_info_needed), newest first."""
        marks, params = _placeholders(s.value for s in OPEN_STATUSES)
        query = f"SELECT * FROM change_requests WHERE status IN ({marks})"
        if family is not None:
            type_marks, type_params = _placeholders(t.value for t in family.request_types)
            query += f" AND request_type IN ({type_marks})"
            params.extend(type_params)
        query += " ORDER BY requested_at DESC"
        return [self._row_to_request(row) for row in self.conn.execute(query, params).fetchall()]

    def list_by_requester(self, requester: str) -> list[ChangeRequest]:
        cursor = self.conn.execute(
            f"SELECT * FROM change_requests WHERE requester = ? {_MY_REQUESTS_ORDER}",
            (requester,),
        )
        return [self._row_to_request(row) for row in cursor.fetchall()]

    def list_by_family(self, family: RequestFamily) -> list[ChangeRequest]:
        """Every request of a family regardless of status."""
        marks, params = _placeholders(t.value for t in family.request_types)
        cursor = self.conn.execute(
            f"SELECT * FROM change_requests WHERE request_type IN ({marks}) {_FAMILY_ORDER}",
            params,
        )
        return [self._row_to_request(row) for row in cursor.fetchall()]

    def list_all(self) -> list[ChangeRequest]:
        cursor = self.conn.execute("SELECT * FROM change_requests ORDER BY requested_at DESC")
        return [self._row_to_request(row) for row in cursor.fetchall()]
