"""Pydantic models for the change request API."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from ..envelope import ApiModel
from .types import ChangeRequest, proposed_change_to_dict


# =============================================================================
# Request Body Models
# =============================================================================

class SubmitChangeRequestBody(ApiModel):
    """Body for submitting a change request."""
    request_type: str
    target_object: str
    justification: str = ""
    proposed_change: dict[str, Any] = Field(default_factory=dict)
    current_value: Any = None


class DecisionBody(ApiModel):
    """Body for approve/deny; the comment is optional."""
    comment: str | None = None


class ReturnBody(ApiModel):
    """Body for returning a request to its requester; the comment is required."""
    comment: str = ""


class UpdateChangeRequestBody(ApiModel):
    """Body for a requester's resubmission."""
    justification: str = ""
    proposed_change: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Response Models
# =============================================================================

class ChangeRequestModel(ApiModel):
    """A change request as returned by the API."""
    id: str
    request_type: str
    target_object: str
    requester: str
    justification: str
    proposed_change: dict[str, Any]
    current_value: Any = None
    status: str
    assigned_to: str | None = None
    decision_comment: str | None = None
    decision_date: str | None = None
    requested_at: str | None = None

    @classmethod
    def from_request(cls, req: ChangeRequest) -> ChangeRequestModel:
        return cls(
            id=req.request_id,
            request_type=req.request_type.value,
            target_object=req.target_object,
            requester=req.requester,
            justification=req.justification,
            proposed_change=proposed_change_to_dict(req.proposed_change),
            current_value=req.current_value,
            status=req.status.value,
            assigned_to=req.assigned_to,
            decision_comment=req.decision_comment,
            decision_date=req.decision_date,
            requested_at=req.requested_at,
        )
