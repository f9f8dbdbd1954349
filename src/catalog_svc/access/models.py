"""Pydantic models for the access request API."""

from __future__ import annotations

from ..envelope import ApiModel


class SubmitAccessRequestBody(ApiModel):
    """Body for requesting read access to a table.

    Fields are optional here so that missing values surface as a
    validation error naming the field.
    """
    table_full_name: str | None = None
    justification: str | None = None
    access_type: str | None = None
    grant_to_name: str | None = None
    access_start_date: str | None = None
    access_end_date: str | None = None


class AccessDecisionBody(ApiModel):
    comment: str | None = None


class AccessRequestModel(ApiModel):
    """An access request as returned by the API."""
    id: str
    table_full_name: str
    requester: str
    justification: str
    access_type: str
    grant_to_name: str
    access_start_date: str
    access_end_date: str
    status: str
    approver: str | None = None
    decision_comment: str | None = None
    decision_date: str | None = None
    requested_at: str | None = None
