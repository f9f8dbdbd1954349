"""FastAPI routes for the change request workflow."""

from __future__ import annotations

from fastapi import APIRouter, Request

from ..context import open_db, resolve_caller
from ..envelope import ApiResponse
from .models import (
    ChangeRequestModel,
    DecisionBody,
    ReturnBody,
    SubmitChangeRequestBody,
    UpdateChangeRequestBody,
)
from .store import ChangeRequestStore
from .types import ChangeRequest, RequestFamily
from .workflow import ChangeRequestWorkflow

# Create router
router = APIRouter(prefix="/change-requests", tags=["Change Requests"])


def _to_models(requests: list[ChangeRequest]) -> list[ChangeRequestModel]:
    return [ChangeRequestModel.from_request(r) for r in requests]


# =============================================================================
# Submit
# =============================================================================

@router.post("", response_model=ApiResponse[ChangeRequestModel])
async def submit_change_request(body: SubmitChangeRequestBody, request: Request):
    """Submit a proposed content edit for review."""
    with open_db() as conn:
        caller = resolve_caller(request, conn)
        created = ChangeRequestWorkflow(conn).submit(
            caller,
            request_type=body.request_type,
            target_object=body.target_object,
            justification=body.justification,
            proposed_change=body.proposed_change,
            current_value=body.current_value,
        )
        return ApiResponse(data=ChangeRequestModel.from_request(created), message="Change request submitted for review")


# =============================================================================
# Listing
# =============================================================================

@router.get("", response_model=ApiResponse[list[ChangeRequestModel]])
async def list_change_requests():
    """All change requests, newest first."""
    with open_db() as conn:
        return ApiResponse(data=_to_models(ChangeRequestStore(conn).list_all()))


@router.get("/pending", response_model=ApiResponse[list[ChangeRequestModel]])
async def list_pending(family: RequestFamily | None = None):
    """Requests awaiting review (pending or more_info_needed), optionally by family."""
    with open_db() as conn:
        return ApiResponse(data=_to_models(ChangeRequestStore(conn).list_pending(family)))


@router.get("/my-requests", response_model=ApiResponse[list[ChangeRequestModel]])
async def list_my_requests(request: Request):
    """The caller's own requests, those waiting on them first."""
    with open_db() as conn:
        caller = resolve_caller(request, conn)
        return ApiResponse(data=_to_models(ChangeRequestStore(conn).list_by_requester(caller.user)))


@router.get("/all-attributes", response_model=ApiResponse[list[ChangeRequestModel]])
async def list_attribute_requests():
    """Every attribute and enumeration request regardless of status."""
    with open_db() as conn:
        return ApiResponse(data=_to_models(ChangeRequestStore(conn).list_by_family(RequestFamily.GLOSSARY)))


@router.get("/{request_id}", response_model=ApiResponse[ChangeRequestModel])
async def get_change_request(request_id: str):
    with open_db() as conn:
        return ApiResponse(data=ChangeRequestModel.from_request(ChangeRequestStore(conn).get(request_id)))


# =============================================================================
# Review transitions
# =============================================================================

@router.put("/{request_id}/approve", response_model=ApiResponse[ChangeRequestModel])
async def approve_change_request(request_id: str, request: Request, body: DecisionBody | None = None):
    """
    Approve a request.

    Applies the proposed change to catalog content and records the decision
    in one transaction.
    """
    comment = body.comment if body else None
    with open_db() as conn:
        caller = resolve_caller(request, conn)
        approved = ChangeRequestWorkflow(conn).approve(caller, request_id, comment)
        return ApiResponse(data=ChangeRequestModel.from_request(approved), message="Change request approved")


@router.put("/{request_id}/deny", response_model=ApiResponse[ChangeRequestModel])
async def deny_change_request(request_id: str, request: Request, body: DecisionBody | None = None):
    comment = body.comment if body else None
    with open_db() as conn:
        caller = resolve_caller(request, conn)
        denied = ChangeRequestWorkflow(conn).deny(caller, request_id, comment)
        return ApiResponse(data=ChangeRequestModel.from_request(denied), message="Change request denied")


@router.put("/{request_id}/return", response_model=ApiResponse[ChangeRequestModel])
async def return_change_request(request_id: str, body: ReturnBody, request: Request):
    """Ask the requester for more information."""
    with open_db() as conn:
        caller = resolve_caller(request, conn)
        returned = ChangeRequestWorkflow(conn).return_for_info(caller, request_id, body.comment)
        return ApiResponse(data=ChangeRequestModel.from_request(returned), message="Returned to requester for more information")


@router.put("/{request_id}/update", response_model=ApiResponse[ChangeRequestModel])
async def update_change_request(request_id: str, body: UpdateChangeRequestBody, request: Request):
    """Requester resubmits a returned request with a new justification and payload."""
    with open_db() as conn:
        caller = resolve_caller(request, conn)
        updated = ChangeRequestWorkflow(conn).resubmit(
            caller, request_id, body.justification, body.proposed_change
        )
        return ApiResponse(data=ChangeRequestModel.from_request(updated), message="Change request resubmitted")
