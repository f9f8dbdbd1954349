"""FastAPI routes for data-access requests."""

from __future__ import annotations

from fastapi import APIRouter, Request

from ..context import open_db, resolve_caller
from ..envelope import ApiResponse
from .models import AccessDecisionBody, AccessRequestModel, SubmitAccessRequestBody
from .store import AccessRequestStore
from .types import AccessRequest
from .workflow import AccessRequestWorkflow

# Create router
router = APIRouter(prefix="/access-requests", tags=["Access Requests"])


def _request_to_model(req: AccessRequest) -> AccessRequestModel:
    return AccessRequestModel(
        id=req.request_id,
        table_full_name=req.table_full_name,
        requester=req.requester,
        justification=req.justification,
        access_type=req.access_type.value,
        grant_to_name=req.grant_to_name,
        access_start_date=req.access_start_date,
        access_end_date=req.access_end_date,
        status=req.status.value,
        approver=req.approver,
        decision_comment=req.decision_comment,
        decision_date=req.decision_date,
        requested_at=req.requested_at,
    )


@router.post("", response_model=ApiResponse[AccessRequestModel])
async def submit_access_request(body: SubmitAccessRequestBody, request: Request):
    """Request read access to a table for a role or user, for a bounded window."""
    with open_db() as conn:
        caller = resolve_caller(request, conn)
        created = AccessRequestWorkflow(conn).submit(
            caller,
            table_full_name=body.table_full_name,
            justification=body.justification,
            access_type=body.access_type,
            grant_to_name=body.grant_to_name,
            access_start_date=body.access_start_date,
            access_end_date=body.access_end_date,
        )
        return ApiResponse(data=_request_to_model(created), message="Access request submitted")


@router.get("", response_model=ApiResponse[list[AccessRequestModel]])
async def list_my_access_requests(request: Request):
    """The caller's own access requests, newest first."""
    with open_db() as conn:
        caller = resolve_caller(request, conn)
        requests = AccessRequestStore(conn).list_by_requester(caller.user)
        return ApiResponse(data=[_request_to_model(r) for r in requests])


@router.get("/pending", response_model=ApiResponse[list[AccessRequestModel]])
async def list_pending_access_requests():
    with open_db() as conn:
        requests = AccessRequestStore(conn).list_pending()
        return ApiResponse(data=[_request_to_model(r) for r in requests])


@router.put("/{request_id}/approve", response_model=ApiResponse[AccessRequestModel])
async def approve_access_request(request_id: str, request: Request, body: AccessDecisionBody | None = None):
    with open_db() as conn:
        caller = resolve_caller(request, conn)
        approved = AccessRequestWorkflow(conn).approve(caller, request_id, body.comment if body else None)
        return ApiResponse(data=_request_to_model(approved), message="Access request approved")


@router.put("/{request_id}/deny", response_model=ApiResponse[AccessRequestModel])
async def deny_access_request(request_id: str, request: Request, body: AccessDecisionBody | None = None):
    with open_db() as conn:
        caller = resolve_caller(request, conn)
        denied = AccessRequestWorkflow(conn).deny(caller, request_id, body.comment if body else None)
        return ApiResponse(data=_request_to_model(denied), message="Access request denied")
