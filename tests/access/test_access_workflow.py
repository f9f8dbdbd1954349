"""Tests for the data-access request sub-flow."""

import pytest

from catalog_svc.access.types import AccessStatus, AccessType
from catalog_svc.access.workflow import AccessRequestWorkflow
from catalog_svc.errors import (
    IllegalStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)


def _request_kwargs(**overrides):
    kwargs = dict(
        table_full_name="DB.SCHEMA.ORDERS",
        justification="quarterly revenue analysis",
        access_type="ROLE",
        grant_to_name="analyst_team",
        access_start_date="2025-01-01",
        access_end_date="2025-03-31",
    )
    kwargs.update(overrides)
    return kwargs


class TestSubmit:
    """All fields required; the window must end after it starts."""

    def test_submit_pending(self, conn, requester):
        req = AccessRequestWorkflow(conn).submit(requester, **_request_kwargs())

        assert req.status == AccessStatus.PENDING
        assert req.access_type == AccessType.ROLE
        assert req.grant_to_name == "ANALYST_TEAM"
        assert req.requester == "ALICE"

    @pytest.mark.parametrize("end", ["2025-01-01", "2024-12-31", "2025-01-01T00:00:00"])
    def test_end_not_after_start(self, conn, requester, end):
        workflow = AccessRequestWorkflow(conn)
        with pytest.raises(ValidationError, match="after"):
            workflow.submit(requester, **_request_kwargs(access_end_date=end))
        assert workflow.store.list_by_requester("ALICE") == []

    @pytest.mark.parametrize("field", [
        "table_full_name", "justification", "access_type",
        "grant_to_name", "access_start_date", "access_end_date",
    ])
    def test_missing_field(self, conn, requester, field):
        with pytest.raises(ValidationError):
            AccessRequestWorkflow(conn).submit(requester, **_request_kwargs(**{field: None}))

    def test_bad_access_type(self, conn, requester):
        with pytest.raises(ValidationError, match="ROLE or USER"):
            AccessRequestWorkflow(conn).submit(requester, **_request_kwargs(access_type="GROUP"))

    def test_bad_date(self, conn, requester):
        with pytest.raises(ValidationError, match="ISO date"):
            AccessRequestWorkflow(conn).submit(requester, **_request_kwargs(access_start_date="next monday"))

    def test_unknown_table(self, conn, requester):
        with pytest.raises(NotFoundError):
            AccessRequestWorkflow(conn).submit(requester, **_request_kwargs(table_full_name="DB.SCHEMA.NOPE"))

    def test_requires_create_capability(self, conn, viewer):
        with pytest.raises(PermissionDeniedError):
            AccessRequestWorkflow(conn).submit(viewer, **_request_kwargs())


class TestDecisions:
    """pending -> approved | denied, decided by data-access approvers."""

    def test_approve(self, conn, requester, access_approver):
        workflow = AccessRequestWorkflow(conn)
        req = workflow.submit(requester, **_request_kwargs())

        approved = workflow.approve(access_approver, req.request_id, "ok for Q1")

        assert approved.status == AccessStatus.APPROVED
        assert approved.approver == "SAM"
        assert approved.decision_comment == "ok for Q1"
        assert approved.decision_date is not None

    def test_glossary_reviewer_cannot_decide(self, conn, requester, reviewer):
        workflow = AccessRequestWorkflow(conn)
        req = workflow.submit(requester, **_request_kwargs())
        with pytest.raises(PermissionDeniedError):
            workflow.approve(reviewer, req.request_id)
        with pytest.raises(PermissionDeniedError):
            workflow.deny(reviewer, req.request_id)

    def test_decisions_are_final(self, conn, requester, access_approver):
        workflow = AccessRequestWorkflow(conn)
        req = workflow.submit(requester, **_request_kwargs())
        workflow.deny(access_approver, req.request_id, "use the aggregate view")

        with pytest.raises(IllegalStateError):
            workflow.approve(access_approver, req.request_id)
        assert workflow.store.get(req.request_id).status == AccessStatus.DENIED

    def test_unknown_request(self, conn, access_approver):
        with pytest.raises(NotFoundError):
            AccessRequestWorkflow(conn).approve(access_approver, "nope")

    def test_pending_queue(self, conn, requester, access_approver):
        workflow = AccessRequestWorkflow(conn)
        first = workflow.submit(requester, **_request_kwargs())
        second = workflow.submit(requester, **_request_kwargs(access_type="USER", grant_to_name="alice"))
        workflow.approve(access_approver, first.request_id)

        assert [r.request_id for r in workflow.store.list_pending()] == [second.request_id]
