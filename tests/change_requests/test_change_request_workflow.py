"""Tests for the change request state machine and its apply rules."""

import threading

import pytest

from catalog_svc.catalog.repository import CatalogContentRepository
from catalog_svc.db import connect
from catalog_svc.errors import (
    DependencyError,
    IllegalStateError,
    NotFoundError,
    PermissionDeniedError,
    StoreTimeoutError,
    ValidationError,
)
from catalog_svc.requests.types import RequestStatus, RequestType
from catalog_svc.requests.workflow import ChangeRequestWorkflow


def _describe(workflow, caller, description="Orders placed by customers"):
    return workflow.submit(
        caller,
        request_type="DESCRIPTION",
        target_object="DB.SCHEMA.ORDERS",
        justification="clarify",
        proposed_change={"description": description},
    )


def _create_filing_type(workflow, caller):
    return workflow.submit(
        caller,
        request_type=RequestType.ATTRIBUTE_CREATE,
        target_object="filing_type",
        justification="needed for regulatory reporting",
        proposed_change={
            "attribute_name": "filing_type",
            "display_name": "Filing Type",
            "description": "Kind of regulatory filing",
            "enumerations": [
                {"value_code": "10K", "value_description": "Annual report", "sort_order": 1},
                {"value_code": "10Q", "value_description": "Quarterly report", "sort_order": 2},
            ],
        },
    )


class TestSubmit:
    """Submission checks capability, payload and target."""

    def test_submit_requires_create_capability(self, conn, viewer):
        with pytest.raises(PermissionDeniedError):
            _describe(ChangeRequestWorkflow(conn), viewer)

    def test_submit_empty_justification(self, conn, requester):
        workflow = ChangeRequestWorkflow(conn)
        with pytest.raises(ValidationError):
            workflow.submit(
                requester, "DESCRIPTION", "DB.SCHEMA.ORDERS", "  ", {"description": "x"}
            )
        assert workflow.store.list_all() == []

    def test_submit_unknown_table(self, conn, requester):
        workflow = ChangeRequestWorkflow(conn)
        with pytest.raises(NotFoundError):
            workflow.submit(
                requester, "DESCRIPTION", "DB.SCHEMA.MISSING", "clarify", {"description": "x"}
            )

    def test_submit_malformed_table_name(self, conn, requester):
        with pytest.raises(ValidationError):
            ChangeRequestWorkflow(conn).submit(
                requester, "TAG_ADD", "ORDERS", "tag it", {"tag_name": "PII"}
            )

    def test_submit_assigns_table_owner(self, conn, requester):
        req = _describe(ChangeRequestWorkflow(conn), requester)
        assert req.assigned_to == "JANE.DOE"

    def test_glossary_request_is_unassigned(self, conn, requester):
        req = _create_filing_type(ChangeRequestWorkflow(conn), requester)
        assert req.assigned_to is None
        assert req.current_value is None

    def test_submit_captures_current_description(self, conn, requester, reviewer):
        workflow = ChangeRequestWorkflow(conn)
        first = _describe(workflow, requester, "v1")
        workflow.approve(reviewer, first.request_id)

        second = _describe(workflow, requester, "v2")
        assert second.current_value == "v1"

    def test_submit_captures_attribute_before_edit(self, conn, requester):
        req = ChangeRequestWorkflow(conn).submit(
            requester, "ATTRIBUTE_EDIT", "sales_region", "rename", {"display_name": "Region"}
        )
        assert req.current_value == {
            "display_name": "Sales Region",
            "description": "Region an order is booked against",
        }

    def test_attribute_create_target_must_match(self, conn, requester):
        with pytest.raises(ValidationError):
            ChangeRequestWorkflow(conn).submit(
                requester, "ATTRIBUTE_CREATE", "other_name", "new",
                {"attribute_name": "filing_type", "display_name": "Filing Type"},
            )


class TestTransitions:
    """Guards on approve / deny / return / resubmit."""

    def test_approve_requires_capability(self, conn, requester, access_approver):
        workflow = ChangeRequestWorkflow(conn)
        req = _describe(workflow, requester)

        with pytest.raises(PermissionDeniedError):
            workflow.approve(requester, req.request_id)
        with pytest.raises(PermissionDeniedError):
            workflow.approve(access_approver, req.request_id)
        assert workflow.store.get(req.request_id).status == RequestStatus.PENDING

    @pytest.mark.parametrize("decide", ["approve", "deny"])
    def test_terminal_states_are_final(self, conn, requester, reviewer, decide):
        workflow = ChangeRequestWorkflow(conn)
        req = _describe(workflow, requester)
        getattr(workflow, decide)(reviewer, req.request_id, "decided")
        final = workflow.store.get(req.request_id)

        with pytest.raises(IllegalStateError):
            workflow.approve(reviewer, req.request_id)
        with pytest.raises(IllegalStateError):
            workflow.deny(reviewer, req.request_id)
        with pytest.raises(IllegalStateError):
            workflow.return_for_info(reviewer, req.request_id, "more?")
        assert workflow.store.get(req.request_id) == final

    @pytest.mark.parametrize("comment", ["", "   ", None])
    def test_return_requires_comment(self, conn, requester, reviewer, comment):
        workflow = ChangeRequestWorkflow(conn)
        req = _describe(workflow, requester)
        with pytest.raises(ValidationError):
            workflow.return_for_info(reviewer, req.request_id, comment)
        assert workflow.store.get(req.request_id).status == RequestStatus.PENDING

    def test_return_only_from_pending(self, conn, requester, reviewer):
        workflow = ChangeRequestWorkflow(conn)
        req = _describe(workflow, requester)
        workflow.return_for_info(reviewer, req.request_id, "which orders?")
        with pytest.raises(IllegalStateError):
            workflow.return_for_info(reviewer, req.request_id, "again")

    def test_approve_from_more_info_needed(self, conn, requester, reviewer):
        workflow = ChangeRequestWorkflow(conn)
        req = _describe(workflow, requester)
        workflow.return_for_info(reviewer, req.request_id, "which orders?")

        approved = workflow.approve(reviewer, req.request_id)
        assert approved.status == RequestStatus.APPROVED

    def test_resubmit_only_by_requester(self, conn, requester, other_requester, reviewer):
        workflow = ChangeRequestWorkflow(conn)
        req = _describe(workflow, requester)
        workflow.return_for_info(reviewer, req.request_id, "which orders?")

        with pytest.raises(PermissionDeniedError):
            workflow.resubmit(other_requester, req.request_id, "mine now", {"description": "x"})
        assert workflow.store.get(req.request_id).status == RequestStatus.MORE_INFO_NEEDED

    def test_resubmit_from_pending_is_illegal(self, conn, requester):
        workflow = ChangeRequestWorkflow(conn)
        req = _describe(workflow, requester)
        with pytest.raises(IllegalStateError):
            workflow.resubmit(requester, req.request_id, "again", {"description": "x"})

    def test_resubmit_requires_justification(self, conn, requester, reviewer):
        workflow = ChangeRequestWorkflow(conn)
        req = _describe(workflow, requester)
        workflow.return_for_info(reviewer, req.request_id, "which orders?")
        with pytest.raises(ValidationError):
            workflow.resubmit(requester, req.request_id, "", {"description": "x"})
        assert workflow.store.get(req.request_id).status == RequestStatus.MORE_INFO_NEEDED

    def test_resubmit_cannot_retarget_attribute_create(self, conn, requester, reviewer):
        workflow = ChangeRequestWorkflow(conn)
        req = _create_filing_type(workflow, requester)
        workflow.return_for_info(reviewer, req.request_id, "which filings?")

        with pytest.raises(ValidationError):
            workflow.resubmit(
                requester, req.request_id, "renamed",
                {"attribute_name": "something_else", "display_name": "Something Else"},
            )
        assert workflow.store.get(req.request_id).status == RequestStatus.MORE_INFO_NEEDED

        workflow.approve(reviewer, req.request_id)
        assert workflow.content.attribute_exists("filing_type")
        assert not workflow.content.attribute_exists("something_else")

    def test_resubmit_recaptures_current_value(self, conn, requester, other_requester, reviewer):
        workflow = ChangeRequestWorkflow(conn)
        req = _describe(workflow, requester, "first draft")
        assert req.current_value is None
        workflow.return_for_info(reviewer, req.request_id, "which orders?")

        workflow.approve(reviewer, _describe(workflow, other_requester, "meanwhile").request_id)
        resubmitted = workflow.resubmit(requester, req.request_id, "more detail", {"description": "second draft"})

        assert resubmitted.status == RequestStatus.PENDING
        assert resubmitted.current_value == "meanwhile"

    def test_resubmit_checks_target_again(self, conn, requester, reviewer):
        workflow = ChangeRequestWorkflow(conn)
        emea = workflow.content.find_enumeration("sales_region", "EMEA")
        req = workflow.submit(
            requester, "ENUMERATION_EDIT", "sales_region", "rename",
            {"enumeration_id": emea.enumeration_id, "value_code": "EUR"},
        )
        workflow.return_for_info(reviewer, req.request_id, "why?")

        with pytest.raises(ValidationError, match="already exists"):
            workflow.resubmit(
                requester, req.request_id, "rename",
                {"enumeration_id": emea.enumeration_id, "value_code": "NA"},
            )


class TestApplyRules:
    """Approval writes the proposed change into the catalog content."""

    def test_column_description(self, conn, requester, reviewer):
        workflow = ChangeRequestWorkflow(conn)
        req = workflow.submit(
            requester, "COLUMN_DESCRIPTION", "DB.SCHEMA.ORDERS.STATUS", "clarify",
            {"description": "Lifecycle state of the order"},
        )
        workflow.approve(reviewer, req.request_id)

        columns = {c.column_name: c for c in workflow.content.list_columns("DB.SCHEMA.ORDERS")}
        assert columns["STATUS"].user_description == "Lifecycle state of the order"

    def test_tag_add_then_remove(self, conn, requester, reviewer):
        workflow = ChangeRequestWorkflow(conn)
        add = workflow.submit(requester, "TAG_ADD", "DB.SCHEMA.ORDERS", "contains PII", {"tag_name": "PII", "tag_value": "high"})
        workflow.approve(reviewer, add.request_id)
        tags = workflow.content.list_tags("DB.SCHEMA.ORDERS")
        assert [(t.tag_name, t.tag_value) for t in tags] == [("PII", "high")]

        remove = workflow.submit(
            requester, "TAG_REMOVE", "DB.SCHEMA.ORDERS", "masked now",
            {"tag_name": "PII", "tag_id": tags[0].tag_id},
        )
        assert remove.current_value["tag_value"] == "high"
        workflow.approve(reviewer, remove.request_id)
        assert workflow.content.list_tags("DB.SCHEMA.ORDERS") == []

    def test_tag_remove_of_missing_tag_rejected_at_submit(self, conn, requester):
        with pytest.raises(NotFoundError):
            ChangeRequestWorkflow(conn).submit(
                requester, "TAG_REMOVE", "DB.SCHEMA.ORDERS", "cleanup", {"tag_name": "PII"}
            )

    def test_attribute_edit(self, conn, requester, reviewer):
        workflow = ChangeRequestWorkflow(conn)
        req = workflow.submit(requester, "ATTRIBUTE_EDIT", "sales_region", "rename", {"display_name": "Region"})
        workflow.approve(reviewer, req.request_id)

        attribute = workflow.content.get_attribute("sales_region")
        assert attribute.display_name == "Region"
        assert attribute.description == "Region an order is booked against"
        assert attribute.updated_by == "ALICE"
        assert attribute.usage_count == 2

    def test_enumeration_add_uses_next_sort_order(self, conn, requester, reviewer):
        workflow = ChangeRequestWorkflow(conn)
        req = workflow.submit(
            requester, "ENUMERATION_ADD", "sales_region", "new market",
            {"value_code": "APAC", "value_description": "Asia Pacific"},
        )
        workflow.approve(reviewer, req.request_id)

        values = workflow.content.list_enumerations("sales_region")
        assert [(e.value_code, e.sort_order) for e in values] == [("NA", 1), ("EMEA", 2), ("APAC", 3)]

    @pytest.mark.parametrize("code", ["NA", "EMEA"])
    def test_enumeration_add_duplicate_code_rejected_at_submit(self, conn, requester, code):
        workflow = ChangeRequestWorkflow(conn)
        with pytest.raises(ValidationError, match="already exists"):
            workflow.submit(requester, "ENUMERATION_ADD", "sales_region", "duplicate", {"value_code": code})
        assert workflow.store.list_all() == []

    def test_enumeration_edit_to_taken_code_rejected_at_submit(self, conn, requester):
        workflow = ChangeRequestWorkflow(conn)
        emea = workflow.content.find_enumeration("sales_region", "EMEA")
        with pytest.raises(ValidationError):
            workflow.submit(
                requester, "ENUMERATION_EDIT", "sales_region", "merge",
                {"enumeration_id": emea.enumeration_id, "value_code": "NA"},
            )

    def test_enumeration_edit(self, conn, requester, reviewer):
        workflow = ChangeRequestWorkflow(conn)
        emea = workflow.content.list_enumerations("sales_region")[1]
        req = workflow.submit(
            requester, "ENUMERATION_EDIT", "sales_region", "retired",
            {"enumeration_id": emea.enumeration_id, "is_active": False},
        )
        assert req.current_value["value_code"] == "EMEA"
        workflow.approve(reviewer, req.request_id)

        assert [e.value_code for e in workflow.content.list_enumerations("sales_region")] == ["NA"]
        assert workflow.content.get_enumeration(emea.enumeration_id).is_active is False

    def test_attribute_create_is_idempotent(self, conn, requester, reviewer):
        workflow = ChangeRequestWorkflow(conn)
        first = _create_filing_type(workflow, requester)
        second = _create_filing_type(workflow, requester)
        workflow.approve(reviewer, first.request_id)
        workflow.approve(reviewer, second.request_id)

        count = conn.execute(
            "SELECT COUNT(*) AS cnt FROM attribute_definitions WHERE attribute_name = 'filing_type'"
        ).fetchone()["cnt"]
        assert count == 1
        assert len(workflow.content.list_enumerations("filing_type")) == 2


class TestApproveAtomicity:
    """A failed content write leaves the request in its prior state."""

    def test_dropped_table_blocks_approval(self, conn, requester, reviewer):
        workflow = ChangeRequestWorkflow(conn)
        req = _describe(workflow, requester)
        conn.execute("DELETE FROM catalog_tables WHERE full_name = 'DB.SCHEMA.ORDERS'")

        with pytest.raises(DependencyError):
            workflow.approve(reviewer, req.request_id, "looks good")

        after = workflow.store.get(req.request_id)
        assert after.status == RequestStatus.PENDING
        assert after.decision_comment is None
        assert workflow.content.get_table_description("DB.SCHEMA.ORDERS") is None

    def test_dropped_request_can_still_be_denied(self, conn, requester, reviewer):
        workflow = ChangeRequestWorkflow(conn)
        req = _describe(workflow, requester)
        conn.execute("DELETE FROM catalog_tables WHERE full_name = 'DB.SCHEMA.ORDERS'")
        with pytest.raises(DependencyError):
            workflow.approve(reviewer, req.request_id)

        assert workflow.deny(reviewer, req.request_id, "table gone").status == RequestStatus.DENIED

    def test_store_rejection_rolls_back_partial_writes(self, conn, requester, reviewer):
        workflow = ChangeRequestWorkflow(conn)
        first, second = (
            workflow.submit(requester, "ENUMERATION_ADD", "sales_region", "new market", {"value_code": "APAC"})
            for _ in range(2)
        )
        workflow.approve(reviewer, first.request_id)
        with pytest.raises(DependencyError):
            workflow.approve(reviewer, second.request_id)

        assert workflow.store.get(second.request_id).status == RequestStatus.PENDING
        assert len(workflow.content.list_enumerations("sales_region")) == 3

    def test_lock_timeout_is_retryable(self, db_path, requester, reviewer):
        setup = connect(db_path)
        blocker = connect(db_path)
        impatient = connect(db_path, timeout=0.1)
        try:
            req = _describe(ChangeRequestWorkflow(setup), requester)
            blocker.execute("BEGIN IMMEDIATE")

            with pytest.raises(StoreTimeoutError) as exc_info:
                ChangeRequestWorkflow(impatient).approve(reviewer, req.request_id)
            assert exc_info.value.retryable

            blocker.execute("ROLLBACK")
            assert ChangeRequestWorkflow(setup).store.get(req.request_id).status == RequestStatus.PENDING
        finally:
            setup.close()
            blocker.close()
            impatient.close()


class TestScenarios:
    """End-to-end workflows."""

    def test_description_approved(self, conn, requester, reviewer):
        workflow = ChangeRequestWorkflow(conn)
        req = _describe(workflow, requester)
        assert req.status == RequestStatus.PENDING

        approved = workflow.approve(reviewer, req.request_id, "looks good")

        assert approved.status == RequestStatus.APPROVED
        assert approved.decision_comment == "looks good"
        assert approved.assigned_to == "BOB"
        assert approved.decision_date is not None
        description = workflow.content.get_table_description("DB.SCHEMA.ORDERS")
        assert description.text == "Orders placed by customers"

    def test_attribute_created_with_enumerations(self, conn, requester, reviewer):
        workflow = ChangeRequestWorkflow(conn)
        req = _create_filing_type(workflow, requester)
        workflow.approve(reviewer, req.request_id)

        attribute = workflow.content.get_attribute("filing_type", with_enumerations=True)
        assert attribute is not None
        assert attribute.display_name == "Filing Type"
        assert [(e.value_code, e.sort_order) for e in attribute.enumerations] == [("10K", 1), ("10Q", 2)]

    def test_tag_returned_resubmitted_denied(self, conn, requester, reviewer):
        workflow = ChangeRequestWorkflow(conn)
        req = workflow.submit(requester, "TAG_ADD", "DB.SCHEMA.ORDERS", "tag it", {"tag_name": "FINANCE"})

        returned = workflow.return_for_info(reviewer, req.request_id, "need more justification")
        assert returned.status == RequestStatus.MORE_INFO_NEEDED
        assert returned.decision_comment == "need more justification"

        resubmitted = workflow.resubmit(requester, req.request_id, "used by finance close", {"tag_name": "FINANCE"})
        assert resubmitted.status == RequestStatus.PENDING
        assert resubmitted.decision_comment is None

        denied = workflow.deny(reviewer, req.request_id, "not needed")
        assert denied.status == RequestStatus.DENIED
        assert workflow.content.list_tags("DB.SCHEMA.ORDERS") == []

    def test_concurrent_approvals(self, db_path, requester, reviewer):
        setup = connect(db_path)
        try:
            req = _create_filing_type(ChangeRequestWorkflow(setup), requester)
        finally:
            setup.close()

        barrier = threading.Barrier(2)
        outcomes = []
        lock = threading.Lock()

        def approve():
            conn = connect(db_path, timeout=10)
            try:
                barrier.wait()
                ChangeRequestWorkflow(conn).approve(reviewer, req.request_id)
                result = "approved"
            except IllegalStateError:
                result = "illegal_state"
            finally:
                conn.close()
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=approve) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert sorted(outcomes) == ["approved", "illegal_state"]

        check = connect(db_path)
        try:
            repo = CatalogContentRepository(check)
            count = check.execute(
                "SELECT COUNT(*) AS cnt FROM attribute_definitions WHERE attribute_name = 'filing_type'"
            ).fetchone()["cnt"]
            assert count == 1
            assert len(repo.list_enumerations("filing_type")) == 2
        finally:
            check.close()
