"""Change request state machine.

    pending ──approve──> approved
       │  ├──deny─────> denied
       │  └──return───> more_info_needed ──resubmit──> pending
       │                       │
       │                       ├──approve──> approved
       │                       └──deny─────> denied

Approval applies the proposed change to the catalog content projection
and records the decision in the same transaction, so content and status
can never disagree.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Callable

from ..catalog.repository import CatalogContentRepository
from ..catalog.types import split_column_name, split_table_name
from ..db import transaction
from ..errors import (
    ConfigurationError,
    DependencyError,
    IllegalStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from ..permissions.types import CallerContext, Capability
from .store import ChangeRequestStore
from .types import (
    CONTENT_TYPES,
    OPEN_STATUSES,
    AttributeCreateChange,
    ChangeRequest,
    ProposedChange,
    RequestStatus,
    RequestType,
    TagRemoveChange,
    parse_proposed_change,
    parse_request_type,
)

logger = logging.getLogger(__name__)

# Capability a reviewer needs to decide change requests. Every change
# request type (descriptions and tags included) is reviewed by glossary
# approvers; data-access approvers decide access requests.
REVIEW_CAPABILITY = Capability.APPROVE_GLOSSARY


# =============================================================================
# Apply rules: one per request type, executed inside the approval transaction
# =============================================================================

def _require_table(repo: CatalogContentRepository, table: str) -> None:
    if not repo.table_exists(table):
        raise DependencyError(f"Table {table} no longer exists in the catalog")


def _require_attribute(repo: CatalogContentRepository, name: str) -> None:
    if not repo.attribute_exists(name):
        raise DependencyError(f"Attribute {name} no longer exists")


def _apply_description(repo: CatalogContentRepository, request: ChangeRequest) -> None:
    _require_table(repo, request.target_object)
    repo.upsert_table_description(
        request.target_object, request.proposed_change.description, request.requester
    )


def _apply_column_description(repo: CatalogContentRepository, request: ChangeRequest) -> None:
    table, column = split_column_name(request.target_object)
    if not repo.column_exists(table, column):
        raise DependencyError(f"Column {request.target_object} no longer exists in the catalog")
    repo.upsert_column_description(table, column, request.proposed_change.description, request.requester)


def _apply_tag_add(repo: CatalogContentRepository, request: ChangeRequest) -> None:
    _require_table(repo, request.target_object)
    change = request.proposed_change
    repo.add_tag(request.target_object, change.tag_name, change.tag_value, request.requester)


def _apply_tag_remove(repo: CatalogContentRepository, request: ChangeRequest) -> None:
    change: TagRemoveChange = request.proposed_change
    tag = repo.get_tag(change.tag_id) if change.tag_id else None
    if tag is None or tag.table_full_name != request.target_object:
        tag = repo.find_tag(request.target_object, change.tag_name)
    if tag is None:
        raise DependencyError(
            f"Tag {change.tag_name} is no longer attached to {request.target_object}"
        )
    repo.remove_tag(tag.tag_id)


def _apply_attribute_create(repo: CatalogContentRepository, request: ChangeRequest) -> None:
    change: AttributeCreateChange = request.proposed_change
    created = repo.create_attribute(
        change.attribute_name, change.display_name, change.description, request.requester
    )
    if not created:
        logger.info(f"Attribute {change.attribute_name} already exists; nothing to create")
        return
    for spec in change.enumerations:
        repo.add_enumeration(
            change.attribute_name, spec.value_code, spec.value_description,
            spec.sort_order, request.requester,
        )


def _apply_attribute_edit(repo: CatalogContentRepository, request: ChangeRequest) -> None:
    _require_attribute(repo, request.target_object)
    change = request.proposed_change
    repo.update_attribute(
        request.target_object, request.requester,
        display_name=change.display_name, description=change.description,
    )


def _apply_enumeration_add(repo: CatalogContentRepository, request: ChangeRequest) -> None:
    _require_attribute(repo, request.target_object)
    change = request.proposed_change
    repo.add_enumeration(
        request.target_object,
        change.value_code,
        change.value_description,
        repo.next_sort_order(request.target_object),
        request.requester,
    )


def _apply_enumeration_edit(repo: CatalogContentRepository, request: ChangeRequest) -> None:
    change = request.proposed_change
    enumeration = repo.get_enumeration(change.enumeration_id)
    if enumeration is None or enumeration.attribute_name != request.target_object:
        raise DependencyError(
            f"Enumeration {change.enumeration_id} no longer exists under {request.target_object}"
        )
    repo.update_enumeration(
        change.enumeration_id,
        request.requester,
        value_code=change.value_code,
        value_description=change.value_description,
        sort_order=change.sort_order,
        is_active=change.is_active,
    )


APPLY_RULES: dict[RequestType, Callable[[CatalogContentRepository, ChangeRequest], None]] = {
    RequestType.DESCRIPTION: _apply_description,
    RequestType.COLUMN_DESCRIPTION: _apply_column_description,
    RequestType.TAG_ADD: _apply_tag_add,
    RequestType.TAG_REMOVE: _apply_tag_remove,
    RequestType.ATTRIBUTE_CREATE: _apply_attribute_create,
    RequestType.ATTRIBUTE_EDIT: _apply_attribute_edit,
    RequestType.ENUMERATION_ADD: _apply_enumeration_add,
    RequestType.ENUMERATION_EDIT: _apply_enumeration_edit,
}


class ChangeRequestWorkflow:
    """Submission and review transitions for change requests."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.store = ChangeRequestStore(conn)
        self.content = CatalogContentRepository(conn)

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    def submit(
        self,
        caller: CallerContext,
        request_type: RequestType | str,
        target_object: str,
        justification: str,
        proposed_change: ProposedChange | dict[str, Any],
        current_value: Any = None,
    ) -> ChangeRequest:
        """Create a pending change request.

        The target must exist when the request is made. The current value
        is captured from the projection where one exists; otherwise the
        caller-supplied value is kept for display.
        """
        caller.require(Capability.CREATE_REQUESTS, "submit change requests")
        if isinstance(request_type, str) and not isinstance(request_type, RequestType):
            request_type = parse_request_type(request_type)
        if not justification or not justification.strip():
            raise ValidationError("Justification is required")
        if not target_object or not target_object.strip():
            raise ValidationError("Target object is required")
        target_object = target_object.strip()
        if isinstance(proposed_change, dict):
            proposed_change = parse_proposed_change(request_type, proposed_change)

        captured = self._check_target(request_type, target_object, proposed_change)
        if captured is None:
            captured = current_value

        return self.store.create(
            request_type=request_type,
            target_object=target_object,
            requester=caller.user,
            justification=justification,
            proposed_change=proposed_change,
            current_value=captured,
            assigned_to=self._reviewer_for(request_type, target_object),
        )

    def _check_target(
        self, request_type: RequestType, target: str, change: ProposedChange
    ) -> Any:
        """Validate the target of a new request and return its current value."""
        repo = self.content
        try:
            if request_type is RequestType.COLUMN_DESCRIPTION:
                table, column = split_column_name(target)
            elif request_type in CONTENT_TYPES:
                split_table_name(target)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        if request_type is RequestType.DESCRIPTION:
            if not repo.table_exists(target):
                raise NotFoundError(f"Table not found: {target}")
            description = repo.get_table_description(target)
            return description.text if description else None

        if request_type is RequestType.COLUMN_DESCRIPTION:
            if not repo.column_exists(table, column):
                raise NotFoundError(f"Column not found: {target}")
            description = repo.get_column_description(target)
            return description.text if description else None

        if request_type is RequestType.TAG_ADD:
            if not repo.table_exists(target):
                raise NotFoundError(f"Table not found: {target}")
            return None

        if request_type is RequestType.TAG_REMOVE:
            tag = repo.get_tag(change.tag_id) if change.tag_id else repo.find_tag(target, change.tag_name)
            if tag is None or tag.table_full_name != target:
                raise NotFoundError(f"Tag {change.tag_name} is not attached to {target}")
            return {"tag_id": tag.tag_id, "tag_name": tag.tag_name, "tag_value": tag.tag_value}

        if request_type is RequestType.ATTRIBUTE_CREATE:
            if change.attribute_name != target:
                raise ValidationError(
                    f"Target {target} does not match attribute_name {change.attribute_name}"
                )
            return None

        attribute = repo.get_attribute(target)
        if attribute is None:
            raise NotFoundError(f"Attribute not found: {target}")

        if request_type is RequestType.ATTRIBUTE_EDIT:
            return {"display_name": attribute.display_name, "description": attribute.description}

        if request_type is RequestType.ENUMERATION_ADD:
            self._check_code_free(target, change.value_code)
            return None

        if request_type is RequestType.ENUMERATION_EDIT:
            enumeration = repo.get_enumeration(change.enumeration_id)
            if enumeration is None or enumeration.attribute_name != target:
                raise NotFoundError(f"Enumeration {change.enumeration_id} not found under {target}")
            if change.value_code and change.value_code != enumeration.value_code:
                self._check_code_free(target, change.value_code)
            return {
                "value_code": enumeration.value_code,
                "value_description": enumeration.value_description,
                "sort_order": enumeration.sort_order,
                "is_active": enumeration.is_active,
            }
        return None

    def _check_code_free(self, attribute: str, value_code: str) -> None:
        if self.content.find_enumeration(attribute, value_code) is not None:
            raise ValidationError(f"Value code {value_code} already exists under {attribute}")

    def _reviewer_for(self, request_type: RequestType, target: str) -> str | None:
        """Owner contact of the target table, for table-scoped requests."""
        if request_type not in CONTENT_TYPES:
            return None
        if request_type is RequestType.COLUMN_DESCRIPTION:
            target, _ = split_column_name(target)
        table = self.content.get_table(target)
        return table.owner if table else None

    # -------------------------------------------------------------------------
    # Review transitions
    # -------------------------------------------------------------------------

    def approve(self, caller: CallerContext, request_id: str, comment: str | None = None) -> ChangeRequest:
        """Apply the proposed change and mark the request approved, atomically.

        Raises:
            PermissionDeniedError: caller cannot review change requests.
            IllegalStateError: request already decided.
            DependencyError: the target is gone or the write was rejected;
                the request keeps its prior status.
        """
        caller.require(REVIEW_CAPABILITY, "approve change requests")
        with transaction(self.conn):
            request = self.store.get(request_id)
            self._guard_open(request, RequestStatus.APPROVED)
            self._apply(request)
            return self.store.transition(
                request_id, OPEN_STATUSES, RequestStatus.APPROVED, caller.user, comment
            )

    def deny(self, caller: CallerContext, request_id: str, comment: str | None = None) -> ChangeRequest:
        caller.require(REVIEW_CAPABILITY, "deny change requests")
        with transaction(self.conn):
            return self.store.transition(
                request_id, OPEN_STATUSES, RequestStatus.DENIED, caller.user, comment
            )

    def return_for_info(self, caller: CallerContext, request_id: str, comment: str) -> ChangeRequest:
        """Send a pending request back to its requester; the comment says what is missing."""
        caller.require(REVIEW_CAPABILITY, "return change requests")
        if not comment or not comment.strip():
            raise ValidationError("A comment is required when requesting more information")
        with transaction(self.conn):
            return self.store.transition(
                request_id,
                (RequestStatus.PENDING,),
                RequestStatus.MORE_INFO_NEEDED,
                caller.user,
                comment.strip(),
            )

    def resubmit(
        self,
        caller: CallerContext,
        request_id: str,
        justification: str,
        proposed_change: ProposedChange | dict[str, Any],
    ) -> ChangeRequest:
        """Requester revises a returned request and puts it back in the queue.

        The revised payload is checked against the original target exactly
        as at submission, and the current value is captured again.
        """
        with transaction(self.conn):
            request = self.store.get(request_id)
            if request.requester != caller.user:
                raise PermissionDeniedError(
                    f"Only the requester ({request.requester}) can update change request {request_id}"
                )
            if request.status is not RequestStatus.MORE_INFO_NEEDED:
                raise IllegalStateError(
                    f"Change request {request_id} is {request.status.value}; "
                    f"only requests needing more info can be updated"
                )
            if isinstance(proposed_change, dict):
                proposed_change = parse_proposed_change(request.request_type, proposed_change)
            captured = self._check_target(request.request_type, request.target_object, proposed_change)
            return self.store.update(request_id, justification, proposed_change, current_value=captured)

    def _guard_open(self, request: ChangeRequest, to_status: RequestStatus) -> None:
        if request.status.is_terminal:
            raise IllegalStateError(
                f"Change request {request.request_id} is {request.status.value}; "
                f"cannot move to {to_status.value}"
            )

    def _apply(self, request: ChangeRequest) -> None:
        rule = APPLY_RULES.get(request.request_type)
        if rule is None:
            raise ConfigurationError(f"No apply rule for request type {request.request_type}")
        try:
            rule(self.content, request)
        except DependencyError as e:
            logger.warning(f"Change request {request.request_id} not applied: {e.message}")
            raise
        except sqlite3.IntegrityError as e:
            logger.error(f"Change request {request.request_id} rejected by the store: {e}")
            raise DependencyError(
                f"Content write for change request {request.request_id} failed: {e}"
            ) from e
        logger.info(
            f"Applied {request.request_type.value} to {request.target_object} "
            f"for change request {request.request_id}"
        )
