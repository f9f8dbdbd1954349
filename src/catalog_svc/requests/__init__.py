"""
Change Request Workflow

Users propose edits to moderated catalog content (descriptions, tags,
glossary attributes and enumerations). A reviewer approves, denies or
returns each request; approval applies the edit to the catalog content
projection in the same transaction that records the decision.
"""

from .types import (
    ChangeRequest,
    RequestFamily,
    RequestStatus,
    RequestType,
    parse_proposed_change,
)
from .store import ChangeRequestStore
from .workflow import APPLY_RULES, ChangeRequestWorkflow

__all__ = [
    "ChangeRequest",
    "RequestFamily",
    "RequestStatus",
    "RequestType",
    "parse_proposed_change",
    "ChangeRequestStore",
    "APPLY_RULES",
    "ChangeRequestWorkflow",
]
