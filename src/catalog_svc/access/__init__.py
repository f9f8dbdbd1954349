"""
Access Request Sub-flow

Requests for time-boxed read access to a table, granted to a role or a
user. Reviewed by holders of APPROVE_DATA_ACCESS.
"""

from .types import AccessRequest, AccessStatus, AccessType
from .store import AccessRequestStore
from .workflow import AccessRequestWorkflow

__all__ = [
    "AccessRequest",
    "AccessStatus",
    "AccessType",
    "AccessRequestStore",
    "AccessRequestWorkflow",
]
