"""Error taxonomy shared by the stores, workflows and HTTP layer.

Every error carries a machine-readable ``kind`` and the HTTP status the API
layer answers with. Route handlers never catch these; the app-level exception
handler renders them.
"""

from __future__ import annotations


class CatalogError(Exception):
    """Base class for all service errors."""
    kind: str = "error"
    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CatalogError):
    """A required field is missing, empty or malformed."""
    kind = "validation_error"
    status_code = 400


class PermissionDeniedError(CatalogError):
    """The caller lacks the capability the operation requires."""
    kind = "permission_denied"
    status_code = 403


class NotFoundError(CatalogError):
    """Unknown request id or catalog object."""
    kind = "not_found"
    status_code = 404


class IllegalStateError(CatalogError):
    """Transition attempted from a state that does not allow it."""
    kind = "illegal_state"
    status_code = 409


class DependencyError(CatalogError):
    """Applying an approved change to catalog content failed.

    The request stays in its prior state and can be retried or denied.
    """
    kind = "dependency_error"
    status_code = 502


class StoreTimeoutError(CatalogError):
    """The store did not grant a lock within the configured timeout."""
    kind = "store_timeout"
    status_code = 503
    retryable = True


class ConfigurationError(CatalogError):
    """Fatal misconfiguration, e.g. a request type with no apply rule."""
    kind = "configuration_error"
    status_code = 500
