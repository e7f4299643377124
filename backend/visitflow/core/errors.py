"""
Typed service errors.

Every error that crosses the service boundary carries a stable machine
code and the HTTP status it maps to. The handlers in ``main`` turn these
into the ``{"success": false, "code", "message"}`` envelope.
"""

from typing import Any, Dict, Optional


class ServiceError(Exception):
    """Base class for errors surfaced to API clients."""

    code = "server_error"
    status_code = 500

    def __init__(self, message: str = "", details: Optional[Dict[str, Any]] = None):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "success": False,
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            body["details"] = self.details
        return body


class UnauthorizedError(ServiceError):
    code = "unauthorized"
    status_code = 401


class NotFoundError(ServiceError):
    code = "not_found"
    status_code = 404


class NotDeletedError(ServiceError):
    """Restore requested for a record that is not soft-deleted."""

    code = "not_deleted"
    status_code = 409


# =============================================================================
# Repository Errors
# =============================================================================

class RepositoryError(ServiceError):
    code = "repository_error"
    status_code = 500


class InvalidCursorError(RepositoryError):
    """Pagination cursor does not resolve to a visible anchor row."""

    code = "invalid_cursor"
    status_code = 400

    def __init__(self, cursor: str):
        super().__init__("Invalid cursor", details={"cursor": cursor})
        self.cursor = cursor


# =============================================================================
# Cascade Errors
# =============================================================================

class CascadeError(ServiceError):
    code = "cascade_failed"
    status_code = 500


class CascadeTargetNotFoundError(CascadeError, NotFoundError):
    code = "not_found"
    status_code = 404


class CascadeOwnershipError(CascadeError, NotFoundError):
    """Owner mismatch is reported as not found so ids cannot be enumerated."""

    code = "not_found"
    status_code = 404


class VisitNotFoundError(NotFoundError):
    def __init__(self, visit_id: str):
        super().__init__("Visit not found", details={"visitId": visit_id})
        self.visit_id = visit_id
