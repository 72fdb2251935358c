"""Error types raised by the lead admission and routing core."""

from typing import Any, Optional


class RoutingError(Exception):
    """Base exception for lead routing errors."""

    error_code = "ROUTING_ERROR"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to a dictionary for logging and API responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(RoutingError):
    """Bad input to an assignment or status operation."""

    error_code = "VALIDATION_ERROR"


class InvalidTransition(RoutingError):
    """A status change that would move a lead backwards."""

    error_code = "INVALID_TRANSITION"


class DuplicateAdmissionConflict(RoutingError):
    """Another caller already created the queue entry for this loss event."""

    error_code = "DUPLICATE_ADMISSION"


class ConcurrentModificationConflict(RoutingError):
    """The entry changed since it was read; reload and retry."""

    error_code = "CONCURRENT_MODIFICATION"


class DependencyUnavailable(RoutingError):
    """The data store failed or timed out."""

    error_code = "DEPENDENCY_UNAVAILABLE"


class PermissionDenied(RoutingError):
    """The operator's role does not allow the requested action."""

    error_code = "PERMISSION_DENIED"
