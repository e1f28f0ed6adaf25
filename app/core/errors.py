from typing import Any, Dict, Optional


class ModerationError(Exception):
    """Base class for failures reported by the moderation services."""

    status_code = 500
    code = "MODERATION_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(ModerationError):
    status_code = 404
    code = "NOT_FOUND"


class ValidationError(ModerationError):
    status_code = 400
    code = "VALIDATION_ERROR"


class ConflictError(ModerationError):
    status_code = 409
    code = "CONFLICT"


class ForbiddenError(ModerationError):
    status_code = 403
    code = "FORBIDDEN"


class DependencyFailure(ModerationError):
    """Raised when the store or the push sink fails."""

    status_code = 503
    code = "DEPENDENCY_FAILURE"
