"""Scheduling error kinds

Each error is an HTTPException with a fixed status code so services can raise
them directly, and carries a structured ``detail`` the caller can act on.
"""

from typing import Any, Optional

from fastapi import HTTPException


class SchedulingError(HTTPException):
    """Base class for engine errors"""

    status_code = 500
    kind = "InternalError"

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(
            status_code=self.status_code,
            detail={"error": self.kind, "message": message, **context},
        )


class SlotConflictError(SchedulingError):
    """Requested interval is no longer free; retry with a fresh availability query"""

    status_code = 409
    kind = "Conflict"


class NotFoundError(SchedulingError):
    status_code = 404
    kind = "NotFound"


class InvalidTransitionError(SchedulingError):
    status_code = 409
    kind = "InvalidTransition"

    def __init__(self, current: Any, target: Any, message: Optional[str] = None, **context: Any):
        current_value = getattr(current, "value", current)
        target_value = getattr(target, "value", target)
        super().__init__(
            message or f"Cannot move from {current_value} to {target_value}",
            current=current_value,
            target=target_value,
            **context,
        )


class SchedulingValidationError(SchedulingError):
    """Malformed time range, non-positive duration, or otherwise unusable input"""

    status_code = 422
    kind = "ValidationError"


class SalonAccessError(SchedulingError):
    """Resource belongs to a different salon than the caller"""

    status_code = 403
    kind = "Unauthorized"


class InternalError(SchedulingError):
    status_code = 500
    kind = "InternalError"

    def __init__(self, message: str = "Internal error, please retry"):
        super().__init__(message)
