"""Error taxonomy for the approval engine.

Every engine failure is one of four kinds. The API layer maps each kind to
an HTTP status once, so engine code raises and never formats responses.
"""

from typing import Any, Dict, Optional


class ApprovalError(Exception):
    """Base class for approval engine errors."""

    kind = "approval_error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.kind,
            "detail": self.message,
            "context": {key: str(value) for key, value in self.context.items()},
        }


class NotFoundError(ApprovalError):
    """A referenced application, group, user, decision or issue does not exist."""

    kind = "not_found"

    def __init__(self, resource: str, resource_id: Optional[Any] = None):
        message = f"{resource} not found" if resource_id is None else f"{resource} {resource_id} not found"
        super().__init__(message, resource=resource, resource_id=resource_id)
        self.resource = resource
        self.resource_id = resource_id


class UnauthorizedError(ApprovalError):
    """The caller holds no active seat, or lacks the capability for the act."""

    kind = "unauthorized"


class InvalidStateError(ApprovalError):
    """The operation is not allowed in the current decision or workflow state."""

    kind = "invalid_state"


class ValidationError(ApprovalError):
    """Malformed input, such as an inconsistent issue assignment."""

    kind = "validation_error"
