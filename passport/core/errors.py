"""Error taxonomy for the approval workflow.

Every failure surfaced by the workflow engine carries a stable ``kind``
string and a human-readable message. The HTTP layer maps kinds to status
codes; nothing below the API imports FastAPI.
"""

from typing import Any, Dict, Optional


class WorkflowError(Exception):
    """Base class for all typed workflow failures."""

    kind: str = "workflow_error"

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(WorkflowError):
    """Malformed input: bad wallet format, unknown request type or role, missing field."""

    kind = "validation_error"


class AuthorizationError(WorkflowError):
    """Actor's role level is insufficient for the operation."""

    kind = "authorization_error"

    def __init__(self, message: str, *, actor_role: Optional[str] = None, required_role: Optional[str] = None):
        details = {}
        if actor_role is not None:
            details["actor_role"] = actor_role
        if required_role is not None:
            details["required_role"] = required_role
        super().__init__(message, details=details)
        self.actor_role = actor_role
        self.required_role = required_role


class ConflictError(WorkflowError):
    """Duplicate user/wallet, or a decision on a request that is no longer pending."""

    kind = "conflict"


class NotFoundError(WorkflowError):
    """Referenced record does not exist."""

    kind = "not_found"


class TransactionError(WorkflowError):
    """Store failure during a multi-step write. The transaction was rolled back; safe to retry."""

    kind = "transaction_error"
