"""Approval state machine implementation.

Evaluates a single request's effective state and validates a transition
against the role hierarchy. Persistence lives in the service; the machine
never touches the database.
"""

from datetime import datetime
from typing import Optional, Dict, Any

from passport.core.errors import AuthorizationError, ConflictError, ValidationError
from passport.core.identity import Actor
from passport.core.rbac.roles import has_higher_or_equal_role
from .states import (
    ApprovalStatus,
    ApprovalAction,
    DECISION_ACTIONS,
    can_transition,
    get_transition_rule,
)


def is_expired(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """A request without a deadline never expires."""
    if expires_at is None:
        return False
    return (now or datetime.utcnow()) > expires_at


def effective_status(
    stored_status: str,
    expires_at: Optional[datetime],
    now: Optional[datetime] = None,
) -> ApprovalStatus:
    """Stored status with lazy expiry applied."""
    status = ApprovalStatus(stored_status)
    if status == ApprovalStatus.PENDING and is_expired(expires_at, now):
        return ApprovalStatus.EXPIRED
    return status


class ApprovalStateMachine:
    """
    State machine for one approval request.

    Handles:
    - Derived expiry (a stored PENDING row past ``expires_at`` is EXPIRED)
    - Approver role checks against the hierarchy
    - Validation of decision transitions
    """

    def __init__(
        self,
        request_id: int,
        stored_status: str,
        approver_role: str,
        expires_at: Optional[datetime] = None,
        *,
        now: Optional[datetime] = None,
    ):
        """
        Initialize the state machine.

        Args:
            request_id: ID of the approval request
            stored_status: Status as persisted
            approver_role: Minimum role allowed to decide
            expires_at: Deadline after which the request counts as expired
            now: Clock override, mainly for tests
        """
        self.request_id = request_id
        self.stored_status = ApprovalStatus(stored_status)
        self.approver_role = approver_role
        self.expires_at = expires_at
        self.now = now or datetime.utcnow()

    @property
    def state(self) -> ApprovalStatus:
        """Effective state, with expiry applied."""
        return effective_status(self.stored_status.value, self.expires_at, self.now)

    @property
    def is_pending(self) -> bool:
        return self.state == ApprovalStatus.PENDING

    def can_be_approved_by(self, role: str) -> bool:
        """Deciders need at least the approver role's level."""
        return has_higher_or_equal_role(role, self.approver_role)

    def decide(
        self,
        action: ApprovalAction,
        actor: Actor,
        *,
        reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Validate a user decision and return the transition record.

        Raises:
            ValidationError: action is not approve/reject
            AuthorizationError: actor's role is below the approver role
            ConflictError: request is not pending or has expired
        """
        try:
            action = ApprovalAction(action)
        except ValueError:
            raise ValidationError(f"Invalid action: {action}")
        if action not in DECISION_ACTIONS:
            raise ValidationError(f"Action {action.value} cannot be requested by a user")

        if not self.can_be_approved_by(actor.role):
            raise AuthorizationError(
                "Insufficient permissions to approve this request",
                actor_role=actor.role,
                required_role=self.approver_role,
            )

        return self._transition(action, actor.user_id, reason)

    def expire(self) -> Dict[str, Any]:
        """System transition persisting a lapsed deadline."""
        if self.state != ApprovalStatus.EXPIRED or self.stored_status != ApprovalStatus.PENDING:
            raise ConflictError(f"Request {self.request_id} is not awaiting expiry")
        return self._record(ApprovalStatus.PENDING, ApprovalStatus.EXPIRED, ApprovalAction.EXPIRE, None, None)

    def _transition(self, action: ApprovalAction, user_id: Optional[int], reason: Optional[str]) -> Dict[str, Any]:
        current = self.state
        if current != ApprovalStatus.PENDING or not can_transition(current, action):
            raise ConflictError(
                "Request is not pending or has expired",
                details={"status": current.value},
            )

        rule = get_transition_rule(current, action)
        return self._record(current, rule.to_state, action, user_id, reason)

    def _record(
        self,
        from_state: ApprovalStatus,
        to_state: ApprovalStatus,
        action: ApprovalAction,
        user_id: Optional[int],
        reason: Optional[str],
    ) -> Dict[str, Any]:
        return {
            "request_id": self.request_id,
            "from_state": from_state.value,
            "to_state": to_state.value,
            "action": action.value,
            "user_id": user_id,
            "reason": reason,
            "timestamp": self.now,
        }
