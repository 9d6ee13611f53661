"""Approval workflow states and transitions.

State Machine Diagram:

                 ┌──────────┐
                 │ PENDING  │ ← Initial state (request created)
                 └────┬─────┘
                      │
         ┌────────────┼─────────────┐
         │            │             │
    ┌────▼─────┐ ┌────▼─────┐ ┌─────▼────┐
    │ APPROVED │ │ REJECTED │ │ EXPIRED  │
    └──────────┘ └──────────┘ └──────────┘

APPROVED and REJECTED are written by a decision. EXPIRED is derived from
``expires_at`` at read time; the periodic sweep may persist it, but a stored
PENDING row past its deadline is already treated as EXPIRED.
"""

from enum import Enum
from typing import Set, Dict, Optional, NamedTuple


class ApprovalStatus(str, Enum):
    """Stored and effective status of an approval request."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


class ApprovalType(str, Enum):
    """Kinds of request the workflow can decide."""

    SUPPLIER_ONBOARDING = "supplier_onboarding"
    USER_ROLE_CHANGE = "user_role_change"
    SYSTEM_CONFIGURATION = "system_configuration"


class ApprovalAction(str, Enum):
    """Actions that trigger state transitions."""

    APPROVE = "approve"  # PENDING → APPROVED
    REJECT = "reject"    # PENDING → REJECTED
    EXPIRE = "expire"    # PENDING → EXPIRED (system only)


class TransitionRule(NamedTuple):
    """Defines a valid state transition."""
    from_state: ApprovalStatus
    to_state: ApprovalStatus
    action: ApprovalAction
    system_only: bool = False


TRANSITION_RULES: list[TransitionRule] = [
    TransitionRule(ApprovalStatus.PENDING, ApprovalStatus.APPROVED, ApprovalAction.APPROVE),
    TransitionRule(ApprovalStatus.PENDING, ApprovalStatus.REJECTED, ApprovalAction.REJECT),
    TransitionRule(ApprovalStatus.PENDING, ApprovalStatus.EXPIRED, ApprovalAction.EXPIRE, system_only=True),
]

# Build lookup tables for efficient access
VALID_TRANSITIONS: Dict[ApprovalStatus, Set[ApprovalAction]] = {}
TRANSITION_TARGETS: Dict[tuple[ApprovalStatus, ApprovalAction], TransitionRule] = {}

for rule in TRANSITION_RULES:
    VALID_TRANSITIONS.setdefault(rule.from_state, set()).add(rule.action)
    TRANSITION_TARGETS[(rule.from_state, rule.action)] = rule


# Actions a user may take through Decide
DECISION_ACTIONS: Set[ApprovalAction] = {
    ApprovalAction.APPROVE,
    ApprovalAction.REJECT,
}


def can_transition(from_state: ApprovalStatus, action: ApprovalAction) -> bool:
    """Check if an action is valid from the given state."""
    return action in VALID_TRANSITIONS.get(from_state, set())


def get_transition_rule(from_state: ApprovalStatus, action: ApprovalAction) -> Optional[TransitionRule]:
    """Get the transition rule for a state/action combination."""
    return TRANSITION_TARGETS.get((from_state, action))


def get_target_state(from_state: ApprovalStatus, action: ApprovalAction) -> Optional[ApprovalStatus]:
    """Get the target state for a transition."""
    rule = get_transition_rule(from_state, action)
    return rule.to_state if rule else None


def is_valid_request_type(value: str) -> bool:
    return value in {t.value for t in ApprovalType}
