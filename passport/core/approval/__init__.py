"""Approval workflow module for the Aluminium Passport service.

Implements the role-gated approval state machine, typed resolution effects
and the transactional service on top of them.
"""

from .states import ApprovalStatus, ApprovalType, ApprovalAction, VALID_TRANSITIONS
from .machine import ApprovalStateMachine, effective_status, is_expired
from .effects import (
    SupplierOnboardingEffect,
    RoleChangeEffect,
    ConfigurationEffect,
    build_effect,
)
from .service import ApprovalService, SupplierOnboardingPayload

__all__ = [
    "ApprovalStatus",
    "ApprovalType",
    "ApprovalAction",
    "VALID_TRANSITIONS",
    "ApprovalStateMachine",
    "effective_status",
    "is_expired",
    "SupplierOnboardingEffect",
    "RoleChangeEffect",
    "ConfigurationEffect",
    "build_effect",
    "ApprovalService",
    "SupplierOnboardingPayload",
]
