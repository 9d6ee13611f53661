"""Typed resolution effects.

Each request type carries one effect class that knows how to parse its
``request_data`` and how to apply itself when the request is approved.
Effects run inside the caller's transaction and never commit; any exception
they raise rolls back the decision along with them.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Union

from sqlalchemy.orm import Session

from passport.core.errors import AuthorizationError, NotFoundError, ValidationError
from passport.core.identity import Actor
from passport.core.rbac.roles import get_role_level, is_valid_role
from passport.db.models import ApprovalRequest, SystemSetting, User
from .states import ApprovalType


class PendingUserStatus:
    PENDING = "pending"
    ACTIVATED = "activated"
    DISCARDED = "discarded"


@dataclass(frozen=True)
class SupplierOnboardingEffect:
    """Materialise the request's PendingUser into an active user."""

    def apply(self, db: Session, request: ApprovalRequest, actor: Actor) -> Dict[str, Any]:
        pending = request.pending_user
        if pending is None:
            raise ValidationError(
                f"Supplier onboarding request {request.id} has no pending user to activate"
            )
        if pending.status != PendingUserStatus.PENDING:
            raise ValidationError(f"Pending user for request {request.id} is already {pending.status}")

        user = User(
            wallet_address=pending.wallet_address,
            username=pending.username,
            email=pending.email,
            password_hash=pending.password_hash,
            role=pending.requested_role,
            company_name=pending.company_name,
            contact_info=pending.contact_info,
            is_active=True,
        )
        db.add(user)
        # Flush so unique constraints fire inside this transaction
        db.flush()

        pending.status = PendingUserStatus.ACTIVATED
        pending.user_id = user.id

        return {"user_id": user.id, "username": user.username, "role": user.role}

    def discard(self, db: Session, request: ApprovalRequest) -> None:
        pending = request.pending_user
        if pending is not None and pending.status == PendingUserStatus.PENDING:
            pending.status = PendingUserStatus.DISCARDED


@dataclass(frozen=True)
class RoleChangeEffect:
    """Assign ``new_role`` to an existing user."""

    user_id: int
    new_role: str

    def apply(self, db: Session, request: ApprovalRequest, actor: Actor) -> Dict[str, Any]:
        user = db.get(User, self.user_id)
        if user is None:
            raise NotFoundError(f"User {self.user_id} not found")

        # Nobody can grant more privilege than they hold
        if get_role_level(self.new_role) > actor.level:
            raise AuthorizationError(
                "Cannot assign a role above your own",
                actor_role=actor.role,
                required_role=self.new_role,
            )

        old_role = user.role
        user.role = self.new_role
        user.updated_at = datetime.utcnow()
        db.flush()

        return {"user_id": user.id, "old_role": old_role, "new_role": self.new_role}

    def discard(self, db: Session, request: ApprovalRequest) -> None:
        return None


@dataclass(frozen=True)
class ConfigurationEffect:
    """Upsert a system setting."""

    key: str
    value: Any

    def apply(self, db: Session, request: ApprovalRequest, actor: Actor) -> Dict[str, Any]:
        setting = db.query(SystemSetting).filter(SystemSetting.key == self.key).first()
        old_value = setting.value if setting else None

        if setting is None:
            setting = SystemSetting(key=self.key)
            db.add(setting)

        setting.value = self.value
        setting.updated_by = actor.user_id
        setting.approval_request_id = request.id
        setting.updated_at = datetime.utcnow()
        db.flush()

        return {"key": self.key, "old_value": old_value, "new_value": self.value}

    def discard(self, db: Session, request: ApprovalRequest) -> None:
        return None


ResolutionEffect = Union[SupplierOnboardingEffect, RoleChangeEffect, ConfigurationEffect]


def _parse_role_change(data: Dict[str, Any]) -> RoleChangeEffect:
    user_id = data.get("user_id")
    # bool is an int subclass; reject it explicitly
    if not isinstance(user_id, int) or isinstance(user_id, bool) or user_id <= 0:
        raise ValidationError("user_role_change requires a positive integer 'user_id'")

    new_role = data.get("new_role")
    if not isinstance(new_role, str) or not is_valid_role(new_role):
        raise ValidationError(f"Invalid new_role: {new_role}")

    return RoleChangeEffect(user_id=user_id, new_role=new_role)


def _parse_configuration(data: Dict[str, Any]) -> ConfigurationEffect:
    key = data.get("key")
    if not isinstance(key, str) or not key.strip():
        raise ValidationError("system_configuration requires a non-empty 'key'")
    if "value" not in data:
        raise ValidationError("system_configuration requires a 'value'")
    return ConfigurationEffect(key=key.strip(), value=data["value"])


def build_effect(request_type: str, request_data: Optional[Dict[str, Any]]) -> ResolutionEffect:
    """
    Parse ``request_data`` into the effect for ``request_type``.

    Raises:
        ValidationError: unknown type or malformed payload
    """
    try:
        kind = ApprovalType(request_type)
    except ValueError:
        raise ValidationError(f"Invalid request type: {request_type}")

    data = request_data or {}
    if not isinstance(data, dict):
        raise ValidationError("request_data must be an object")

    if kind == ApprovalType.SUPPLIER_ONBOARDING:
        return SupplierOnboardingEffect()
    if kind == ApprovalType.USER_ROLE_CHANGE:
        return _parse_role_change(data)
    return _parse_configuration(data)
