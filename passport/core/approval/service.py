"""Approval service for the role-gated request workflow.

Provides the high-level operations on approval requests: creation, supplier
onboarding, listing, retrieval, decisions and the expiry sweep. Each
operation runs in one transaction on the injected session; notifications
and audit records are emitted after commit and never fail the operation.
"""

import logging
import math
import re
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List, Protocol, Union

from sqlalchemy import and_, func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from passport.core.config import Settings, get_settings
from passport.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    TransactionError,
    ValidationError,
    WorkflowError,
)
from passport.core.identity import Actor
from passport.core.rbac.checker import RoleChecker
from passport.core.rbac.roles import (
    Role,
    get_roles_at_or_above,
    is_valid_role,
    requires_super_admin_approval,
)
from passport.core.security import generate_temporary_password, get_password_hash
from passport.db.models import ApprovalRequest, AuditAction, PendingUser, User
from passport.db.models.notification import NotificationEventType
from .effects import PendingUserStatus, SupplierOnboardingEffect, build_effect
from .machine import ApprovalStateMachine, effective_status
from .states import (
    ApprovalAction,
    ApprovalStatus,
    ApprovalType,
    DECISION_ACTIONS,
    is_valid_request_type,
)

logger = logging.getLogger(__name__)

WALLET_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

ONBOARDING_STATUS = "pending_super_admin_approval"

# Minimum role needed to open a request of each type
CREATE_MINIMUM_ROLE: Dict[str, str] = {
    ApprovalType.SUPPLIER_ONBOARDING.value: Role.ADMIN.value,
    ApprovalType.USER_ROLE_CHANGE.value: Role.ADMIN.value,
    ApprovalType.SYSTEM_CONFIGURATION.value: Role.ADMIN.value,
}

# Actors at or above this level see every request
VIEW_ALL_ROLE = Role.ADMIN.value

SYSTEM_ROLE = "system"


class NotificationSink(Protocol):
    def notify(self, recipients: List[Union[str, int]], event_kind: str, summary: Dict[str, Any]) -> None:
        ...


class AuditSink(Protocol):
    def record(
        self,
        actor_id: Optional[int],
        actor_role: str,
        action: str,
        resource_type: str,
        resource_id: Any,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        ...


@dataclass
class SupplierOnboardingPayload:
    """Proposed supplier identity submitted by an admin."""

    wallet_address: str
    username: str
    requested_role: str
    email: Optional[str] = None
    company_name: Optional[str] = None
    company_type: Optional[str] = None
    business_license: Optional[str] = None
    contact_info: Optional[Dict[str, Any]] = None
    justification: Optional[str] = None


def is_valid_wallet_address(address: str) -> bool:
    return bool(address) and WALLET_ADDRESS_RE.match(address) is not None


def normalize_pagination(page: int, limit: int) -> tuple[int, int]:
    """Pages are 1-indexed; out-of-range limits fall back to the default."""
    if page is None or page < 1:
        page = 1
    if limit is None or limit < 1 or limit > MAX_PAGE_SIZE:
        limit = DEFAULT_PAGE_SIZE
    return page, limit


class ApprovalService:
    """
    High-level service for managing approval requests.

    Handles:
    - Creating requests and supplier onboarding
    - Listing and retrieving requests under the view policy
    - Race-safe decisions with atomic resolution effects
    - Persisting lazy expiry
    """

    def __init__(
        self,
        db: Session,
        *,
        notifier: Optional[NotificationSink] = None,
        auditor: Optional[AuditSink] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the approval service.

        Args:
            db: Database session; the service commits and rolls back on it
            notifier: Notification sink, optional
            auditor: Audit sink, optional
            settings: Settings override, defaults to the cached settings
        """
        self.db = db
        self.notifier = notifier
        self.auditor = auditor
        self.settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_request(
        self,
        actor: Actor,
        request_type: str,
        approver_role: str,
        title: str,
        description: Optional[str] = None,
        request_data: Optional[Dict[str, Any]] = None,
        expires_in_days: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Open a new pending request.

        Raises:
            ValidationError: bad type, approver role, title, expiry or request_data
            AuthorizationError: actor below the type's creation minimum
            TransactionError: store failure
        """
        if not is_valid_request_type(request_type):
            raise ValidationError(f"Invalid request type: {request_type}")
        if not is_valid_role(approver_role):
            raise ValidationError(f"Invalid approver role: {approver_role}")
        if not title or not title.strip():
            raise ValidationError("Title is required")
        expiry_days = self._expiry_days(expires_in_days)

        RoleChecker(actor.role).ensure(
            CREATE_MINIMUM_ROLE[request_type],
            f"Insufficient permissions to create {request_type} requests",
        )

        # Parse now so malformed payloads never reach the table
        build_effect(request_type, request_data)

        now = datetime.utcnow()
        request = ApprovalRequest(
            request_type=request_type,
            requested_by=actor.user_id,
            approver_role=approver_role,
            status=ApprovalStatus.PENDING.value,
            title=title.strip(),
            description=description,
            request_data=request_data or {},
            expires_at=now + timedelta(days=expiry_days),
            created_at=now,
            updated_at=now,
        )

        with self._transaction("create approval request"):
            self.db.add(request)
            self.db.flush()

        logger.info(
            f"Approval request {request.id} ({request_type}) created by user {actor.user_id}, "
            f"approver role {approver_role}"
        )

        self._notify(get_roles_at_or_above(approver_role), NotificationEventType.APPROVAL_PENDING, request)
        self._audit(
            actor,
            AuditAction.CREATE,
            request.id,
            new_values={
                "request_type": request_type,
                "approver_role": approver_role,
                "status": request.status,
            },
        )

        return {
            "id": request.id,
            "status": request.status,
            "approver_role": request.approver_role,
            "expires_at": request.expires_at,
        }

    def request_supplier_onboarding(
        self,
        actor: Actor,
        payload: SupplierOnboardingPayload,
    ) -> Dict[str, Any]:
        """
        Create a supplier onboarding request with its pending user.

        The request and pending user are written in one transaction. The
        returned temporary password is shown once and stored only hashed.

        Raises:
            AuthorizationError: actor below admin
            ValidationError: bad role, wallet or username
            ConflictError: identity already taken
            TransactionError: store failure
        """
        RoleChecker(actor.role).ensure(
            Role.ADMIN.value,
            "Only admins can request supplier onboarding",
        )

        if not requires_super_admin_approval(payload.requested_role):
            raise ValidationError(
                f"Role {payload.requested_role} is not a supplier role",
                details={"requested_role": payload.requested_role},
            )
        if not is_valid_wallet_address(payload.wallet_address):
            raise ValidationError("Invalid wallet address format")
        username = (payload.username or "").strip()
        if not username:
            raise ValidationError("Username is required")

        self._ensure_identity_available(username, payload.wallet_address, payload.email)

        temporary_password = generate_temporary_password()
        now = datetime.utcnow()
        display_name = payload.company_name or username

        request_data = asdict(payload)
        request_data["username"] = username

        request = ApprovalRequest(
            request_type=ApprovalType.SUPPLIER_ONBOARDING.value,
            requested_by=actor.user_id,
            approver_role=Role.SUPER_ADMIN.value,
            status=ApprovalStatus.PENDING.value,
            title=f"Supplier Onboarding: {display_name} ({payload.requested_role})",
            description=payload.justification,
            request_data=request_data,
            expires_at=now + timedelta(days=self._expiry_days(None)),
            created_at=now,
            updated_at=now,
        )

        with self._transaction("create supplier onboarding request"):
            self._release_lapsed_identity(username, payload.wallet_address, now)
            self.db.add(request)
            self.db.flush()

            pending_user = PendingUser(
                approval_request_id=request.id,
                wallet_address=payload.wallet_address,
                username=username,
                email=payload.email,
                password_hash=get_password_hash(temporary_password),
                requested_role=payload.requested_role,
                company_name=payload.company_name,
                company_type=payload.company_type,
                business_license=payload.business_license,
                contact_info=payload.contact_info,
                justification=payload.justification,
                status=PendingUserStatus.PENDING,
                created_at=now,
            )
            self.db.add(pending_user)
            try:
                self.db.flush()
            except IntegrityError as e:
                # A concurrent onboarding claimed the identity after our check
                raise ConflictError(
                    "An onboarding request for this identity is already pending",
                    details={"username": username, "wallet_address": payload.wallet_address},
                ) from e

        logger.info(
            f"Supplier onboarding request {request.id} for {username} "
            f"({payload.requested_role}) created by user {actor.user_id}"
        )

        self._notify([Role.SUPER_ADMIN.value], NotificationEventType.APPROVAL_PENDING, request)
        self._audit(
            actor,
            AuditAction.CREATE,
            request.id,
            new_values={
                "request_type": request.request_type,
                "requested_role": payload.requested_role,
                "wallet_address": payload.wallet_address,
                "username": username,
            },
        )

        return {
            "request_id": request.id,
            "status": ONBOARDING_STATUS,
            "approver_role": request.approver_role,
            "expires_at": request.expires_at,
            "pending_user_id": pending_user.id,
            "temporary_password": temporary_password,
        }

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_requests(
        self,
        actor: Actor,
        *,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        status: Optional[str] = None,
        request_type: Optional[str] = None,
        for_approval: bool = False,
    ) -> Dict[str, Any]:
        """List a page of requests visible to (or decidable by) the actor."""
        page, limit = normalize_pagination(page, limit)
        now = datetime.utcnow()
        eligible_roles = RoleChecker(actor.role).get_roles_at_or_below()

        query = self.db.query(ApprovalRequest)

        if for_approval:
            query = query.filter(
                ApprovalRequest.approver_role.in_(eligible_roles),
                self._effective_status_clause(ApprovalStatus.PENDING, now),
            )
        elif not actor.has_role_at_least(VIEW_ALL_ROLE):
            query = query.filter(
                or_(
                    ApprovalRequest.requested_by == actor.user_id,
                    ApprovalRequest.approver_role.in_(eligible_roles),
                )
            )

        if status:
            try:
                wanted = ApprovalStatus(status)
            except ValueError:
                raise ValidationError(f"Invalid status filter: {status}")
            query = query.filter(self._effective_status_clause(wanted, now))

        if request_type:
            if not is_valid_request_type(request_type):
                raise ValidationError(f"Invalid request type: {request_type}")
            query = query.filter(ApprovalRequest.request_type == request_type)

        total = query.count()
        rows = (
            query.order_by(ApprovalRequest.created_at.desc(), ApprovalRequest.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        items = [self._request_to_dict(r, now) for r in rows]

        self._audit(
            actor,
            AuditAction.VIEW,
            None,
            resource_type="approval_requests",
            details={
                "page": page,
                "limit": limit,
                "status": status,
                "request_type": request_type,
                "for_approval": for_approval,
            },
        )

        return {
            "items": items,
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit) if total else 0,
        }

    def get_request(self, actor: Actor, request_id: int) -> Dict[str, Any]:
        """
        Fetch one request.

        Raises:
            NotFoundError: no such request
            AuthorizationError: request outside the actor's view
        """
        request = self.db.get(ApprovalRequest, request_id)
        if request is None:
            raise NotFoundError(f"Approval request {request_id} not found")

        if not self._can_view(actor, request):
            raise AuthorizationError(
                "Insufficient permissions to view this request",
                actor_role=actor.role,
                required_role=request.approver_role,
            )

        result = self._request_to_dict(request)
        if request.pending_user is not None:
            result["pending_user"] = self._pending_user_to_dict(request.pending_user)

        self._audit(actor, AuditAction.VIEW, request.id)
        return result

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def decide(
        self,
        actor: Actor,
        request_id: int,
        action: Union[str, ApprovalAction],
        reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Approve or reject a pending request.

        The status change and the resolution effect commit together, or not
        at all. A concurrent loser sees zero rows updated by the guarded
        UPDATE and gets a ConflictError.

        Raises:
            ValidationError: action is not approve/reject, or bad request_data
            NotFoundError: no such request
            AuthorizationError: actor below the approver role
            ConflictError: request is not pending or has expired
            TransactionError: store failure, nothing was changed
        """
        try:
            action = ApprovalAction(action)
        except ValueError:
            raise ValidationError(f"Invalid action: {action}")
        if action not in DECISION_ACTIONS:
            raise ValidationError(f"Invalid action: {action.value}")

        with self._transaction(f"{action.value} approval request {request_id}"):
            request = self._lock_request(request_id)
            if request is None:
                raise NotFoundError(f"Approval request {request_id} not found")

            now = datetime.utcnow()
            machine = ApprovalStateMachine(
                request.id,
                request.status,
                request.approver_role,
                request.expires_at,
                now=now,
            )
            record = machine.decide(action, actor, reason=reason)
            if action == ApprovalAction.APPROVE:
                effect = build_effect(request.request_type, request.request_data)

            values = {
                ApprovalRequest.status: record["to_state"],
                ApprovalRequest.approved_by: actor.user_id,
                ApprovalRequest.approved_at: now,
                ApprovalRequest.updated_at: now,
            }
            if action == ApprovalAction.APPROVE:
                values[ApprovalRequest.approval_reason] = reason
            else:
                values[ApprovalRequest.rejection_reason] = reason

            updated = (
                self.db.query(ApprovalRequest)
                .filter(
                    ApprovalRequest.id == request.id,
                    ApprovalRequest.status == ApprovalStatus.PENDING.value,
                    or_(ApprovalRequest.expires_at.is_(None), ApprovalRequest.expires_at >= now),
                )
                .update(values, synchronize_session=False)
            )
            if updated == 0:
                raise ConflictError(
                    "Request is not pending or has expired",
                    details={"request_id": request.id},
                )
            self.db.refresh(request)

            effect_result = None
            if action == ApprovalAction.APPROVE:
                effect_result = effect.apply(self.db, request, actor)
            elif request.request_type == ApprovalType.SUPPLIER_ONBOARDING.value:
                SupplierOnboardingEffect().discard(self.db, request)
            self.db.flush()

        logger.info(
            f"Approval request {request.id} {record['to_state']} by user {actor.user_id} ({actor.role})"
        )

        event = (
            NotificationEventType.APPROVAL_APPROVED
            if action == ApprovalAction.APPROVE
            else NotificationEventType.APPROVAL_REJECTED
        )
        if request.requested_by is not None:
            self._notify([request.requested_by], event, request, reason=reason)

        new_values = {"status": request.status, "reason": reason}
        if effect_result:
            new_values["effect"] = effect_result
        self._audit(
            actor,
            AuditAction.APPROVE if action == ApprovalAction.APPROVE else AuditAction.REJECT,
            request.id,
            old_values={"status": record["from_state"]},
            new_values=new_values,
        )

        result = self._request_to_dict(request, now)
        if effect_result:
            result["effect"] = effect_result
        return result

    def approve(self, actor: Actor, request_id: int, reason: Optional[str] = None) -> Dict[str, Any]:
        return self.decide(actor, request_id, ApprovalAction.APPROVE, reason)

    def reject(self, actor: Actor, request_id: int, reason: Optional[str] = None) -> Dict[str, Any]:
        return self.decide(actor, request_id, ApprovalAction.REJECT, reason)

    def expire_stale_requests(self) -> int:
        """
        Persist ``expired`` for pending requests past their deadline.

        Only a convenience for queries; decisions already treat these rows
        as expired.

        Returns:
            Number of requests expired
        """
        now = datetime.utcnow()
        expired: List[ApprovalRequest] = []

        with self._transaction("expire stale approval requests"):
            stale = (
                self.db.query(ApprovalRequest)
                .filter(
                    ApprovalRequest.status == ApprovalStatus.PENDING.value,
                    ApprovalRequest.expires_at.isnot(None),
                    ApprovalRequest.expires_at < now,
                )
                .with_for_update()
                .all()
            )

            for request in stale:
                machine = ApprovalStateMachine(
                    request.id, request.status, request.approver_role, request.expires_at, now=now
                )
                record = machine.expire()
                request.status = record["to_state"]
                request.updated_at = now
                SupplierOnboardingEffect().discard(self.db, request)
                expired.append(request)

            self.db.flush()

        for request in expired:
            if request.requested_by is not None:
                self._notify([request.requested_by], NotificationEventType.APPROVAL_EXPIRED, request)
            self._audit(
                None,
                AuditAction.EXPIRE,
                request.id,
                old_values={"status": ApprovalStatus.PENDING.value},
                new_values={"status": ApprovalStatus.EXPIRED.value},
            )

        if expired:
            logger.info(f"Expired {len(expired)} stale approval requests")
        return len(expired)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _expiry_days(self, expires_in_days: Optional[int]) -> int:
        """Non-positive values fall back to the default window."""
        if expires_in_days is None or expires_in_days <= 0:
            return self.settings.approval_default_expiry_days
        if expires_in_days > self.settings.approval_max_expiry_days:
            raise ValidationError(
                f"expires_in_days must not exceed {self.settings.approval_max_expiry_days}",
                details={"expires_in_days": expires_in_days},
            )
        return expires_in_days

    def _lock_request(self, request_id: int) -> Optional[ApprovalRequest]:
        """Load a request row for update, bypassing any cached instance."""
        return (
            self.db.query(ApprovalRequest)
            .filter(ApprovalRequest.id == request_id)
            .populate_existing()
            .with_for_update()
            .first()
        )

    def _transaction(self, description: str) -> "_ServiceTransaction":
        return _ServiceTransaction(self.db, description)

    def _ensure_identity_available(self, username: str, wallet_address: str, email: Optional[str]) -> None:
        """Reject identities held by a user or by a live onboarding request."""
        wallet = wallet_address.lower()

        user_clauses = [
            User.username == username,
            func.lower(User.wallet_address) == wallet,
        ]
        if email:
            user_clauses.append(User.email == email)
        existing = self.db.query(User).filter(or_(*user_clauses)).first()
        if existing is not None:
            raise ConflictError(
                "User with this username, wallet address or email already exists",
                details={"username": username, "wallet_address": wallet_address},
            )

        pending_clauses = [
            PendingUser.username == username,
            func.lower(PendingUser.wallet_address) == wallet,
        ]
        if email:
            pending_clauses.append(PendingUser.email == email)
        now = datetime.utcnow()
        pending = (
            self.db.query(PendingUser)
            .join(ApprovalRequest, PendingUser.approval_request_id == ApprovalRequest.id)
            .filter(
                PendingUser.status == PendingUserStatus.PENDING,
                or_(*pending_clauses),
                self._effective_status_clause(ApprovalStatus.PENDING, now),
            )
            .first()
        )
        if pending is not None:
            raise ConflictError(
                "An onboarding request for this identity is already pending",
                details={"request_id": pending.approval_request_id},
            )

    def _release_lapsed_identity(self, username: str, wallet_address: str, now: datetime) -> None:
        """Discard pending users whose request lapsed, freeing their username and wallet."""
        lapsed = (
            self.db.query(PendingUser)
            .join(ApprovalRequest, PendingUser.approval_request_id == ApprovalRequest.id)
            .filter(
                PendingUser.status == PendingUserStatus.PENDING,
                or_(
                    PendingUser.username == username,
                    func.lower(PendingUser.wallet_address) == wallet_address.lower(),
                ),
                self._effective_status_clause(ApprovalStatus.EXPIRED, now),
            )
            .all()
        )
        for pending in lapsed:
            pending.status = PendingUserStatus.DISCARDED
        if lapsed:
            self.db.flush()

    @staticmethod
    def _effective_status_clause(status: ApprovalStatus, now: datetime):
        """SQL filter matching rows whose effective status is ``status``."""
        not_expired = or_(ApprovalRequest.expires_at.is_(None), ApprovalRequest.expires_at >= now)
        if status == ApprovalStatus.PENDING:
            return and_(ApprovalRequest.status == ApprovalStatus.PENDING.value, not_expired)
        if status == ApprovalStatus.EXPIRED:
            return or_(
                ApprovalRequest.status == ApprovalStatus.EXPIRED.value,
                and_(
                    ApprovalRequest.status == ApprovalStatus.PENDING.value,
                    ApprovalRequest.expires_at < now,
                ),
            )
        return ApprovalRequest.status == status.value

    @staticmethod
    def _can_view(actor: Actor, request: ApprovalRequest) -> bool:
        if actor.has_role_at_least(VIEW_ALL_ROLE):
            return True
        if request.requested_by == actor.user_id:
            return True
        return actor.has_role_at_least(request.approver_role)

    def _notify(
        self,
        recipients: List[Union[str, int]],
        event: NotificationEventType,
        request: ApprovalRequest,
        reason: Optional[str] = None,
    ) -> None:
        if self.notifier is None:
            return
        summary = {
            "request_id": request.id,
            "request_type": request.request_type,
            "title": request.title,
            "status": request.status,
            "approver_role": request.approver_role,
            "requested_by": request.requested_by,
            "reason": reason,
        }
        try:
            self.notifier.notify(recipients, event.value, summary)
        except Exception:
            logger.exception(f"Failed to send {event.value} notification for request {request.id}")

    def _audit(
        self,
        actor: Optional[Actor],
        action: AuditAction,
        request_id: Optional[int],
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        *,
        resource_type: str = "approval_request",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        if self.auditor is None:
            return
        try:
            self.auditor.record(
                actor.user_id if actor else None,
                actor.role if actor else SYSTEM_ROLE,
                action.value,
                resource_type,
                request_id,
                old_values=old_values,
                new_values=new_values,
                details=details,
            )
        except Exception:
            logger.exception(f"Failed to record {action.value} audit entry for request {request_id}")

    def _request_to_dict(self, request: ApprovalRequest, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Convert an ApprovalRequest model to dictionary, with expiry applied."""
        status = effective_status(request.status, request.expires_at, now)
        return {
            "id": request.id,
            "request_type": request.request_type,
            "requested_by": request.requested_by,
            "approver_role": request.approver_role,
            "status": status.value,
            "title": request.title,
            "description": request.description,
            "request_data": request.request_data,
            "approved_by": request.approved_by,
            "approved_at": request.approved_at,
            "approval_reason": request.approval_reason,
            "rejection_reason": request.rejection_reason,
            "expires_at": request.expires_at,
            "created_at": request.created_at,
            "updated_at": request.updated_at,
        }

    @staticmethod
    def _pending_user_to_dict(pending: PendingUser) -> Dict[str, Any]:
        return {
            "id": pending.id,
            "wallet_address": pending.wallet_address,
            "username": pending.username,
            "email": pending.email,
            "requested_role": pending.requested_role,
            "company_name": pending.company_name,
            "company_type": pending.company_type,
            "status": pending.status,
            "user_id": pending.user_id,
        }


class _ServiceTransaction:
    """
    Commit on success, roll back on any failure.

    Workflow errors propagate unchanged; store errors are wrapped in
    TransactionError.
    """

    def __init__(self, db: Session, description: str):
        self.db = db
        self.description = description

    def __enter__(self) -> Session:
        return self.db

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            try:
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.exception(f"Commit failed during {self.description}")
                raise TransactionError(f"Failed to {self.description}") from e
            return False

        self.db.rollback()
        if issubclass(exc_type, WorkflowError):
            return False
        if issubclass(exc_type, SQLAlchemyError):
            logger.error(f"Store failure during {self.description}", exc_info=exc)
            raise TransactionError(f"Failed to {self.description}") from exc
        return False
