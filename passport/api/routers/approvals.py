"""Approval workflow API endpoints."""

from typing import Any, Dict, Optional
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from passport.api.deps import get_approval_service, get_current_actor
from passport.api.schemas.common import PaginatedResponse
from passport.core.approval import ApprovalService, SupplierOnboardingPayload
from passport.core.identity import Actor
from passport.core.rbac import Role, require_role

router = APIRouter(prefix="/approvals", tags=["approvals"])


# Schemas
class ApprovalCreate(BaseModel):
    request_type: str
    approver_role: str
    title: str = Field(..., max_length=255)
    description: Optional[str] = None
    request_data: Dict[str, Any] = Field(default_factory=dict)
    expires_in_days: Optional[int] = None


class ApprovalCreateResponse(BaseModel):
    id: int
    status: str
    approver_role: str
    expires_at: datetime


class SupplierOnboardingCreate(BaseModel):
    wallet_address: str
    username: str = Field(..., max_length=50)
    requested_role: str
    email: Optional[str] = None
    company_name: Optional[str] = None
    company_type: Optional[str] = None
    business_license: Optional[str] = None
    contact_info: Optional[Dict[str, Any]] = None
    justification: Optional[str] = None


class SupplierOnboardingResponse(BaseModel):
    request_id: int
    status: str
    approver_role: str
    expires_at: datetime
    pending_user_id: int
    temporary_password: str = Field(..., description="Shown once; only its hash is stored")


class ApprovalRequestResponse(BaseModel):
    id: int
    request_type: str
    requested_by: Optional[int]
    approver_role: str
    status: str
    title: str
    description: Optional[str]
    request_data: Optional[Dict[str, Any]]
    approved_by: Optional[int]
    approved_at: Optional[datetime]
    approval_reason: Optional[str]
    rejection_reason: Optional[str]
    expires_at: Optional[datetime]
    created_at: datetime
    updated_at: Optional[datetime]
    pending_user: Optional[Dict[str, Any]] = None
    effect: Optional[Dict[str, Any]] = None


class DecisionRequest(BaseModel):
    reason: Optional[str] = None


# Endpoints
@router.post("", response_model=ApprovalCreateResponse, status_code=status.HTTP_201_CREATED)
def create_approval(
    body: ApprovalCreate,
    actor: Actor = Depends(get_current_actor),
    service: ApprovalService = Depends(get_approval_service),
):
    """Open a new approval request."""
    return service.create_request(
        actor,
        request_type=body.request_type,
        approver_role=body.approver_role,
        title=body.title,
        description=body.description,
        request_data=body.request_data,
        expires_in_days=body.expires_in_days,
    )


@router.post(
    "/supplier-onboarding",
    response_model=SupplierOnboardingResponse,
    status_code=status.HTTP_201_CREATED,
)
def request_supplier_onboarding(
    body: SupplierOnboardingCreate,
    actor: Actor = Depends(require_role(Role.ADMIN)),
    service: ApprovalService = Depends(get_approval_service),
):
    """Request onboarding of a supplier; a super admin must approve it."""
    return service.request_supplier_onboarding(
        actor,
        SupplierOnboardingPayload(**body.model_dump()),
    )


@router.get("", response_model=PaginatedResponse[ApprovalRequestResponse])
def list_approvals(
    actor: Actor = Depends(get_current_actor),
    service: ApprovalService = Depends(get_approval_service),
    page: int = 1,
    limit: int = 20,
    status_filter: Optional[str] = Query(None, alias="status"),
    type_filter: Optional[str] = Query(None, alias="type"),
    for_approval: bool = False,
):
    """List approval requests visible to the caller."""
    return service.list_requests(
        actor,
        page=page,
        limit=limit,
        status=status_filter,
        request_type=type_filter,
        for_approval=for_approval,
    )


@router.get("/{request_id}", response_model=ApprovalRequestResponse)
def get_approval(
    request_id: int,
    actor: Actor = Depends(get_current_actor),
    service: ApprovalService = Depends(get_approval_service),
):
    """Get one approval request."""
    return service.get_request(actor, request_id)


@router.post("/{request_id}/approve", response_model=ApprovalRequestResponse)
def approve_request(
    request_id: int,
    body: Optional[DecisionRequest] = None,
    actor: Actor = Depends(get_current_actor),
    service: ApprovalService = Depends(get_approval_service),
):
    """Approve a pending request and apply its effect."""
    return service.approve(actor, request_id, reason=body.reason if body else None)


@router.post("/{request_id}/reject", response_model=ApprovalRequestResponse)
def reject_request(
    request_id: int,
    body: Optional[DecisionRequest] = None,
    actor: Actor = Depends(get_current_actor),
    service: ApprovalService = Depends(get_approval_service),
):
    """Reject a pending request."""
    return service.reject(actor, request_id, reason=body.reason if body else None)
