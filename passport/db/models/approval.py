"""Approval workflow database models.

Stores approval requests and the provisional users created by supplier
onboarding requests.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, JSON, ForeignKey, Text, Index, func, text
from sqlalchemy.orm import relationship

from passport.db.base import Base


class ApprovalRequest(Base):
    """
    A role-gated decision awaiting (or having received) sign-off.

    Rows are never deleted. Once status leaves ``pending`` the row is
    immutable apart from audit metadata.
    """
    __tablename__ = "approval_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    request_type = Column(String(50), nullable=False, index=True)

    # Who asked, and who may decide
    requested_by = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    approver_role = Column(String(50), nullable=False, index=True)

    # Workflow state
    status = Column(String(20), nullable=False, default="pending", index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    request_data = Column(JSON, nullable=True)

    # Resolution (approval_reason and rejection_reason are mutually exclusive)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    approval_reason = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    expires_at = Column(DateTime, nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    requester = relationship("User", foreign_keys=[requested_by])
    approver = relationship("User", foreign_keys=[approved_by])
    pending_user = relationship("PendingUser", back_populates="approval_request", uselist=False)

    def __repr__(self) -> str:
        return f"<ApprovalRequest {self.id} {self.request_type} [{self.status}]>"


class PendingUser(Base):
    """
    Provisional identity created alongside a supplier onboarding request.

    Converted into a real ``User`` only when the linked request is approved.
    """
    __tablename__ = "pending_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    approval_request_id = Column(
        Integer,
        ForeignKey("approval_requests.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )

    wallet_address = Column(String(42), nullable=False, index=True)
    username = Column(String(50), nullable=False)
    email = Column(String(255), nullable=True)
    password_hash = Column(String(255), nullable=False)
    requested_role = Column(String(50), nullable=False)

    # Company metadata
    company_name = Column(String(255), nullable=True)
    company_type = Column(String(100), nullable=True)
    business_license = Column(String(255), nullable=True)
    contact_info = Column(JSON, nullable=True)
    justification = Column(Text, nullable=True)

    # pending → activated (request approved) or discarded (rejected/expired)
    status = Column(String(20), nullable=False, default="pending", index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    approval_request = relationship("ApprovalRequest", back_populates="pending_user")
    user = relationship("User")

    # At most one live pending identity per username and (case-insensitive) wallet
    __table_args__ = (
        Index(
            "uq_pending_users_live_username",
            username,
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index(
            "uq_pending_users_live_wallet",
            func.lower(wallet_address),
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<PendingUser {self.username} ({self.requested_role}) [{self.status}]>"
