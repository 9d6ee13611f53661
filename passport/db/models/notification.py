"""Notification history model."""

from datetime import datetime
from enum import Enum
from sqlalchemy import Column, String, DateTime, JSON, ForeignKey, Text, Integer
from sqlalchemy.orm import relationship

from passport.db.base import Base


class NotificationChannel(str, Enum):
    """Available notification channels."""
    IN_APP = "in_app"
    WEBHOOK = "webhook"


class NotificationEventType(str, Enum):
    """Events that can trigger notifications."""
    APPROVAL_PENDING = "approval_pending"
    APPROVAL_APPROVED = "approval_approved"
    APPROVAL_REJECTED = "approval_rejected"
    APPROVAL_EXPIRED = "approval_expired"


class NotificationLog(Base):
    """
    Log of sent notifications, one row per recipient and channel.
    """
    __tablename__ = "notification_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Notification details
    channel = Column(String(50), nullable=False)  # in_app, webhook
    event_type = Column(String(50), nullable=False, index=True)
    recipient_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    recipient_role = Column(String(50), nullable=True)  # role the recipient was resolved from

    # Related entities
    approval_request_id = Column(Integer, ForeignKey("approval_requests.id", ondelete="SET NULL"), nullable=True)

    # Payload
    subject = Column(String(512), nullable=True)
    body = Column(Text, nullable=True)
    payload = Column(JSON, nullable=True)

    # Status
    status = Column(String(50), nullable=False, default="pending")  # pending, sent, failed
    error_message = Column(Text, nullable=True)
    attempts = Column(Integer, default=0)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    sent_at = Column(DateTime, nullable=True)

    # Relationships
    recipient = relationship("User")
    approval_request = relationship("ApprovalRequest")

    def __repr__(self) -> str:
        return f"<NotificationLog {self.event_type} to user {self.recipient_user_id}>"
