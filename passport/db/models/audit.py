"""Audit log model.

Entries are append-only: nothing in the service updates or deletes them.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any
from sqlalchemy import Column, Integer, String, DateTime, JSON, ForeignKey, Text, Boolean

from passport.db.base import Base


class AuditSeverity(str, Enum):
    """Severity levels for audit log entries."""
    DEBUG = "debug"       # Low-level debugging info
    INFO = "info"         # Standard operations
    WARNING = "warning"   # Potentially concerning actions
    ERROR = "error"       # Failed operations
    CRITICAL = "critical" # Security-relevant events (login failures, permission denials)


class AuditAction(str, Enum):
    CREATE = "CREATE"
    VIEW = "VIEW"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    EXPIRE = "EXPIRE"
    LOGIN = "LOGIN"


class AuditLog(Base):
    """
    Immutable audit log entry.

    Records who did what to which resource.
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Actor information (user_id is NULL for system actions)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    user_role = Column(String(50), nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)

    # Action details
    action = Column(String(20), nullable=False, index=True)
    resource_type = Column(String(100), nullable=False, index=True)
    resource_id = Column(String(100), nullable=True, index=True)

    # Change tracking
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    details = Column(JSON, nullable=True)

    success = Column(Boolean, nullable=False, default=True)
    error_message = Column(Text, nullable=True)
    severity = Column(String(20), nullable=False, default="info", index=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    def __repr__(self) -> str:
        return f"<AuditLog {self.action} on {self.resource_type} by user {self.user_id}>"

    @classmethod
    def create_entry(
        cls,
        action: str,
        resource_type: str,
        *,
        user_id: Optional[int] = None,
        user_role: Optional[str] = None,
        resource_id: Optional[str] = None,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        success: bool = True,
        error_message: Optional[str] = None,
        severity: AuditSeverity = AuditSeverity.INFO,
    ) -> "AuditLog":
        """
        Factory method to create a new audit log entry.

        Args:
            action: Action performed (CREATE, VIEW, APPROVE, REJECT, EXPIRE, LOGIN)
            resource_type: Type of resource (e.g., 'approval_request', 'user')
            user_id: ID of user performing action (None for system actions)
            user_role: Role the actor held at the time
            resource_id: ID of affected resource
            old_values: Previous values (for updates)
            new_values: New values (for creates/updates)
            details: Additional context
            ip_address: Client IP address
            user_agent: Client user agent string
            success: Whether the action succeeded
            error_message: Failure description, if any
            severity: Log severity level
        """
        return cls(
            action=action.value if isinstance(action, AuditAction) else action,
            resource_type=resource_type,
            user_id=user_id,
            user_role=user_role,
            resource_id=str(resource_id) if resource_id is not None else None,
            old_values=old_values,
            new_values=new_values,
            details=details,
            ip_address=ip_address,
            user_agent=user_agent,
            success=success,
            error_message=error_message,
            severity=severity.value if isinstance(severity, AuditSeverity) else severity,
        )
