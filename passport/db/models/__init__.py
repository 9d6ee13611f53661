"""Database models for the passport service."""

from passport.db.models.user import User
from passport.db.models.approval import ApprovalRequest, PendingUser
from passport.db.models.audit import AuditLog, AuditAction, AuditSeverity
from passport.db.models.system_setting import SystemSetting
from passport.db.models.notification import (
    NotificationLog,
    NotificationChannel,
    NotificationEventType,
)

__all__ = [
    "User",
    "ApprovalRequest",
    "PendingUser",
    "AuditLog",
    "AuditAction",
    "AuditSeverity",
    "SystemSetting",
    "NotificationLog",
    "NotificationChannel",
    "NotificationEventType",
]
