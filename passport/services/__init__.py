"""Notification and audit sinks for the passport service."""

from passport.services.notifications import NotificationService
from passport.services.audit import AuditService, redact_sensitive

__all__ = [
    "NotificationService",
    "AuditService",
    "redact_sensitive",
]
