"""Audit sink writing append-only AuditLog rows.

Used by the approval service after each successful mutation and by the
auth router for login attempts. Failures are logged and never raised.
"""

import logging
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session

from passport.db.models.audit import AuditLog, AuditAction, AuditSeverity

logger = logging.getLogger(__name__)

# Sensitive fields to redact from audit records
SENSITIVE_FIELDS = {
    "password",
    "password_hash",
    "temporary_password",
    "token",
    "access_token",
    "secret",
    "secret_key",
}


def redact_sensitive(data: Any) -> Any:
    """Redact sensitive fields from data."""
    if isinstance(data, dict):
        return {
            k: "[REDACTED]" if str(k).lower() in SENSITIVE_FIELDS else redact_sensitive(v)
            for k, v in data.items()
        }
    elif isinstance(data, list):
        return [redact_sensitive(item) for item in data]
    return data


def _json_safe(data: Any) -> Any:
    """Datetimes are not JSON serialisable; store them as ISO strings."""
    if isinstance(data, dict):
        return {k: _json_safe(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_json_safe(v) for v in data]
    if hasattr(data, "isoformat"):
        return data.isoformat()
    return data


SEVERITY_BY_ACTION = {
    AuditAction.APPROVE.value: AuditSeverity.WARNING,
    AuditAction.REJECT.value: AuditSeverity.WARNING,
    AuditAction.VIEW.value: AuditSeverity.DEBUG,
}


class AuditService:
    """
    Records who did what to which resource.

    Usage:
        auditor = AuditService(db, ip_address=get_client_ip(request))
        auditor.record(actor.user_id, actor.role, "APPROVE", "approval_request", 42)
    """

    def __init__(
        self,
        db: Session,
        *,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ):
        self.db = db
        self.ip_address = ip_address
        self.user_agent = user_agent

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
        *,
        success: bool = True,
        error_message: Optional[str] = None,
        severity: Optional[AuditSeverity] = None,
    ) -> Optional[AuditLog]:
        """Write one audit entry. Returns None when the write failed."""
        if severity is None:
            severity = SEVERITY_BY_ACTION.get(str(action), AuditSeverity.INFO)

        entry = AuditLog.create_entry(
            action=action,
            resource_type=resource_type,
            user_id=actor_id,
            user_role=actor_role,
            resource_id=resource_id,
            old_values=_json_safe(redact_sensitive(old_values)) if old_values else None,
            new_values=_json_safe(redact_sensitive(new_values)) if new_values else None,
            details=_json_safe(redact_sensitive(details)) if details else None,
            ip_address=self.ip_address,
            user_agent=self.user_agent,
            success=success,
            error_message=error_message,
            severity=severity,
        )

        try:
            self.db.add(entry)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception(f"Failed to write audit entry {action} on {resource_type} {resource_id}")
            return None

        return entry
