"""Notification service for approval workflow events.

Handles:
- In-app notifications stored as NotificationLog rows, one per recipient
- Webhook delivery to an external system when one is configured

Delivery is best effort: every failure is logged and swallowed so the
calling operation is never affected.
"""

import logging
from datetime import datetime
from typing import Optional, Dict, Any, List, Union

import httpx
from jinja2 import Template
from sqlalchemy.orm import Session

from passport.core.config import Settings, get_settings
from passport.db.models import User
from passport.db.models.notification import (
    NotificationLog,
    NotificationChannel,
    NotificationEventType,
)

logger = logging.getLogger(__name__)


# In-app message templates
MESSAGE_TEMPLATES = {
    NotificationEventType.APPROVAL_PENDING: {
        "subject": "[Aluminium Passport] Approval Required: {{ title }}",
        "body": """
A new request requires your decision:

Request: #{{ request_id }} {{ title }}
Type: {{ request_type }}
Approver Role: {{ approver_role }}

---
Aluminium Passport
        """,
    },
    NotificationEventType.APPROVAL_APPROVED: {
        "subject": "[Aluminium Passport] Request Approved: {{ title }}",
        "body": """
Your request has been approved:

Request: #{{ request_id }} {{ title }}
Type: {{ request_type }}
{% if reason %}Reason: {{ reason }}
{% endif %}
---
Aluminium Passport
        """,
    },
    NotificationEventType.APPROVAL_REJECTED: {
        "subject": "[Aluminium Passport] Request Rejected: {{ title }}",
        "body": """
Your request has been rejected:

Request: #{{ request_id }} {{ title }}
Type: {{ request_type }}
Reason: {{ reason or "No reason provided" }}

---
Aluminium Passport
        """,
    },
    NotificationEventType.APPROVAL_EXPIRED: {
        "subject": "[Aluminium Passport] Request Expired: {{ title }}",
        "body": """
Your request expired before anyone decided on it:

Request: #{{ request_id }} {{ title }}
Type: {{ request_type }}

Submit a new request if it is still needed.

---
Aluminium Passport
        """,
    },
}


class NotificationService:
    """
    Sends workflow notifications to users, resolved by role or user id.
    """

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        """
        Initialize notification service.

        Args:
            db: Database session
            settings: Settings override, defaults to the cached settings
        """
        self.db = db
        self.settings = settings or get_settings()

    def notify(
        self,
        recipients: List[Union[str, int]],
        event_kind: str,
        summary: Dict[str, Any],
    ) -> List[int]:
        """
        Notify every active user matching ``recipients``.

        Args:
            recipients: Role names (exact holders) and/or user ids
            event_kind: NotificationEventType value
            summary: Request summary used to render the message

        Returns:
            IDs of the NotificationLog rows written
        """
        try:
            event_type = NotificationEventType(event_kind)
        except ValueError:
            logger.warning(f"Unknown notification event: {event_kind}")
            return []

        try:
            subject, body = self._render(event_type, summary)
            log_ids = []
            for user, role in self._resolve_recipients(recipients):
                log = NotificationLog(
                    channel=NotificationChannel.IN_APP.value,
                    event_type=event_type.value,
                    recipient_user_id=user.id,
                    recipient_role=role,
                    approval_request_id=summary.get("request_id"),
                    subject=subject,
                    body=body,
                    payload=summary,
                    status="sent",
                    attempts=1,
                    sent_at=datetime.utcnow(),
                )
                self.db.add(log)
                self.db.flush()
                log_ids.append(log.id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception(f"Failed to store {event_kind} notifications")
            return []

        if self.settings.notification_webhook_url:
            self._send_webhook(event_type, summary)

        return log_ids

    def _resolve_recipients(self, recipients: List[Union[str, int]]) -> List[tuple]:
        """Expand roles and user ids into (user, role) pairs, deduplicated."""
        user_ids = [r for r in recipients if isinstance(r, int)]
        roles = [r for r in recipients if isinstance(r, str)]

        resolved: Dict[int, tuple] = {}
        if roles:
            for user in self.db.query(User).filter(
                User.role.in_(roles),
                User.is_active == True,  # noqa: E712
            ).all():
                resolved.setdefault(user.id, (user, user.role))
        if user_ids:
            for user in self.db.query(User).filter(
                User.id.in_(user_ids),
                User.is_active == True,  # noqa: E712
            ).all():
                resolved.setdefault(user.id, (user, None))

        return list(resolved.values())

    def _render(self, event_type: NotificationEventType, summary: Dict[str, Any]) -> tuple[str, str]:
        template = MESSAGE_TEMPLATES[event_type]
        subject = Template(template["subject"]).render(**summary)
        body = Template(template["body"]).render(**summary).strip()
        return subject, body

    def _send_webhook(self, event_type: NotificationEventType, summary: Dict[str, Any]) -> None:
        """Post the event to the configured webhook and log the attempt."""
        url = self.settings.notification_webhook_url
        payload = self._build_webhook_payload(event_type, summary)

        log = NotificationLog(
            channel=NotificationChannel.WEBHOOK.value,
            event_type=event_type.value,
            approval_request_id=summary.get("request_id"),
            payload=payload,
            status="pending",
        )

        try:
            self._deliver_webhook(url, payload)
            log.status = "sent"
            log.sent_at = datetime.utcnow()
        except Exception as e:
            logger.exception(f"Failed to send webhook to {url}")
            log.status = "failed"
            log.error_message = str(e)
        log.attempts = 1

        try:
            self.db.add(log)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception("Failed to store webhook notification log")

    def _deliver_webhook(self, url: str, payload: Dict[str, Any]) -> None:
        """Actually deliver the webhook."""
        headers = {"Content-Type": "application/json"}
        if self.settings.notification_webhook_token:
            headers["Authorization"] = f"Bearer {self.settings.notification_webhook_token}"

        with httpx.Client(timeout=self.settings.webhook_timeout) as client:
            response = client.post(url, json=payload, headers=headers)
            response.raise_for_status()

    def _build_webhook_payload(
        self,
        event_type: NotificationEventType,
        summary: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Build default webhook payload."""
        return {
            "event": event_type.value,
            "timestamp": datetime.utcnow().isoformat(),
            "source": self.settings.app_name,
            "data": summary,
        }
