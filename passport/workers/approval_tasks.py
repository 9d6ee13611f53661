"""Celery tasks for the approval workflow.

Provides periodic processing for:
- Persisting ``expired`` on pending requests past their deadline
"""

from typing import Dict, Any
import logging

from celery import Celery, shared_task

from passport.core.approval import ApprovalService
from passport.core.config import get_settings
from passport.core.errors import TransactionError
from passport.core.logger import configure_logging
from passport.db.session import SessionLocal
from passport.services import AuditService, NotificationService

logger = logging.getLogger(__name__)
settings = get_settings()
configure_logging(settings)

# Initialize Celery
celery_app = Celery(
    'passport',
    broker=settings.celery_broker,
    backend=settings.celery_backend,
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    task_default_queue='default',
    beat_schedule={
        'expire-stale-approval-requests': {
            'task': 'passport.workers.approval_tasks.expire_stale_approval_requests',
            'schedule': settings.expiry_sweep_interval_minutes * 60.0,
        },
    },
)


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def expire_stale_approval_requests(self) -> Dict[str, Any]:
    """
    Periodic task persisting ``expired`` for lapsed pending requests.

    Decisions never depend on this task having run.

    Returns:
        Number of requests expired
    """
    db = SessionLocal()
    try:
        service = ApprovalService(
            db,
            notifier=NotificationService(db),
            auditor=AuditService(db),
        )
        count = service.expire_stale_requests()
        return {"expired": count}
    except TransactionError as e:
        logger.exception("Expiry sweep failed")
        # Store failures roll back fully and are safe to retry
        raise self.retry(exc=e)
    finally:
        db.close()
