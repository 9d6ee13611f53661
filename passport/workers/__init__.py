"""Celery workers for the Aluminium Passport service."""

from passport.workers.approval_tasks import (
    celery_app,
    expire_stale_approval_requests,
)

__all__ = [
    "celery_app",
    "expire_stale_approval_requests",
]
