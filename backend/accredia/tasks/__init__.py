"""
Celery tasks package for asynchronous operations.

This package contains all background tasks including:
- Email notifications (Resend)
- Scheduled maintenance
"""

# Import tasks to register them with Celery
from accredia.tasks.celery_app import celery_app
from accredia.tasks.email_tasks import (
    send_approval_email,
    send_rejection_email,
    send_bulk_approval_emails,
    send_welcome_email,
    send_magic_link_email,
    send_invitation_emails,
)
from accredia.tasks.maintenance_tasks import (
    expire_past_event_invitations,
    cleanup_webhook_events,
    record_usage_snapshots,
)

__all__ = [
    'celery_app',
    'send_approval_email',
    'send_rejection_email',
    'send_bulk_approval_emails',
    'send_welcome_email',
    'send_magic_link_email',
    'send_invitation_emails',
    'expire_past_event_invitations',
    'cleanup_webhook_events',
    'record_usage_snapshots',
]
