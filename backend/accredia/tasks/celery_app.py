"""
Celery application factory for asynchronous task processing.

This module configures Celery for handling background tasks including:
- Transactional emails (approval, rejection, invitations, magic links)
- Scheduled maintenance (invitation expiry, webhook log cleanup, usage snapshots)
"""

import os
from celery import Celery
from celery.schedules import crontab
from flask import Flask, has_app_context
import logging

logger = logging.getLogger(__name__)


def create_celery_app(app: Flask = None) -> Celery:
    """
    Create and configure a Celery application instance.

    Args:
        app: Optional Flask application instance for configuration

    Returns:
        Configured Celery application
    """
    broker_url = os.environ.get('CELERY_BROKER_URL', 'redis://localhost:6379/0')
    result_backend = os.environ.get('CELERY_RESULT_BACKEND', 'redis://localhost:6379/1')

    celery = Celery(
        'accredia',
        broker=broker_url,
        backend=result_backend,
        include=['accredia.tasks.email_tasks', 'accredia.tasks.maintenance_tasks']
    )

    celery.conf.update(
        task_serializer='json',
        accept_content=['json'],
        result_serializer='json',
        timezone='America/Santiago',
        enable_utc=True,

        task_routes={
            'accredia.tasks.email_tasks.*': {'queue': 'email'},
            'accredia.tasks.maintenance_tasks.*': {'queue': 'maintenance'},
        },

        # Bulk sends pause between emails
        task_annotations={
            'accredia.tasks.email_tasks.send_bulk_approval_emails': {
                'time_limit': 1800,
                'soft_time_limit': 1700,
            },
        },

        task_default_priority=5,
        task_acks_late=True,
        worker_prefetch_multiplier=1,
        result_expires=3600,
        task_reject_on_worker_lost=True,
        task_ignore_result=False,

        beat_schedule={
            # Expire open invitations of finished or inactive events - hourly
            'expire-past-event-invitations': {
                'task': 'accredia.tasks.maintenance_tasks.expire_past_event_invitations',
                'schedule': crontab(minute=0),
                'options': {
                    'queue': 'maintenance',
                    'priority': 3,
                }
            },

            # Drop old processed Stripe event markers - daily at 3 AM
            'cleanup-webhook-events': {
                'task': 'accredia.tasks.maintenance_tasks.cleanup_webhook_events',
                'schedule': crontab(hour=3, minute=0),
                'options': {
                    'queue': 'maintenance',
                    'priority': 2,
                }
            },

            # Usage counters for the billing dashboard - daily at 4 AM
            'record-usage-snapshots': {
                'task': 'accredia.tasks.maintenance_tasks.record_usage_snapshots',
                'schedule': crontab(hour=4, minute=0),
                'options': {
                    'queue': 'maintenance',
                    'priority': 2,
                }
            },
        }
    )

    if app:
        init_celery(celery, app)

    logger.info(f"Celery configured with broker: {broker_url}")
    return celery


def init_celery(celery: Celery, app: Flask) -> Celery:
    """
    Bind a Celery instance to a Flask app.

    Tasks run inside the app context (reusing the caller's context when a
    task executes eagerly from a request).
    """
    class ContextTask(celery.Task):
        """Make celery tasks work with Flask app context."""
        abstract = True

        def __call__(self, *args, **kwargs):
            if has_app_context():
                return self.run(*args, **kwargs)
            with app.app_context():
                return self.run(*args, **kwargs)

    celery.Task = ContextTask

    celery.conf.update(
        broker_url=app.config.get('CELERY_BROKER_URL', celery.conf.broker_url),
        result_backend=app.config.get('CELERY_RESULT_BACKEND', celery.conf.result_backend),
        task_always_eager=app.config.get('CELERY_TASK_ALWAYS_EAGER', False),
        timezone=app.config.get('EVENT_TIMEZONE', 'America/Santiago'),
    )
    return celery


# Create a default Celery instance
celery_app = create_celery_app()
