"""
System maintenance Celery tasks.

- Expire open invitations of past or inactive events
- Clean up old Stripe webhook markers
- Record daily usage snapshots per tenant
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from flask import current_app
from sqlalchemy import and_, or_

from accredia.extensions import db
from accredia.models import Event, Invitation, Tenant, WebhookEvent
from accredia.tasks.celery_app import celery_app
from accredia.utils.dates import now_in_event_tz

logger = logging.getLogger(__name__)


@celery_app.task(name='accredia.tasks.maintenance_tasks.expire_past_event_invitations')
def expire_past_event_invitations() -> Dict[str, Any]:
    """
    Expire pending and sent invitations of events that are over.

    An event is over when it is inactive, or when its last day (fecha_fin,
    else fecha) is before today in the event timezone.
    """
    from accredia.services.invitation_service import InvitationService

    today = now_in_event_tz().date()
    finished = Event.query.filter(or_(
        Event.is_active.is_(False),
        and_(Event.fecha_fin.isnot(None), Event.fecha_fin < today),
        and_(Event.fecha_fin.is_(None), Event.fecha.isnot(None), Event.fecha < today),
    )).subquery()

    event_ids = [row[0] for row in db.session.query(Invitation.event_id).filter(
        Invitation.event_id.in_(db.session.query(finished.c.id)),
        Invitation.status.in_(Invitation.OPEN_STATUSES),
    ).distinct().all()]

    expired = 0
    for event_id in event_ids:
        expired += InvitationService.expire_event_invitations(event_id, commit=False)
    db.session.commit()

    logger.info(f"Expired {expired} invitations across {len(event_ids)} events")
    return {'events': len(event_ids), 'expired': expired}


@celery_app.task(name='accredia.tasks.maintenance_tasks.cleanup_webhook_events')
def cleanup_webhook_events() -> Dict[str, Any]:
    retention_days = current_app.config.get('WEBHOOK_EVENT_RETENTION_DAYS', 90)
    cutoff = datetime.now(timezone.utc) - timedelta(days=retention_days)

    deleted = WebhookEvent.query.filter(WebhookEvent.processed_at < cutoff).delete(synchronize_session=False)
    db.session.commit()

    logger.info(f"Deleted {deleted} webhook events older than {retention_days} days")
    return {'deleted': deleted, 'cutoff': cutoff.isoformat()}


@celery_app.task(name='accredia.tasks.maintenance_tasks.record_usage_snapshots')
def record_usage_snapshots() -> Dict[str, Any]:
    """Store the current events and admins counts of every active tenant."""
    from accredia.services.billing_service import BillingService

    recorded = 0
    for tenant in Tenant.query.filter_by(activo=True).all():
        for metric in ('events', 'admins'):
            BillingService.record_usage(tenant.id, metric, BillingService._current_usage(tenant.id, metric))
            recorded += 1

    logger.info(f"Usage snapshots recorded: {recorded}")
    return {'recorded': recorded}
