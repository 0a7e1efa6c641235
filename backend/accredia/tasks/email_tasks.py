"""
Email Celery tasks.

Request handlers queue these instead of calling Resend inline, so an
approval or an invitation batch never blocks the HTTP response. Each task
returns a small dict describing the outcome; failures are recorded in
email_logs by EmailService.
"""

import logging
from typing import Any, Dict, List, Optional

from accredia.extensions import db
from accredia.models import Invitation, Event, Tenant, parse_uuid
from accredia.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


def _result(success: bool, error: Optional[str], **extra) -> Dict[str, Any]:
    return {'success': success, 'error': error, **extra}


@celery_app.task(name='accredia.tasks.email_tasks.send_approval_email')
def send_approval_email(registration_id: str) -> Dict[str, Any]:
    from accredia.services.email_service import EmailService

    success, error = EmailService.send_approval_email(registration_id)
    if not success:
        logger.warning(f"Approval email not sent for registration {registration_id}: {error}")
    return _result(success, error, registration_id=registration_id)


@celery_app.task(name='accredia.tasks.email_tasks.send_rejection_email')
def send_rejection_email(registration_id: str, motivo: Optional[str] = None) -> Dict[str, Any]:
    from accredia.services.email_service import EmailService

    success, error = EmailService.send_rejection_email(registration_id, motivo)
    if not success:
        logger.warning(f"Rejection email not sent for registration {registration_id}: {error}")
    return _result(success, error, registration_id=registration_id)


@celery_app.task(name='accredia.tasks.email_tasks.send_bulk_approval_emails')
def send_bulk_approval_emails(registration_ids: List[str]) -> Dict[str, int]:
    from accredia.services.email_service import EmailService

    return EmailService.send_bulk_approval_emails(registration_ids)


@celery_app.task(name='accredia.tasks.email_tasks.send_welcome_email')
def send_welcome_email(email: str, nombre: str, tenant_nombre: str, tenant_slug: str,
                       temp_password: Optional[str] = None) -> Dict[str, Any]:
    from accredia.services.email_service import EmailService

    success, error = EmailService.send_welcome_email(email, nombre, tenant_nombre, tenant_slug, temp_password)
    return _result(success, error)


@celery_app.task(name='accredia.tasks.email_tasks.send_magic_link_email')
def send_magic_link_email(email: str, link: str) -> Dict[str, Any]:
    from accredia.services.email_service import EmailService

    success, error = EmailService.send_magic_link_email(email, link)
    return _result(success, error)


@celery_app.task(name='accredia.tasks.email_tasks.send_invitation_emails')
def send_invitation_emails(invitation_ids: List[str]) -> Dict[str, Any]:
    """
    Email a batch of invitations and mark the delivered ones as sent.

    Returns:
        {'sent': n, 'errors': n}
    """
    from accredia.services.email_service import EmailService
    from accredia.services.invitation_service import InvitationService

    ids = [uid for uid in (parse_uuid(i) for i in invitation_ids) if uid]
    invitations = Invitation.query.filter(Invitation.id.in_(ids)).all() if ids else []

    delivered = []
    errors = 0
    for invitation in invitations:
        event = db.session.get(Event, invitation.event_id)
        tenant = db.session.get(Tenant, event.tenant_id) if event else None
        if not tenant:
            errors += 1
            continue
        success, error = EmailService.send_invitation_email(invitation, event, tenant)
        if success:
            delivered.append(invitation.id)
        else:
            errors += 1
            logger.warning(f"Invitation email to {invitation.email} failed: {error}")

    if delivered:
        InvitationService.mark_sent(delivered)

    logger.info(f"Invitation emails: sent={len(delivered)} errors={errors}")
    return {'sent': len(delivered), 'errors': errors}
