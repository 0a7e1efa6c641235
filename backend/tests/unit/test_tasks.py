"""
Unit Tests for Celery Tasks

TestingConfig sets CELERY_TASK_ALWAYS_EAGER, so .delay() runs the task
inline inside the test application context.
"""

from datetime import date, datetime, timedelta, timezone

from accredia.models import Event, Invitation, Registration, UsageRecord, WebhookEvent
from accredia.services import InvitationService, RegistrationService
from accredia.tasks import (
    celery_app, cleanup_webhook_events, expire_past_event_invitations, record_usage_snapshots,
    send_approval_email, send_bulk_approval_emails, send_invitation_emails, send_rejection_email,
)


def _registration(event, rut='11111111-1', email='ana@radio.cl'):
    return RegistrationService.create_registration(
        event.id, {'rut': rut, 'nombre': 'Ana', 'apellido': 'Rojas', 'email': email})['registration']


class TestCeleryApp:
    """Tests for the Celery application wiring"""

    def test_tasks_registered(self, app):
        assert 'accredia.tasks.email_tasks.send_approval_email' in celery_app.tasks
        assert 'accredia.tasks.maintenance_tasks.cleanup_webhook_events' in celery_app.tasks

    def test_beat_schedule(self, app):
        schedule = celery_app.conf.beat_schedule

        assert 'expire-past-event-invitations' in schedule
        assert 'cleanup-webhook-events' in schedule
        assert 'record-usage-snapshots' in schedule

    def test_eager_in_testing(self, app):
        assert celery_app.conf.task_always_eager is True


class TestEmailTasks:
    """Tests for email delivery tasks"""

    def test_approval_without_api_key(self, db, event):
        registration = _registration(event)

        result = send_approval_email.delay(str(registration.id)).get()

        assert result['success'] is False
        assert result['error'] == 'RESEND_API_KEY no configurada'
        assert result['registration_id'] == str(registration.id)

    def test_rejection_unknown_registration(self, db):
        result = send_rejection_email.delay('00000000-0000-0000-0000-000000000000', 'Cupo').get()

        assert result['success'] is False
        assert result['error'] == 'Registro no encontrado'

    def test_bulk_approval_counts_failures(self, db, event, mocker):
        registrations = [_registration(event, '11111111-1'), _registration(event, '22222222-2', email=None)]
        send = mocker.patch('accredia.services.email_service.EmailService.send_email', return_value=(True, None))

        result = send_bulk_approval_emails.delay([str(r.id) for r in registrations]).get()

        assert result['sent'] == 1
        assert send.call_count == 1

    def test_invitation_emails_mark_sent(self, db, event, mocker):
        event.visibility = Event.VISIBILITY_INVITE_ONLY
        db.session.commit()
        invitations = InvitationService.create_invitations(event.id, [{'email': 'ana@radio.cl'}])['created']
        mocker.patch('accredia.services.email_service.EmailService.send_email', return_value=(True, None))

        result = send_invitation_emails.delay([str(i.id) for i in invitations]).get()

        assert result['sent'] == 1
        assert Invitation.query.first().status == Invitation.STATUS_SENT


class TestMaintenanceTasks:
    """Tests for scheduled maintenance tasks"""

    def test_expire_invitations_of_past_events(self, db, event):
        event.fecha = date.today() - timedelta(days=3)
        db.session.commit()
        InvitationService.create_invitations(event.id, [{'email': 'ana@radio.cl'}, {'email': 'luis@tv.cl'}])

        result = expire_past_event_invitations.delay().get()

        assert result == {'events': 1, 'expired': 2}
        assert Invitation.query.filter_by(status=Invitation.STATUS_EXPIRED).count() == 2

    def test_future_event_invitations_untouched(self, db, event):
        event.fecha = date.today() + timedelta(days=3)
        db.session.commit()
        InvitationService.create_invitations(event.id, [{'email': 'ana@radio.cl'}])

        result = expire_past_event_invitations.delay().get()

        assert result['expired'] == 0

    def test_cleanup_webhook_events(self, db):
        now = datetime.now(timezone.utc)
        db.session.add_all([
            WebhookEvent(stripe_event_id='evt_old', event_type='invoice.paid', processed_at=now - timedelta(days=200)),
            WebhookEvent(stripe_event_id='evt_new', event_type='invoice.paid', processed_at=now),
        ])
        db.session.commit()

        result = cleanup_webhook_events.delay().get()

        assert result['deleted'] == 1
        assert WebhookEvent.query.one().stripe_event_id == 'evt_new'

    def test_record_usage_snapshots(self, db, tenant, event, admin_user):
        result = record_usage_snapshots.delay().get()

        assert result == {'recorded': 2}
        events_usage = UsageRecord.query.filter_by(tenant_id=tenant.id, metric='events').one()
        assert events_usage.current_value == 1
