"""
Unit Tests for Service Layer

Tests for business rules running against an in-memory database:
- ZoneService / QuotaService: zone resolution and per-organization quotas
- BillingService: plan limits and Stripe webhook idempotency
- RegistrationService: creation rules, duplicates, deadlines, approval
- CheckinService: QR validation, single entry and per-jornada entry
- ProfileService: autofill cascade and tenant form completion
- TeamService: manager rosters
- EmailService: rendering and delivery without / with Resend
- SuperadminService, TenantService, InvitationService

External HTTP (Resend) is mocked.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock, patch

import pytest

from accredia.models import (
    EmailLog, EventDay, Event, Invitation, Profile, Registration, Subscription, Superadmin, TeamMember,
    WebhookEvent, ZoneRule,
)
from accredia.services import (
    BillingService, CheckinService, EmailService, InvitationService, ProfileService, QuotaService,
    RegistrationService, SuperadminService, TeamService, TenantService, ZoneService,
)
from accredia.services.errors import ConflictError, ForbiddenError, NotFoundError, ValidationFailed
from accredia.services.email_service import replace_vars


def _create(event, rut, nombre='Ana', apellido='Rojas', **extra):
    form = {'rut': rut, 'nombre': nombre, 'apellido': apellido, **extra}
    return RegistrationService.create_registration(event.id, form)['registration']


class TestZoneService:
    """Tests for ZoneService"""

    def test_cargo_rule_wins_over_tipo_medio(self, db, event):
        ZoneService.upsert_zone_rule(event.id, 'Fotógrafo', 'Cancha')
        ZoneService.upsert_zone_rule(event.id, 'TV', 'Tribuna', match_field=ZoneRule.MATCH_TIPO_MEDIO)

        assert ZoneService.resolve_zone(event.id, cargo='Fotógrafo', tipo_medio='TV') == 'Cancha'
        assert ZoneService.resolve_zone(event.id, cargo='Periodista', tipo_medio='TV') == 'Tribuna'

    def test_no_inputs_or_no_match(self, db, event):
        ZoneService.upsert_zone_rule(event.id, 'Fotógrafo', 'Cancha')

        assert ZoneService.resolve_zone(event.id) is None
        assert ZoneService.resolve_zone(event.id, cargo='Relator') is None

    def test_upsert_replaces_zone(self, db, event):
        ZoneService.upsert_zone_rule(event.id, 'Fotógrafo', 'Cancha')
        ZoneService.upsert_zone_rule(event.id, 'Fotógrafo', 'Mixta')

        assert len(ZoneService.get_zone_rules(event.id)) == 1
        assert ZoneService.resolve_zone(event.id, cargo='Fotógrafo') == 'Mixta'


class TestQuotaService:
    """Tests for QuotaService"""

    def test_without_rule_is_unrestricted(self, db, event):
        check = QuotaService.check_quota(event.id, 'Radio', 'Radio Ejemplo')

        assert check.available is True
        assert check.message == 'Sin restricción de cupo'

    def test_per_organization_limit(self, db, event):
        QuotaService.upsert_quota_rule(event.id, 'TV', max_per_organization=1)
        _create(event, '11111111-1', tipo_medio='TV', organizacion='Canal 13')

        same_org = QuotaService.check_quota(event.id, 'TV', 'Canal 13')
        other_org = QuotaService.check_quota(event.id, 'TV', 'TVN')

        assert same_org.available is False
        assert 'Canal 13' in same_org.message
        assert other_org.available is True

    def test_global_limit(self, db, event):
        QuotaService.upsert_quota_rule(event.id, 'TV', max_per_organization=0, max_global=1)
        _create(event, '11111111-1', tipo_medio='TV', organizacion='Canal 13')

        check = QuotaService.check_quota(event.id, 'TV', 'TVN')

        assert check.available is False
        assert 'global' in check.message

    def test_rules_with_usage(self, db, event):
        QuotaService.upsert_quota_rule(event.id, 'TV', max_per_organization=2, max_global=10)
        _create(event, '11111111-1', tipo_medio='TV', organizacion='Canal 13')

        rules = QuotaService.get_quota_rules_with_usage(event.id)

        assert len(rules) == 1
        assert rules[0]['tipo_medio'] == 'TV'


class TestBillingService:
    """Tests for BillingService"""

    def test_new_tenant_gets_free_plan(self, db, tenant):
        plan = BillingService.get_tenant_plan(tenant.id)

        assert plan.is_free is True
        assert BillingService.get_tenant_subscription(tenant.id).status == Subscription.STATUS_ACTIVE

    def test_events_limit_reached(self, db, tenant, event):
        result = BillingService.check_limit(tenant.id, 'events')

        assert result['allowed'] is False
        assert result['current'] == 1
        assert result['limit'] == 1

    def test_registrations_requires_event_id(self, db, tenant):
        result = BillingService.check_limit(tenant.id, 'registrations')

        assert result['allowed'] is False
        assert 'event_id' in result['message']

    def test_unknown_metric(self, db, tenant):
        with pytest.raises(ValidationFailed):
            BillingService.check_limit(tenant.id, 'cpu')

    def test_unlimited_plan(self, db, tenant, pro_plan):
        pro_plan.limits = {**pro_plan.limits, 'max_events': -1}
        db.session.commit()
        BillingService.assign_plan_to_tenant(tenant.id, pro_plan.id)

        result = BillingService.check_limit(tenant.id, 'events')

        assert result['allowed'] is True
        assert result['limit'] == -1

    def test_past_due_paid_plan_blocks(self, db, tenant, pro_plan):
        subscription = BillingService.assign_plan_to_tenant(tenant.id, pro_plan.id)
        subscription.status = Subscription.STATUS_PAST_DUE
        db.session.commit()

        result = BillingService.check_limit(tenant.id, 'events')

        assert result['allowed'] is False
        assert 'pago pendiente' in result['message']

    def test_webhook_is_idempotent(self, db, tenant, pro_plan):
        stripe_event = {
            'id': 'evt_123',
            'type': 'customer.subscription.updated',
            'data': {'object': {
                'id': 'sub_123',
                'customer': 'cus_123',
                'status': 'active',
                'metadata': {'tenant_id': str(tenant.id), 'plan_slug': 'pro'},
            }},
        }

        assert BillingService.process_webhook(stripe_event) is True
        assert BillingService.process_webhook(stripe_event) is False

        subscription = BillingService.get_tenant_subscription(tenant.id)
        assert subscription.plan_id == pro_plan.id
        assert subscription.stripe_customer_id == 'cus_123'
        assert WebhookEvent.query.count() == 1

    def test_subscription_deleted_downgrades_to_free(self, db, tenant, pro_plan):
        BillingService.assign_plan_to_tenant(tenant.id, pro_plan.id)

        BillingService.process_webhook({
            'id': 'evt_del',
            'type': 'customer.subscription.deleted',
            'data': {'object': {'id': 'sub_123', 'metadata': {'tenant_id': str(tenant.id)}}},
        })

        subscription = BillingService.get_tenant_subscription(tenant.id)
        assert subscription.status == Subscription.STATUS_CANCELED
        assert subscription.plan.is_free is True

    def test_payment_failed_marks_past_due(self, db, tenant, pro_plan):
        subscription = BillingService.assign_plan_to_tenant(tenant.id, pro_plan.id)
        subscription.stripe_customer_id = 'cus_999'
        db.session.commit()

        BillingService.process_webhook({
            'id': 'evt_fail', 'type': 'invoice.payment_failed',
            'data': {'object': {'id': 'in_1', 'customer': 'cus_999'}},
        })

        assert BillingService.get_tenant_subscription(tenant.id).status == Subscription.STATUS_PAST_DUE

    def test_record_usage_upserts_month(self, db, tenant):
        BillingService.record_usage(tenant.id, 'events', 1)
        record = BillingService.record_usage(tenant.id, 'events', 3)

        assert record.current_value == 3


class TestRegistrationService:
    """Tests for RegistrationService"""

    def test_create_registration(self, db, event):
        result = RegistrationService.create_registration(event.id, {
            'rut': '123456785', 'nombre': ' Ana ', 'apellido': 'Rojas', 'email': 'ana@radio.cl',
            'organizacion': 'Radio Ejemplo', 'tipo_medio': 'Radio', 'cargo': 'Periodista',
        })

        registration = result['registration']
        assert registration.status == Registration.STATUS_PENDIENTE
        assert registration.profile.rut == '12.345.678-5'
        assert registration.profile.nombre == 'Ana'
        assert registration.qr_token is None

    def test_zone_resolved_on_create(self, db, event):
        ZoneService.upsert_zone_rule(event.id, 'Fotógrafo', 'Cancha')

        registration = _create(event, '11111111-1', cargo='Fotógrafo')

        assert registration.zona == 'Cancha'

    def test_duplicate_registration(self, db, event):
        _create(event, '12.345.678-5')

        with pytest.raises(ConflictError) as exc:
            _create(event, '12345678-5')

        assert exc.value.message == 'Esta persona ya está registrada en este evento'

    def test_invalid_rut(self, db, event):
        with pytest.raises(ValidationFailed) as exc:
            _create(event, '12.345.678-9')

        assert exc.value.message == 'Dígito verificador incorrecto'

    def test_missing_apellido(self, db, event):
        with pytest.raises(ValidationFailed):
            _create(event, '11111111-1', apellido='  ')

    def test_unknown_event(self, db):
        with pytest.raises(NotFoundError):
            RegistrationService.create_registration('00000000-0000-0000-0000-000000000000',
                                                    {'rut': '11111111-1', 'nombre': 'A', 'apellido': 'B'})

    def test_inactive_event(self, db, event):
        event.is_active = False
        db.session.commit()

        with pytest.raises(ForbiddenError):
            _create(event, '11111111-1')

    def test_deadline_passed(self, db, event):
        event.fecha_limite_acreditacion = datetime.now(timezone.utc) - timedelta(hours=1)
        db.session.commit()

        with pytest.raises(ForbiddenError) as exc:
            _create(event, '11111111-1')

        assert 'cerrado' in exc.value.message

    def test_quota_reached(self, db, event):
        QuotaService.upsert_quota_rule(event.id, 'TV', max_per_organization=1)
        _create(event, '11111111-1', tipo_medio='TV', organizacion='Canal 13')

        with pytest.raises(ConflictError):
            _create(event, '22222222-2', tipo_medio='TV', organizacion='Canal 13')

    def test_plan_registration_limit(self, db, event):
        plan = BillingService.get_tenant_plan(event.tenant_id)
        plan.limits = {**plan.limits, 'max_registrations_per_event': 1}
        db.session.commit()
        _create(event, '11111111-1')

        with pytest.raises(ConflictError) as exc:
            _create(event, '22222222-2')

        assert 'límite' in exc.value.message

    def test_approval_issues_qr(self, db, event, admin_user):
        registration = _create(event, '11111111-1')

        updated = RegistrationService.update_status(registration.id, Registration.STATUS_APROBADO, admin_user.id)

        assert updated.qr_token
        assert updated.processed_by == admin_user.id

    def test_approval_without_qr(self, db, event, admin_user):
        event.qr_enabled = False
        db.session.commit()
        registration = _create(event, '11111111-1')

        updated = RegistrationService.update_status(registration.id, Registration.STATUS_APROBADO, admin_user.id)

        assert updated.qr_token is None

    def test_rejection_stores_motivo(self, db, event, admin_user):
        registration = _create(event, '11111111-1')

        updated = RegistrationService.update_status(registration.id, Registration.STATUS_RECHAZADO,
                                                    admin_user.id, motivo='Cupo completo')

        assert updated.motivo_rechazo == 'Cupo completo'

    def test_invalid_status(self, db, event, admin_user):
        registration = _create(event, '11111111-1')

        with pytest.raises(ValidationFailed):
            RegistrationService.update_status(registration.id, 'borrado', admin_user.id)

    def test_bulk_create_reports_each_row(self, db, event):
        result = RegistrationService.create_bulk(event.id, [
            {'rut': '11111111-1', 'nombre': 'Ana', 'apellido': 'Rojas', 'empresa': 'Radio Ejemplo'},
            {'rut': '11111111-1', 'nombre': 'Ana', 'apellido': 'Rojas'},
            {'rut': '22222222-2', 'nombre': 'Luis'},
            {'rut': '33333333-3', 'nombre': 'Eva', 'apellido': 'Soto', 'patente': 'AB1234'},
        ])

        assert result['total'] == 4
        assert result['success'] == 2
        assert result['results'][1]['error'] == 'Esta persona ya está registrada en este evento'
        assert 'Faltan campos' in result['results'][2]['error']

        rows, total = RegistrationService.list_registrations({'event_id': event.id})
        assert total == 2
        by_rut = {row['rut']: row for row in rows}
        assert by_rut['11.111.111-1']['organizacion'] == 'Radio Ejemplo'
        assert by_rut['33.333.333-3']['datos_extra']['patente'] == 'AB1234'

    def test_multidia_enrollment(self, db, tenant):
        event = Event(tenant_id=tenant.id, nombre='Torneo', is_active=True, form_fields=[], config={},
                      event_type=Event.TYPE_MULTIDIA, visibility=Event.VISIBILITY_PUBLIC)
        db.session.add(event)
        db.session.flush()
        db.session.add_all([
            EventDay(event_id=event.id, fecha=datetime(2025, 3, 15).date(), label='Día 1', orden=1),
            EventDay(event_id=event.id, fecha=datetime(2025, 3, 16).date(), label='Día 2', orden=2),
        ])
        db.session.commit()

        registration = _create(event, '11111111-1')

        assert len(registration.days) == 2

    def test_stats(self, db, event, admin_user):
        first = _create(event, '11111111-1')
        _create(event, '22222222-2')
        RegistrationService.update_status(first.id, Registration.STATUS_APROBADO, admin_user.id)

        stats = RegistrationService.get_stats(event.id)

        assert stats['total'] == 2
        assert stats['aprobados'] == 1
        assert stats['pendientes'] == 1


class TestInvitationOnlyEvents:
    """Tests for invite-only registration rules"""

    @pytest.fixture
    def private_event(self, db, event):
        event.visibility = Event.VISIBILITY_INVITE_ONLY
        db.session.commit()
        return event

    def test_requires_invitation(self, db, private_event):
        with pytest.raises(ForbiddenError):
            _create(private_event, '11111111-1')

    def test_invitation_accepted_on_register(self, db, private_event):
        invitation = InvitationService.create_invitations(private_event.id, [
            {'email': 'ana@radio.cl', 'nombre': 'Ana'},
            {'email': 'no-es-email'},
        ])['created'][0]

        _create(private_event, '11111111-1', invite_token=invitation.token)

        assert invitation.status == Invitation.STATUS_ACCEPTED
        assert InvitationService.validate_token(invitation.token).reason == 'Esta invitación ya fue utilizada'

    def test_invalid_emails_reported(self, db, private_event):
        result = InvitationService.create_invitations(private_event.id, [{'email': 'no-es-email'}])

        assert result['created'] == []
        assert result['invalid'][0]['email'] == 'no-es-email'

    def test_expire_event_invitations(self, db, private_event):
        InvitationService.create_invitations(private_event.id, [{'email': 'ana@radio.cl'}])

        assert InvitationService.expire_event_invitations(private_event.id) == 1

    def test_unknown_token(self, db):
        assert InvitationService.validate_token('nope').reason == 'Invitación no encontrada'


class TestCheckinService:
    """Tests for CheckinService"""

    @pytest.fixture
    def approved(self, db, event, admin_user):
        registration = _create(event, '11111111-1', nombre='Ana', apellido='Rojas')
        return RegistrationService.update_status(registration.id, Registration.STATUS_APROBADO, admin_user.id)

    def test_check_in_once(self, db, approved, admin_user):
        first = CheckinService.validate_and_check_in(approved.qr_token, admin_user.id)
        second = CheckinService.validate_and_check_in(approved.qr_token, admin_user.id)

        assert first['valid'] is True
        assert first['status'] == 'checked_in'
        assert first['nombre'] == 'Ana Rojas'
        assert second['valid'] is False
        assert second['status'] == 'already_checked_in'

    def test_unknown_token(self, db, admin_user):
        result = CheckinService.validate_and_check_in('x' * 32, admin_user.id)

        assert result == {'valid': False, 'status': 'not_found', 'message': 'QR no encontrado'}

    def test_scanner_must_be_tenant_admin(self, db, approved, user):
        with pytest.raises(ForbiddenError):
            CheckinService.validate_and_check_in(approved.qr_token, user.id)

    def test_not_approved(self, db, approved, admin_user):
        RegistrationService.update_status(approved.id, Registration.STATUS_RECHAZADO, admin_user.id)

        result = CheckinService.validate_and_check_in(approved.qr_token, admin_user.id)

        assert result['valid'] is False
        assert result['status'] == Registration.STATUS_RECHAZADO

    def test_public_info_hides_contact(self, db, approved):
        info = CheckinService.get_public_qr_info(approved.qr_token)

        assert info['valid'] is True
        assert info['status'] == 'approved'
        assert 'email' not in info
        assert 'telefono' not in info

    def test_public_info_short_token(self, db):
        with pytest.raises(ValidationFailed):
            CheckinService.get_public_qr_info('abc')


class TestEmailService:
    """Tests for EmailService"""

    def test_replace_vars_leaves_unknown_braces(self):
        assert replace_vars('Hola {nombre} {otro}', {'nombre': 'Ana'}) == 'Hola Ana {otro}'

    def test_send_without_api_key_logs_failure(self, db, tenant):
        ok, error = EmailService.send_email('ana@radio.cl', 'Asunto', '<p>x</p>', 'aprobacion',
                                            tenant_id=tenant.id)

        assert ok is False
        assert error == 'RESEND_API_KEY no configurada'
        assert EmailLog.query.filter_by(status=EmailLog.STATUS_FAILED).count() == 1

    @patch('accredia.services.email_service.requests.post')
    def test_send_through_resend(self, mock_post, app, db, tenant):
        mock_post.return_value = Mock(status_code=200, json=Mock(return_value={'id': 're_123'}))
        app.config['RESEND_API_KEY'] = 're_test'
        try:
            ok, error = EmailService.send_email('ana@radio.cl', 'Asunto', '<p>x</p>', 'aprobacion')
        finally:
            app.config['RESEND_API_KEY'] = None

        assert ok is True
        assert error is None
        assert mock_post.call_args.kwargs['json']['to'] == ['ana@radio.cl']
        assert EmailLog.query.filter_by(provider_id='re_123').count() == 1

    def test_render_fallback_approval(self, db, event, admin_user):
        registration = _create(event, '11111111-1', email='ana@radio.cl', organizacion='Radio <b>X</b>')
        RegistrationService.update_status(registration.id, Registration.STATUS_APROBADO, admin_user.id)

        subject, html = EmailService.render(RegistrationService.get_full(registration.id), event.tenant,
                                            'aprobacion')

        assert event.nombre in subject
        assert 'APROBADA' in html
        assert 'Radio &lt;b&gt;X&lt;/b&gt;' in html
        assert 'api.qrserver.com' in html

    def test_custom_template_and_zone_content(self, db, event):
        EmailService.upsert_template(event.tenant_id, 'aprobacion', 'Hola {nombre}',
                                     '<p>{evento}</p>{instrucciones_acceso}<script>x</script>')
        EmailService.upsert_zone_content(event.tenant_id, {'tipo': 'aprobacion', 'zona': 'Cancha',
                                                           'instrucciones_acceso': '<p>Puerta 3</p>'})
        registration = _create(event, '11111111-1', datos_extra={'zona': 'Cancha'})

        subject, html = EmailService.render(RegistrationService.get_full(registration.id), event.tenant,
                                            'aprobacion')

        assert subject == 'Hola Ana'
        assert '<p>Puerta 3</p>' in html
        assert '<script>' not in html

    def test_preview_uses_sample_data(self, db, tenant):
        preview = EmailService.preview(tenant.id, 'rechazo')

        assert 'Juan' in preview['html']

    def test_invalid_tipo(self, db, tenant):
        with pytest.raises(ValidationFailed):
            EmailService.upsert_template(tenant.id, 'bienvenida', 'x', 'y')


class TestTenantService:
    """Tests for TenantService"""

    def test_duplicate_slug(self, db, tenant):
        with pytest.raises(ConflictError):
            TenantService.create({'nombre': 'Otro', 'slug': 'cruzados'})

    def test_invalid_slug(self, db):
        with pytest.raises(ValidationFailed):
            TenantService.create({'nombre': 'Otro', 'slug': 'Con Espacios'})

    def test_unsafe_color_replaced(self, db):
        tenant = TenantService.create({'nombre': 'UC', 'slug': 'uc', 'color_primario': 'red;x:y'})

        assert tenant.color_primario.startswith('#')

    @patch('accredia.services.tenant_service.s3_client')
    def test_delete_cascades(self, mock_s3, db, tenant, event, admin_user):
        mock_s3.delete_prefix.return_value = (0, None)
        _create(event, '11111111-1')

        result = TenantService.delete(tenant.id)

        assert result['users_deleted'] == 1
        assert Registration.query.count() == 0
        mock_s3.delete_prefix.assert_called_once_with('cruzados/')


class TestSuperadminService:
    """Tests for SuperadminService"""

    def test_add_new_account(self, db, superadmin_user):
        result = SuperadminService.add_superadmin('nuevo@accredia.cl', 'Nuevo')

        assert result['temp_password']
        assert result['superadmin'].user.must_change_password is True

    def test_add_existing_superadmin(self, db, superadmin_user):
        with pytest.raises(ConflictError):
            SuperadminService.add_superadmin('root@accredia.cl')

    def test_cannot_remove_self(self, db, superadmin_user):
        own = Superadmin.query.filter_by(user_id=superadmin_user.id).first()

        with pytest.raises(ValidationFailed):
            SuperadminService.remove_superadmin(own.id, superadmin_user.id)

    def test_platform_stats(self, db, superadmin_user, event):
        _create(event, '11111111-1')

        stats = SuperadminService.get_platform_stats()

        assert stats['tenants'] == 1
        assert stats['registrations']['total'] == 1
        assert stats['registrations']['pendiente'] == 1


class TestMultiDayCheckin:
    """Tests for per-jornada check-in of multi-day events"""

    @pytest.fixture
    def torneo(self, db, tenant):
        event = Event(tenant_id=tenant.id, nombre='Torneo', is_active=True, qr_enabled=True, form_fields=[],
                      config={}, event_type=Event.TYPE_MULTIDIA, visibility=Event.VISIBILITY_PUBLIC)
        db.session.add(event)
        db.session.flush()
        first = EventDay(event_id=event.id, fecha=datetime(2025, 3, 15).date(), label='Día 1', orden=1)
        second = EventDay(event_id=event.id, fecha=datetime(2025, 3, 16).date(), label='Día 2', orden=2)
        db.session.add_all([first, second])
        db.session.commit()
        return event, first, second

    @pytest.fixture
    def approved_day_one(self, db, torneo, admin_user):
        _, first, _ = torneo
        registration = _create(torneo[0], '11111111-1', event_day_ids=[str(first.id)])
        return RegistrationService.update_status(registration.id, Registration.STATUS_APROBADO, admin_user.id)

    def test_enrolled_day_checks_in(self, db, torneo, approved_day_one, admin_user):
        _, first, _ = torneo

        result = CheckinService.validate_and_check_in(approved_day_one.qr_token, admin_user.id, first.id)

        assert result['valid'] is True
        assert result['event_day_id'] == str(first.id)

    def test_second_scan_same_day(self, db, torneo, approved_day_one, admin_user):
        _, first, _ = torneo
        CheckinService.validate_and_check_in(approved_day_one.qr_token, admin_user.id, first.id)

        result = CheckinService.validate_and_check_in(approved_day_one.qr_token, admin_user.id, first.id)

        assert result['valid'] is False
        assert result['status'] == 'already_checked_in'
        assert result['message'] == 'Ya registró ingreso para esta jornada'

    def test_day_not_enrolled(self, db, torneo, approved_day_one, admin_user):
        _, _, second = torneo

        result = CheckinService.validate_and_check_in(approved_day_one.qr_token, admin_user.id, str(second.id))

        assert result['valid'] is False
        assert result['status'] == 'not_enrolled_day'
        assert result['message'] == 'No inscrito para esta jornada'


class TestProfileAutofill:
    """Tests for ProfileService autofill and tenant form status"""

    @pytest.fixture
    def profile(self, db, tenant):
        profile = Profile(rut='12.345.678-5', nombre='Ana', apellido='Rojas', cargo='Periodista', datos_base={
            '_tenant': {str(tenant.id): {'talla': 'M'}},
            'talla': 'L',
            'patente': 'AB1234',
        })
        db.session.add(profile)
        db.session.commit()
        return profile

    def test_cascade_order(self, db, tenant, profile):
        fields = [
            {'key': 'talla'},
            {'key': 'vehiculo', 'profile_field': 'datos_base.patente'},
            {'key': 'puesto', 'profile_field': 'cargo'},
            {'key': 'alergias'},
        ]

        data = ProfileService.build_merged_autofill_data(profile, tenant.id, fields)

        assert data == {'talla': 'M', 'vehiculo': 'AB1234', 'puesto': 'Periodista'}

    def test_flat_data_used_for_other_tenant(self, db, profile):
        data = ProfileService.build_merged_autofill_data(profile, 'otro-tenant', [{'key': 'talla'}])

        assert data == {'talla': 'L'}

    def test_plain_datos_base_has_no_fixed_columns(self, db, tenant):
        data = ProfileService.build_merged_autofill_data({'patente': 'AB1234'}, tenant.id, [
            {'key': 'puesto', 'profile_field': 'cargo'},
            {'key': 'patente'},
        ])

        assert data == {'patente': 'AB1234'}
        assert ProfileService.build_merged_autofill_data(None, tenant.id, [{'key': 'talla'}]) == {}

    def test_tenant_profile_status(self, db, tenant):
        profile = Profile(rut='11.111.111-1', nombre='Luis', apellido='Soto', datos_base={})
        db.session.add(profile)
        db.session.commit()
        ProfileService.save_tenant_profile_data(profile.id, tenant.id,
                                                {'talla': 'M', 'responsable_nombre': 'Jefe'},
                                                form_keys=['talla', 'seguro_antiguo'])
        fields = [
            {'key': 'talla', 'label': 'Talla', 'required': True},
            {'key': 'seguro', 'label': 'Seguro', 'required': True},
            {'key': 'nota', 'label': 'Nota'},
        ]

        status = ProfileService.compute_tenant_profile_status(profile, tenant.id, fields)

        assert status['total_required'] == 2
        assert status['filled_required'] == 1
        assert status['missing_fields'] == [{'key': 'seguro', 'label': 'Seguro'}]
        assert status['completion_pct'] == 50
        assert status['has_data'] is True
        assert status['form_changed'] is True
        assert status['new_keys'] == ['nota', 'seguro']
        assert status['removed_keys'] == ['seguro_antiguo']
        assert 'responsable_nombre' not in ProfileService.get_tenant_profile_data(profile, tenant.id)
        assert profile.datos_base['talla'] == 'M'

    def test_status_without_saved_data(self, db, tenant, profile):
        status = ProfileService.compute_tenant_profile_status(profile, 'otro-tenant', [{'key': 'nota'}])

        assert status['completion_pct'] == 100
        assert status['has_data'] is False
        assert status['form_changed'] is False
        assert status['new_keys'] == []


class TestTeamService:
    """Tests for TeamService"""

    @pytest.fixture
    def manager(self, db):
        profile = Profile(rut='11.111.111-1', nombre='Marta', apellido='Soto', medio='Canal 13',
                          email='marta@canal13.cl', datos_base={})
        db.session.add(profile)
        db.session.commit()
        return profile

    def test_existing_profile_is_not_overwritten(self, db, manager, user):
        existing = Profile(rut='12.345.678-5', nombre='Ana', apellido='Rojas', email='ana@radio.cl',
                           medio='Radio Ejemplo', user_id=user.id, datos_base={})
        db.session.add(existing)
        db.session.commit()

        member = TeamService.add_member(manager, {
            'rut': '12345678-5', 'nombre': 'Otra', 'apellido': 'Persona',
            'email': 'spoof@evil.cl', 'medio': 'TV Uno',
        })
        db.session.expire_all()
        reloaded = db.session.get(Profile, existing.id)

        assert member.member_profile_id == existing.id
        assert (reloaded.nombre, reloaded.apellido) == ('Ana', 'Rojas')
        assert reloaded.email == 'ana@radio.cl'
        assert reloaded.medio == 'Radio Ejemplo'
        assert reloaded.user_id == user.id

    def test_unknown_rut_creates_profile(self, db, manager):
        member = TeamService.add_member(manager, {'rut': '22222222-2', 'nombre': 'Pedro', 'apellido': 'Díaz',
                                                  'medio': 'Radio Uno'})

        assert member.alias == 'Pedro Díaz'
        assert member.member_profile.rut == '22.222.222-2'
        assert member.member_profile.medio == 'Radio Uno'

    def test_own_rut_rejected(self, db, manager):
        with pytest.raises(ValidationFailed, match='No puedes agregarte a ti mismo'):
            TeamService.add_member(manager, {'rut': '11111111-1', 'nombre': 'Marta', 'apellido': 'Soto'})

    def test_duplicate_member(self, db, manager):
        TeamService.add_member(manager, {'rut': '22222222-2', 'nombre': 'Pedro', 'apellido': 'Díaz'})

        with pytest.raises(ConflictError, match='ya está en tu equipo'):
            TeamService.add_member(manager, {'rut': '22.222.222-2', 'nombre': 'Pedro', 'apellido': 'Díaz'})
        assert TeamMember.query.filter_by(manager_id=manager.id).count() == 1

    def test_incomplete_manager(self, db, manager):
        manager.medio = None
        db.session.commit()

        with pytest.raises(ForbiddenError) as exc_info:
            TeamService.add_member(manager, {'rut': '22222222-2', 'nombre': 'Pedro', 'apellido': 'Díaz'})

        missing = [field['key'] for field in exc_info.value.details['missing_fields']]
        assert missing == ['medio']

    def test_members_for_event(self, db, manager, event):
        event.form_fields = [{'key': 'cargo', 'label': 'Cargo', 'profile_field': 'cargo'}]
        db.session.commit()
        TeamService.add_member(manager, {'rut': '12345678-5', 'nombre': 'Ana', 'apellido': 'Rojas'})
        TeamService.add_member(manager, {'rut': '22222222-2', 'nombre': 'Pedro', 'apellido': 'Díaz',
                                         'cargo': 'Camarógrafo'})
        registration = _create(event, '12.345.678-5', cargo='Fotógrafo', organizacion='Radio Ejemplo')
        registration.profile.cargo = 'Periodista'
        db.session.commit()

        items = {item['profile']['rut']: item for item in TeamService.get_members_for_event(manager.id, event.id)}

        registered = items['12.345.678-5']
        assert registered['already_registered'] is True
        assert registered['registration_status'] == Registration.STATUS_PENDIENTE
        assert registered['autofill']['cargo'] == 'Fotógrafo'
        assert registered['autofill']['organizacion'] == 'Radio Ejemplo'
        pending = items['22.222.222-2']
        assert pending['already_registered'] is False
        assert pending['registration_status'] is None
        assert pending['autofill'] == {'cargo': 'Camarógrafo'}
