"""
Integration Tests for the Accreditation Flow

Public form -> admin review -> QR check-in, driven through the HTTP API:
- Public tenant pages (path and subdomain routing)
- Registration submission and its validation errors
- Admin listing, approval and rejection
- QR scan and the public credential card
"""

import json

from accredia.models import EmailLog, Event, Registration
from accredia.services import InvitationService


def _post(client, url, payload, headers=None):
    return client.post(url, data=json.dumps(payload), content_type='application/json', headers=headers)


def _patch(client, url, payload, headers=None):
    return client.patch(url, data=json.dumps(payload), content_type='application/json', headers=headers)


class TestPublicPages:
    """Tests for tenant landing and form data"""

    def test_landing_by_path(self, client, tenant, event):
        response = client.get('/cruzados')

        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['tenant']['slug'] == 'cruzados'
        assert data['event']['nombre'] == event.nombre
        assert 'invite_token' not in data['event']

    def test_landing_by_subdomain(self, client, tenant, event):
        response = client.get('/', base_url='http://cruzados.accredia.cl')

        assert response.status_code == 200
        assert response.get_json()['data']['tenant']['slug'] == 'cruzados'

    def test_local_tenant_query(self, client, tenant, event):
        response = client.get('/acreditacion?tenant=cruzados', base_url='http://localhost:5000')

        assert response.status_code == 200
        assert response.get_json()['data']['event']['nombre'] == event.nombre

    def test_unknown_tenant(self, client, db):
        response = client.get('/nadie')

        assert response.status_code == 404
        assert response.get_json()['error'] == 'Organización no encontrada'

    def test_form_without_active_event(self, client, tenant):
        response = client.get('/cruzados/acreditacion')

        assert response.status_code == 404
        assert response.get_json()['error'] == 'No hay un evento activo'

    def test_form_payload(self, client, tenant, event):
        response = client.get('/cruzados/acreditacion')

        data = response.get_json()['data']
        assert data['deadline'] == {'fecha_limite': None, 'closed': False}
        assert data['quota_rules'] == []
        assert 'autofill' not in data

    def test_invite_only_event_hidden_without_token(self, client, db, tenant, event):
        event.visibility = Event.VISIBILITY_INVITE_ONLY
        db.session.commit()

        assert client.get('/cruzados/acreditacion').status_code == 404

    def test_invite_token_opens_form(self, client, db, tenant, event):
        event.visibility = Event.VISIBILITY_INVITE_ONLY
        db.session.commit()
        invitation = InvitationService.create_invitations(event.id, [{'email': 'ana@radio.cl', 'nombre': 'Ana'}])[
            'created'][0]

        response = client.get(f'/cruzados/acreditacion?invite={invitation.token}')

        assert response.status_code == 200
        assert response.get_json()['data']['invitation'] == {'email': 'ana@radio.cl', 'nombre': 'Ana'}

    def test_invalid_invite_token(self, client, tenant, event):
        response = client.get('/cruzados/acreditacion?invite=nope')

        assert response.status_code == 403
        assert response.get_json()['error'] == 'Invitación no encontrada'


class TestRegistrationSubmission:
    """Tests for POST /api/registrations"""

    def test_submit(self, client, registration_form):
        response = _post(client, '/api/registrations', registration_form)

        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['registration']['status'] == 'pendiente'
        assert data['profile_id']

    def test_unknown_fields_go_to_datos_extra(self, client, registration_form):
        response = _post(client, '/api/registrations', {**registration_form, 'talla': 'M'})

        assert response.get_json()['data']['registration']['datos_extra']['talla'] == 'M'

    def test_missing_required_field(self, client, registration_form):
        payload = dict(registration_form)
        del payload['apellido']

        response = _post(client, '/api/registrations', payload)

        assert response.status_code == 400
        assert 'apellido' in response.get_json()['details']

    def test_invalid_rut(self, client, registration_form):
        response = _post(client, '/api/registrations', {**registration_form, 'rut': '12.345.678-0'})

        assert response.status_code == 400
        assert response.get_json()['error'] == 'Dígito verificador incorrecto'

    def test_duplicate(self, client, registration_form):
        _post(client, '/api/registrations', registration_form)

        response = _post(client, '/api/registrations', registration_form)

        assert response.status_code == 409

    def test_logged_in_user_links_own_profile(self, client, user, registration_form, make_headers):
        response = _post(client, '/api/registrations', registration_form, headers=make_headers(user))

        assert response.status_code == 201
        me = client.get('/api/profiles/me', headers=make_headers(user)).get_json()['data']
        assert me['found'] is True
        assert me['profile']['rut'] == '12.345.678-5'


class TestAdminReview:
    """Tests for the admin side of registrations"""

    def _submit(self, client, form):
        return _post(client, '/api/registrations', form).get_json()['data']['registration']['id']

    def test_list_requires_admin(self, client, user, event, make_headers):
        response = client.get(f'/api/registrations?event_id={event.id}', headers=make_headers(user))

        assert response.status_code == 403

    def test_list_paginated(self, client, admin_user, event, registration_form, make_headers):
        self._submit(client, registration_form)

        response = client.get(f'/api/registrations?event_id={event.id}&search=Rojas',
                              headers=make_headers(admin_user))

        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['pagination']['total'] == 1
        assert data['items'][0]['rut'] == '12.345.678-5'

    def test_list_rejects_bad_status(self, client, admin_user, event, make_headers):
        response = client.get(f'/api/registrations?event_id={event.id}&status=borrado',
                              headers=make_headers(admin_user))

        assert response.status_code == 400

    def test_approve_sends_email_and_issues_qr(self, client, admin_user, registration_form, make_headers):
        registration_id = self._submit(client, registration_form)

        response = _patch(client, f'/api/registrations/{registration_id}', {'status': 'aprobado'},
                          headers=make_headers(admin_user))

        assert response.status_code == 200
        assert response.get_json()['data']['qr_token']
        # No RESEND_API_KEY in tests: the attempt is logged as failed
        assert EmailLog.query.filter_by(tipo='aprobacion', to_email='ana@radio.cl').count() == 1

    def test_reject_with_motivo(self, client, admin_user, registration_form, make_headers):
        registration_id = self._submit(client, registration_form)

        response = _patch(client, f'/api/registrations/{registration_id}',
                          {'status': 'rechazado', 'motivo_rechazo': 'Cupo completo', 'send_email': False},
                          headers=make_headers(admin_user))

        assert response.get_json()['data']['motivo_rechazo'] == 'Cupo completo'
        assert EmailLog.query.count() == 0

    def test_stats(self, client, admin_user, event, registration_form, make_headers):
        self._submit(client, registration_form)

        response = client.get(f'/api/registrations/stats?event_id={event.id}', headers=make_headers(admin_user))

        assert response.get_json()['data']['total'] == 1

    def test_delete(self, client, admin_user, registration_form, make_headers):
        registration_id = self._submit(client, registration_form)

        response = client.delete(f'/api/registrations/{registration_id}', headers=make_headers(admin_user))

        assert response.status_code == 200
        assert Registration.query.count() == 0


class TestQrCheckin:
    """Tests for QR scanning"""

    def _approved_token(self, client, admin_user, form, headers):
        registration_id = _post(client, '/api/registrations', form).get_json()['data']['registration']['id']
        response = _patch(client, f'/api/registrations/{registration_id}',
                          {'status': 'aprobado', 'send_email': False}, headers=headers)
        return response.get_json()['data']['qr_token']

    def test_scan_twice(self, client, admin_user, registration_form, make_headers):
        headers = make_headers(admin_user)
        token = self._approved_token(client, admin_user, registration_form, headers)

        first = _post(client, '/api/qr/validate', {'qr_token': token}, headers=headers)
        second = _post(client, '/api/qr/validate', {'qr_token': token}, headers=headers)

        assert first.status_code == 200
        assert first.get_json()['data']['status'] == 'checked_in'
        assert second.get_json()['data']['status'] == 'already_checked_in'

    def test_scan_requires_tenant_admin(self, client, admin_user, user, registration_form, make_headers):
        token = self._approved_token(client, admin_user, registration_form, make_headers(admin_user))

        response = _post(client, '/api/qr/validate', {'qr_token': token}, headers=make_headers(user))

        assert response.status_code == 403

    def test_scan_without_token(self, client, admin_user, make_headers):
        response = _post(client, '/api/qr/validate', {}, headers=make_headers(admin_user))

        assert response.status_code == 400

    def test_public_card(self, client, admin_user, registration_form, make_headers):
        token = self._approved_token(client, admin_user, registration_form, make_headers(admin_user))

        response = client.get(f'/api/qr/{token}')

        assert response.status_code == 200
        card = response.get_json()['data']
        assert card['nombre'] == 'Ana Rojas Pérez'
        assert 'email' not in card

    def test_public_card_unknown(self, client, db):
        response = client.get('/api/qr/' + 'a' * 64)

        assert response.status_code == 404
