"""
Integration Tests for the Admin API

Tenant, event, billing and platform administration through HTTP:
- Tenant creation and admin management (superadmin only)
- Event creation against plan limits
- Billing endpoints and the Stripe webhook guard
- Email templates, CSV export, uploads and bulk operations
"""

import io
import json
from unittest.mock import patch

import stripe

from accredia.models import Registration, Subscription, Superadmin, Tenant


def _post(client, url, payload, headers=None):
    return client.post(url, data=json.dumps(payload), content_type='application/json', headers=headers)


def _put(client, url, payload, headers=None):
    return client.put(url, data=json.dumps(payload), content_type='application/json', headers=headers)


def _auth_only(headers):
    return {'Authorization': headers['Authorization']}


def _submit(client, form, **overrides):
    response = _post(client, '/api/registrations', {**form, **overrides})
    return response.get_json()['data']['registration']['id']


class TestTenantAdministration:
    """Tests for /api/tenants"""

    def test_superadmin_creates_tenant(self, client, superadmin_user, make_headers):
        response = _post(client, '/api/tenants', {'nombre': 'Club Deportivo', 'slug': 'club-deportivo'},
                         headers=make_headers(superadmin_user))

        assert response.status_code == 201
        assert response.get_json()['data']['slug'] == 'club-deportivo'
        assert Tenant.query.filter_by(slug='club-deportivo').count() == 1

    def test_create_requires_superadmin(self, client, user, make_headers):
        response = _post(client, '/api/tenants', {'nombre': 'Club', 'slug': 'club'}, headers=make_headers(user))

        assert response.status_code == 403

    def test_duplicate_slug(self, client, superadmin_user, tenant, make_headers):
        response = _post(client, '/api/tenants', {'nombre': 'Otro', 'slug': 'cruzados'},
                         headers=make_headers(superadmin_user))

        assert response.status_code == 409
        assert response.get_json()['code'] == 'CONFLICT'

    def test_public_active_list(self, client, tenant):
        response = client.get('/api/tenants?active=1')

        assert response.status_code == 200
        assert [t['slug'] for t in response.get_json()['data']] == ['cruzados']

    def test_full_list_requires_login(self, client, tenant):
        response = client.get('/api/tenants')

        assert response.status_code == 401

    def test_create_admin_creates_account(self, client, superadmin_user, tenant, make_headers):
        response = _post(client, f'/api/tenants/{tenant.id}/admins',
                         {'email': 'prensa@cruzados.cl', 'nombre': 'Prensa', 'rol': 'editor'},
                         headers=make_headers(superadmin_user))

        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['user_created'] is True
        assert data['admin']['rol'] == 'editor'

    def test_admin_limit_on_free_plan(self, client, superadmin_user, admin_user, tenant, make_headers):
        response = _post(client, f'/api/tenants/{tenant.id}/admins',
                         {'email': 'otro@cruzados.cl', 'rol': 'admin'},
                         headers=make_headers(superadmin_user))

        assert response.status_code == 409


class TestEventAdministration:
    """Tests for POST /api/events"""

    def test_create_event(self, client, admin_user, tenant, make_headers):
        response = _post(client, '/api/events', {'tenant_id': str(tenant.id), 'nombre': 'Fecha 5 vs Rival',
                                                 'fecha': '2025-03-15'},
                         headers=make_headers(admin_user))

        assert response.status_code == 201
        assert response.get_json()['data']['nombre'] == 'Fecha 5 vs Rival'

    def test_free_plan_event_limit(self, client, admin_user, tenant, event, make_headers):
        response = _post(client, '/api/events', {'tenant_id': str(tenant.id), 'nombre': 'Segundo evento'},
                         headers=make_headers(admin_user))

        assert response.status_code == 409
        assert response.get_json()['details']['allowed'] is False

    def test_create_requires_tenant_admin(self, client, user, tenant, make_headers):
        response = _post(client, '/api/events', {'tenant_id': str(tenant.id), 'nombre': 'X'},
                         headers=make_headers(user))

        assert response.status_code == 403


class TestBillingApi:
    """Tests for /api/billing"""

    def test_tenant_billing(self, client, admin_user, tenant, make_headers):
        response = client.get(f'/api/billing?tenant_id={tenant.id}', headers=make_headers(admin_user))

        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['is_free'] is True
        assert data['stripe_enabled'] is False

    def test_plans_are_public_without_price_ids(self, client, pro_plan):
        response = client.get('/api/billing/plans')

        plans = response.get_json()['data']
        assert {p['slug'] for p in plans} == {'free', 'pro'}
        assert all('stripe_price_id_clp' not in p for p in plans)

    def test_check_limit(self, client, admin_user, tenant, event, make_headers):
        response = client.get(f'/api/billing/check-limit?tenant_id={tenant.id}&metric=events',
                              headers=make_headers(admin_user))

        data = response.get_json()['data']
        assert data['allowed'] is False
        assert data['current'] == 1

    def test_check_limit_requires_metric(self, client, admin_user, tenant, make_headers):
        response = client.get(f'/api/billing/check-limit?tenant_id={tenant.id}', headers=make_headers(admin_user))

        assert response.status_code == 400

    def test_webhook_without_stripe(self, client, db):
        response = client.post('/api/billing/webhook', data=b'{}', content_type='application/json')

        assert response.status_code == 503

    def test_webhook_without_signature(self, app, client, db, monkeypatch):
        monkeypatch.setitem(app.config, 'STRIPE_SECRET_KEY', 'sk_test_x')
        monkeypatch.setitem(app.config, 'STRIPE_WEBHOOK_SECRET', 'whsec_x')

        response = client.post('/api/billing/webhook', data=b'{}', content_type='application/json')

        assert response.status_code == 400
        assert response.get_json()['error'] == 'Falta firma de Stripe'

    def test_callback_without_stripe(self, app, client, db):
        response = client.get('/api/billing/callback?status=success&session_id=cs_test_1')

        assert response.status_code == 302
        assert response.headers['Location'] == f"{app.config['APP_URL']}/admin?billing=success"

    @patch('stripe.checkout.Session.retrieve')
    def test_callback_returns_to_tenant_admin(self, mock_retrieve, app, client, tenant, monkeypatch):
        monkeypatch.setitem(app.config, 'STRIPE_SECRET_KEY', 'sk_test_x')
        mock_retrieve.return_value = {'metadata': {'tenant_id': str(tenant.id)}}

        response = client.get('/api/billing/callback?status=success&session_id=cs_test_1')

        mock_retrieve.assert_called_once_with('cs_test_1')
        assert response.headers['Location'] == f"{app.config['APP_URL']}/cruzados/admin?billing=success"

    @patch('stripe.checkout.Session.retrieve')
    def test_callback_unreadable_session(self, mock_retrieve, app, client, tenant, monkeypatch):
        monkeypatch.setitem(app.config, 'STRIPE_SECRET_KEY', 'sk_test_x')
        mock_retrieve.side_effect = stripe.InvalidRequestError('No such checkout session', 'id')

        response = client.get('/api/billing/callback?session_id=cs_missing')

        assert response.headers['Location'] == f"{app.config['APP_URL']}/admin?billing=cancel"

    @patch('stripe.billing_portal.Session.create')
    def test_portal_returns_to_tenant_admin(self, mock_create, app, client, db, admin_user, tenant, make_headers,
                                            monkeypatch):
        monkeypatch.setitem(app.config, 'STRIPE_SECRET_KEY', 'sk_test_x')
        subscription = Subscription.query.filter_by(tenant_id=tenant.id).first()
        subscription.stripe_customer_id = 'cus_test_1'
        db.session.commit()
        mock_create.return_value = {'url': 'https://billing.stripe.com/p/session_1'}

        response = _post(client, '/api/billing/portal', {'tenant_id': str(tenant.id)},
                         headers=make_headers(admin_user))

        assert response.status_code == 200
        assert mock_create.call_args.kwargs['return_url'] == f"{app.config['APP_URL']}/cruzados/admin"

    def test_superadmin_assigns_plan(self, client, superadmin_user, tenant, pro_plan, make_headers):
        response = _post(client, '/api/billing/assign', {'tenant_id': str(tenant.id), 'plan_slug': 'pro'},
                         headers=make_headers(superadmin_user))

        assert response.status_code == 200
        usage = client.get(f'/api/billing?tenant_id={tenant.id}',
                           headers=make_headers(superadmin_user)).get_json()['data']
        assert usage['is_free'] is False

    def test_assign_unknown_plan(self, client, superadmin_user, tenant, make_headers):
        response = _post(client, '/api/billing/assign', {'tenant_id': str(tenant.id), 'plan_slug': 'oro'},
                         headers=make_headers(superadmin_user))

        assert response.status_code == 404


class TestSuperadminApi:
    """Tests for /api/superadmin"""

    def test_stats(self, client, superadmin_user, tenant, event, registration_form, make_headers):
        _submit(client, registration_form)

        response = client.get('/api/superadmin/stats', headers=make_headers(superadmin_user))

        data = response.get_json()['data']
        assert data['tenants'] == 1
        assert data['registrations']['pendiente'] == 1

    def test_stats_forbidden_for_tenant_admin(self, client, admin_user, make_headers):
        response = client.get('/api/superadmin/stats', headers=make_headers(admin_user))

        assert response.status_code == 403

    def test_add_superadmin_returns_temp_password(self, client, superadmin_user, make_headers):
        response = _post(client, '/api/superadmin/admins', {'email': 'ops@accredia.cl', 'nombre': 'Ops'},
                         headers=make_headers(superadmin_user))

        assert response.status_code == 201
        assert response.get_json()['data']['temp_password']
        assert Superadmin.query.count() == 2

    def test_cannot_remove_self(self, client, superadmin_user, make_headers):
        own = Superadmin.query.filter_by(user_id=superadmin_user.id).first()

        response = client.delete(f'/api/superadmin/admins/{own.id}', headers=make_headers(superadmin_user))

        assert response.status_code == 400
        assert Superadmin.query.count() == 1

    def test_audit_logs(self, client, superadmin_user, make_headers):
        _post(client, '/api/tenants', {'nombre': 'Club', 'slug': 'club'}, headers=make_headers(superadmin_user))

        response = client.get('/api/superadmin/audit-logs?action=tenant.created',
                              headers=make_headers(superadmin_user))

        logs = response.get_json()['data']
        assert len(logs) == 1
        assert logs[0]['entity_type'] == 'tenant'


class TestEmailTemplatesApi:
    """Tests for /api/email"""

    def test_save_and_list(self, client, admin_user, tenant, make_headers):
        response = _put(client, '/api/email/templates', {
            'tenant_id': str(tenant.id),
            'tipo': 'aprobacion',
            'subject': 'Acreditado {nombre}',
            'body_html': '<p>Hola {nombre}</p><script>alert(1)</script>',
        }, headers=make_headers(admin_user))

        assert response.status_code == 200
        assert '<script>' not in response.get_json()['data']['body_html']

        templates = client.get(f'/api/email/templates?tenant_id={tenant.id}',
                               headers=make_headers(admin_user)).get_json()['data']
        assert [t['tipo'] for t in templates] == ['aprobacion']

    def test_invalid_tipo(self, client, admin_user, tenant, make_headers):
        response = _put(client, '/api/email/templates', {'tenant_id': str(tenant.id), 'tipo': 'spam'},
                        headers=make_headers(admin_user))

        assert response.status_code == 400

    def test_preview_fills_placeholders(self, client, admin_user, tenant, make_headers):
        response = _post(client, '/api/email/preview', {
            'tenant_id': str(tenant.id),
            'subject': 'Hola {nombre}',
            'body_html': '<p>{nombre}</p>',
        }, headers=make_headers(admin_user))

        data = response.get_json()['data']
        assert '{nombre}' not in data['subject']
        assert '{nombre}' not in data['html']


class TestExportApi:
    """Tests for GET /api/export"""

    def test_full_export(self, client, admin_user, event, registration_form, make_headers):
        _submit(client, registration_form)

        response = client.get(f'/api/export?event_id={event.id}', headers=make_headers(admin_user))

        assert response.status_code == 200
        assert response.headers['Content-Type'].startswith('text/csv')
        assert 'attachment' in response.headers['Content-Disposition']
        body = response.get_data(as_text=True)
        assert body.startswith('\ufeffNombre;Primer Apellido')
        assert '12.345.678-5' in body

    def test_puntoticket_export(self, client, admin_user, event, registration_form, make_headers):
        _submit(client, registration_form)

        response = client.get(f'/api/export?event_id={event.id}&format=puntoticket',
                              headers=make_headers(admin_user))

        assert 'puntoticket-' in response.headers['Content-Disposition']

    def test_requires_scope(self, client, admin_user, make_headers):
        response = client.get('/api/export', headers=make_headers(admin_user))

        assert response.status_code == 400

    def test_invalid_format(self, client, admin_user, event, make_headers):
        response = client.get(f'/api/export?event_id={event.id}&format=xlsx', headers=make_headers(admin_user))

        assert response.status_code == 400

    def test_forbidden_for_non_admin(self, client, user, event, make_headers):
        response = client.get(f'/api/export?event_id={event.id}', headers=make_headers(user))

        assert response.status_code == 403


class TestUploadsApi:
    """Tests for POST /api/upload"""

    def _upload(self, client, headers, filename='logo.png', content=b'\x89PNG', folder='logos'):
        return client.post('/api/upload', headers=_auth_only(headers), content_type='multipart/form-data', data={
            'file': (io.BytesIO(content), filename),
            'folder': folder,
            'tenant_slug': 'cruzados',
        })

    def test_upload(self, client, admin_user, make_headers):
        with patch('accredia.routes.uploads.s3_client.upload_file',
                   return_value=('https://cdn.example/logo.png', None)) as upload:
            response = self._upload(client, make_headers(admin_user))

        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['url'] == 'https://cdn.example/logo.png'
        assert data['key'].startswith('cruzados/logos/')
        assert data['key'].endswith('.png')
        upload.assert_called_once()

    def test_invalid_folder(self, client, admin_user, make_headers):
        response = self._upload(client, make_headers(admin_user), folder='scripts')

        assert response.status_code == 400

    def test_invalid_extension(self, client, admin_user, make_headers):
        response = self._upload(client, make_headers(admin_user), filename='payload.exe')

        assert response.status_code == 400

    def test_empty_file(self, client, admin_user, make_headers):
        response = self._upload(client, make_headers(admin_user), content=b'')

        assert response.status_code == 400
        assert response.get_json()['error'] == 'El archivo está vacío'

    def test_storage_failure(self, client, admin_user, make_headers):
        with patch('accredia.routes.uploads.s3_client.upload_file', return_value=(None, 'boom')):
            response = self._upload(client, make_headers(admin_user))

        assert response.status_code == 503


class TestBulkApi:
    """Tests for /api/bulk"""

    def test_bulk_approve(self, client, admin_user, registration_form, make_headers):
        first = _submit(client, registration_form)
        second = _submit(client, registration_form, rut='11.111.111-1', email='b@radio.cl')

        response = _post(client, '/api/bulk', {'registration_ids': [first, second], 'status': 'aprobado',
                                               'send_emails': False},
                         headers=make_headers(admin_user))

        assert response.status_code == 200
        assert response.get_json()['data']['success'] == 2
        assert Registration.query.filter_by(status='aprobado').count() == 2
        assert all(r.qr_token for r in Registration.query.all())

    def test_bulk_delete(self, client, admin_user, registration_form, make_headers):
        registration_id = _submit(client, registration_form)

        response = _post(client, '/api/bulk', {'registration_ids': [registration_id], 'action': 'delete'},
                         headers=make_headers(admin_user))

        assert response.status_code == 200
        assert Registration.query.count() == 0

    def test_bulk_requires_ids(self, client, admin_user, make_headers):
        response = _post(client, '/api/bulk', {'registration_ids': [], 'status': 'aprobado'},
                         headers=make_headers(admin_user))

        assert response.status_code == 400
        assert response.get_json()['error'] == 'registration_ids es requerido'

    def test_bulk_invalid_status(self, client, admin_user, registration_form, make_headers):
        registration_id = _submit(client, registration_form)

        response = _post(client, '/api/bulk', {'registration_ids': [registration_id], 'status': 'revision'},
                         headers=make_headers(admin_user))

        assert response.status_code == 400
        assert response.get_json()['error'] == 'status debe ser aprobado o rechazado'

    def test_bulk_forbidden_for_other_users(self, client, user, registration_form, make_headers):
        registration_id = _submit(client, registration_form)

        response = _post(client, '/api/bulk', {'registration_ids': [registration_id], 'status': 'aprobado'},
                         headers=make_headers(user))

        assert response.status_code == 403

    def test_parse_file(self, client, admin_user, make_headers):
        content = 'Nombre;Apellido;RUT;Organización\nJuan;Pérez;12.345.678-5;Radio Ejemplo\n'.encode('utf-8')

        response = client.post('/api/bulk/parse', headers=_auth_only(make_headers(admin_user)),
                               content_type='multipart/form-data',
                               data={'file': (io.BytesIO(content), 'lista.csv')})

        data = response.get_json()['data']
        assert data['total'] == 1
        assert data['rows'][0]['empresa'] == 'Radio Ejemplo'

    def test_parse_without_file(self, client, admin_user, make_headers):
        response = client.post('/api/bulk/parse', headers=_auth_only(make_headers(admin_user)),
                               content_type='multipart/form-data', data={})

        assert response.get_json()['error'] == 'Archivo requerido'

    def test_template(self, client, admin_user, make_headers):
        response = client.get('/api/bulk/template', headers=make_headers(admin_user))

        assert response.status_code == 200
        assert 'plantilla-acreditacion.csv' in response.headers['Content-Disposition']
        assert 'RUT' in response.get_data(as_text=True)

    def test_bulk_accreditation(self, client, user, event, make_headers):
        rows = [
            {'rut': '12.345.678-5', 'nombre': 'Ana', 'apellido': 'Rojas', 'email': 'ana@radio.cl',
             'cargo': 'Periodista', 'empresa': 'Radio Ejemplo', 'tipo_medio': 'Radio'},
            {'rut': '12.345.678-0', 'nombre': 'Mal', 'apellido': 'Rut', 'email': 'mal@radio.cl',
             'cargo': 'Periodista', 'empresa': 'Radio Ejemplo', 'tipo_medio': 'Radio'},
        ]

        response = _post(client, '/api/bulk/accreditation', {'event_id': str(event.id), 'rows': rows},
                         headers=make_headers(user))

        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['total'] == 2
        assert data['success'] == 1
        assert Registration.query.count() == 1
