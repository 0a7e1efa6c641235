"""
Integration Tests for Authentication Flow

Tests complete authentication flows including:
- Account registration -> login -> access protected routes
- Token refresh flow
- Logout and token revocation
- Magic link issue and single-use exchange
- Invalid credentials handling
"""

import json
from urllib.parse import parse_qs, urlparse

from accredia.models import Profile, User
from accredia.services import AuthService


def _post(client, url, payload, headers=None):
    return client.post(url, data=json.dumps(payload), content_type='application/json', headers=headers)


class TestRegistrationFlow:
    """Test complete account registration flow"""

    def test_register_new_user(self, client):
        response = _post(client, '/api/auth/register', {
            'email': 'Prensa@Medio.cl',
            'password': 'SecurePass123',
        })

        assert response.status_code == 201
        data = response.get_json()
        assert data['success'] is True
        assert data['data']['user']['email'] == 'prensa@medio.cl'
        assert 'password_hash' not in data['data']['user']

    def test_register_duplicate_email(self, client, user):
        response = _post(client, '/api/auth/register', {'email': user.email, 'password': 'SecurePass123'})

        assert response.status_code == 409
        data = response.get_json()
        assert data['success'] is False
        assert data['code'] == 'CONFLICT'

    def test_register_invalid_email(self, client):
        response = _post(client, '/api/auth/register', {'email': 'not-an-email', 'password': 'SecurePass123'})

        assert response.status_code == 400
        assert 'email' in response.get_json()['details']

    def test_register_weak_password(self, client):
        response = _post(client, '/api/auth/register', {'email': 'nuevo@medio.cl', 'password': 'corta'})

        assert response.status_code == 400
        assert 'al menos 8' in response.get_json()['error']

    def test_register_links_existing_profile(self, client, event):
        _post(client, '/api/registrations', {
            'event_id': str(event.id), 'rut': '11.111.111-1', 'nombre': 'Ana', 'apellido': 'Rojas',
        })

        response = _post(client, '/api/auth/register', {
            'email': 'ana@radio.cl', 'password': 'SecurePass123', 'rut': '11111111-1',
        })

        assert response.status_code == 201
        assert Profile.query.filter_by(rut='11.111.111-1').one().user_id is not None


class TestLoginFlow:
    """Test login, refresh and logout"""

    def test_login_success(self, client, user):
        response = _post(client, '/api/auth/login', {'email': user.email, 'password': 'TestPass123'})

        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['access_token']
        assert data['refresh_token']
        assert data['roles'] == {'is_superadmin': False, 'tenants': []}
        assert data['must_change_password'] is False

    def test_login_wrong_password(self, client, user):
        response = _post(client, '/api/auth/login', {'email': user.email, 'password': 'WrongPass123'})

        assert response.status_code == 401
        assert response.get_json()['error'] == 'Credenciales inválidas'

    def test_login_inactive_account(self, client, user, db):
        user.is_active = False
        db.session.commit()

        response = _post(client, '/api/auth/login', {'email': user.email, 'password': 'TestPass123'})

        assert response.status_code == 403

    def test_login_reports_tenant_roles(self, client, admin_user, tenant):
        response = _post(client, '/api/auth/login', {'email': admin_user.email, 'password': 'AdminPass123'})

        tenants = response.get_json()['data']['roles']['tenants']
        assert tenants[0]['slug'] == tenant.slug
        assert tenants[0]['rol'] == 'admin'

    def test_me_requires_token(self, client):
        response = client.get('/api/auth/me')

        assert response.status_code == 401
        assert response.get_json()['success'] is False

    def test_me(self, client, user, make_headers):
        response = client.get('/api/auth/me', headers=make_headers(user))

        assert response.status_code == 200

    def test_refresh_token(self, client, user):
        login = _post(client, '/api/auth/login', {'email': user.email, 'password': 'TestPass123'})
        refresh_token = login.get_json()['data']['refresh_token']

        response = client.post('/api/auth/refresh', headers={'Authorization': f'Bearer {refresh_token}'})

        assert response.status_code == 200
        assert response.get_json()['data']['access_token']

    def test_logout_revokes_token(self, client, user, make_headers):
        headers = make_headers(user)

        assert client.post('/api/auth/logout', headers=headers).status_code == 200
        assert client.get('/api/auth/me', headers=headers).status_code == 401

    def test_change_password(self, client, db, user, make_headers):
        response = _post(client, '/api/auth/change-password', {
            'current_password': 'TestPass123', 'new_password': 'NuevaClave456',
        }, headers=make_headers(user))

        assert response.status_code == 200
        assert db.session.get(User, user.id).check_password('NuevaClave456')


class TestMagicLinkFlow:
    """Test passwordless login"""

    def test_request_creates_account_and_hides_link(self, client):
        response = _post(client, '/api/auth/magic-link', {'email': 'nuevo@medio.cl', 'next': '/mi-perfil'})

        assert response.status_code == 200
        assert 'token' not in json.dumps(response.get_json())
        assert User.find_by_email('nuevo@medio.cl') is not None

    def test_callback_is_single_use(self, client, user):
        link = AuthService.request_magic_link(user.email, '/mi-perfil')
        query = parse_qs(urlparse(link).query)
        token = query['token'][0]

        first = client.get(f'/api/auth/callback?token={token}&next=/mi-perfil')
        second = client.get(f'/api/auth/callback?token={token}')

        assert first.status_code == 200
        assert first.get_json()['data']['next'] == '/mi-perfil'
        assert first.get_json()['data']['access_token']
        assert second.status_code == 401

    def test_callback_rejects_open_redirect(self, client, user):
        link = AuthService.request_magic_link(user.email)
        token = parse_qs(urlparse(link).query)['token'][0]

        response = client.get(f'/api/auth/callback?token={token}&next=//evil.com')

        assert response.get_json()['data']['next'] == '/'

    def test_magic_link_token_is_not_an_access_token(self, client, user):
        link = AuthService.request_magic_link(user.email)
        token = parse_qs(urlparse(link).query)['token'][0]

        response = client.get('/api/auth/me', headers={'Authorization': f'Bearer {token}'})

        assert response.status_code == 401
