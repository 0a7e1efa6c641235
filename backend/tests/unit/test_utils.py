"""
Unit Tests for Utility Functions

Tests for:
- RUT cleaning, formatting and modulo-11 validation
- Email, phone and password checks
- HTML sanitizing of admin-authored templates
- Deadline and Spanish date helpers
- Subdomain tenant routing
- JSON response envelope
"""

from datetime import datetime, timedelta, timezone

import pytest

from accredia.services.errors import NotFoundError
from accredia.utils.dates import format_fecha_es, is_deadline_past, local_to_event_iso, parse_deadline
from accredia.utils.html import escape_html, safe_color, safe_url, sanitize_html
from accredia.utils.responses import conflict, paginated, service_error_response, validation_error
from accredia.utils.tenant_routing import (
    TENANT_SLUG_ENVIRON_KEY, TenantRoutingMiddleware, resolve_tenant_path, resolve_tenant_slug,
)
from accredia.utils.validation import (
    clean_rut, compute_dv, format_rut, get_missing_profile_fields, is_profile_complete,
    sanitize, validate_email, validate_password, validate_phone, validate_rut,
)


class TestRut:
    """Tests for RUT helpers"""

    def test_clean_rut_strips_dots_and_uppercases_k(self):
        assert clean_rut(' 12.345.678-k ') == '12345678-K'

    def test_clean_rut_inserts_dash(self):
        assert clean_rut('123456785') == '12345678-5'

    def test_format_rut(self):
        assert format_rut('123456785') == '12.345.678-5'
        assert format_rut('9876543-3') == '9.876.543-3'

    @pytest.mark.parametrize('body,dv', [
        (12345678, '5'),
        (11111111, '1'),
        (22222222, '2'),
        (9876543, '3'),
    ])
    def test_compute_dv(self, body, dv):
        assert compute_dv(body) == dv

    def test_validate_rut_returns_formatted(self):
        result = validate_rut('12345678-5')

        assert result.valid is True
        assert result.formatted == '12.345.678-5'

    def test_validate_rut_wrong_check_digit(self):
        result = validate_rut('12.345.678-9')

        assert result.valid is False
        assert result.error == 'Dígito verificador incorrecto'

    def test_validate_rut_check_digit_disabled(self):
        assert validate_rut('12.345.678-9', check_digit=False).valid is True

    def test_validate_rut_empty(self):
        assert validate_rut('').error == 'RUT es requerido'

    def test_validate_rut_bad_format(self):
        result = validate_rut('abc')

        assert result.valid is False
        assert 'Formato inválido' in result.error


class TestFieldValidation:
    """Tests for email, phone, password and text helpers"""

    def test_email(self):
        assert validate_email('ana@radio.cl').valid is True
        assert validate_email('ana@radio').valid is False
        assert validate_email('').error == 'Email es requerido'

    def test_phone_is_optional(self):
        assert validate_phone(None).valid is True
        assert validate_phone('').valid is True

    def test_phone_minimum_digits(self):
        assert validate_phone('+56 9 1234 5678').valid is True
        assert validate_phone('12-34').valid is False

    def test_password_length(self):
        assert validate_password('SecurePass123').valid is True
        assert validate_password('short').valid is False
        assert validate_password('x' * 200).valid is False
        assert validate_password(None).error == 'La contraseña es requerida'

    def test_sanitize_collapses_whitespace(self):
        assert sanitize('  Ana   María  ') == 'Ana María'
        assert sanitize(None) == ''

    def test_profile_completeness(self):
        profile = {'nombre': 'Ana', 'apellido': 'Rojas', 'email': 'ana@radio.cl',
                   'telefono': '+56912345678', 'medio': 'Radio Ejemplo'}

        missing = get_missing_profile_fields({'nombre': 'Ana'})

        assert is_profile_complete(profile) is True
        assert 'apellido' in [field['key'] for field in missing]
        assert is_profile_complete(None) is False


class TestHtml:
    """Tests for HTML safety helpers"""

    def test_sanitize_removes_scripts_and_handlers(self):
        html = '<p onclick="x()">Hola</p><script>alert(1)</script>'

        assert sanitize_html(html) == '<p>Hola</p>'

    def test_sanitize_removes_dangerous_tags(self):
        result = sanitize_html('<div><iframe src="https://x.cl"></iframe>ok</div>')

        assert 'iframe' not in result
        assert 'ok' in result

    def test_sanitize_neutralizes_javascript_urls(self):
        result = sanitize_html('<a href="javascript:alert(1)">x</a>')

        assert 'javascript' not in result

    def test_sanitize_keeps_image_data_uri(self):
        html = '<img src="data:image/png;base64,AAA">'

        assert sanitize_html(html) == html

    def test_escape_html(self):
        assert escape_html('<b>"A&B"</b>') == '&lt;b&gt;&quot;A&amp;B&quot;&lt;/b&gt;'
        assert escape_html(None) == ''

    def test_safe_color(self):
        assert safe_color('#1e5799', '#000') == '#1e5799'
        assert safe_color('red', '#000') == 'red'
        assert safe_color('red;background:url(x)', '#000') == '#000'

    def test_safe_url(self):
        assert safe_url('https://cdn.cl/logo.png') == 'https://cdn.cl/logo.png'
        assert safe_url('javascript:alert(1)') == ''


class TestDates:
    """Tests for deadline and date formatting helpers"""

    def test_format_fecha_es(self):
        assert format_fecha_es('2025-03-15') == 'sábado, 15 de marzo de 2025'

    def test_format_fecha_es_invalid_passthrough(self):
        assert format_fecha_es('pronto') == 'pronto'
        assert format_fecha_es(None) == ''

    def test_deadline_empty_never_blocks(self):
        assert is_deadline_past(None) is False
        assert is_deadline_past('') is False
        assert is_deadline_past('no es fecha') is False

    def test_deadline_past_and_future(self):
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        future = datetime.now(timezone.utc) + timedelta(hours=1)

        assert is_deadline_past(past) is True
        assert is_deadline_past(future.isoformat()) is False

    def test_naive_deadline_uses_event_timezone(self, app):
        parsed = parse_deadline('2025-03-15T18:00')

        assert parsed.tzinfo is not None
        assert local_to_event_iso('2025-03-15T18:00') == '2025-03-15T18:00:00-03:00'


class TestTenantRouting:
    """Tests for subdomain tenant resolution"""

    def test_subdomain_resolves_slug(self):
        assert resolve_tenant_slug('cruzados.accredia.cl') == 'cruzados'
        assert resolve_tenant_slug('cruzados.accredia.cl:443') == 'cruzados'

    def test_main_domain_has_no_tenant(self):
        assert resolve_tenant_slug('accredia.cl') is None
        assert resolve_tenant_slug('www.accredia.cl') is None
        assert resolve_tenant_slug('otro-dominio.com') is None

    def test_localhost_query_and_subdomain(self):
        assert resolve_tenant_slug('localhost:3000', query_tenant='uc') == 'uc'
        assert resolve_tenant_slug('uc.localhost:3000') == 'uc'
        assert resolve_tenant_slug('localhost:3000') is None

    def test_rewrite_paths(self):
        assert resolve_tenant_path('cruzados.accredia.cl', '/acreditacion') == '/cruzados/acreditacion'
        assert resolve_tenant_path('cruzados.accredia.cl', '/') == '/cruzados'

    def test_api_and_static_paths_untouched(self):
        assert resolve_tenant_path('cruzados.accredia.cl', '/api/events') is None
        assert resolve_tenant_path('cruzados.accredia.cl', '/logo.png') is None

    def test_already_prefixed_path_untouched(self):
        assert resolve_tenant_path('cruzados.accredia.cl', '/cruzados/acreditacion') is None

    def test_middleware_rewrites_environ(self):
        captured = {}

        def wsgi_app(environ, start_response):
            captured.update(environ)
            return []

        middleware = TenantRoutingMiddleware(wsgi_app, main_domain='accredia.cl')
        middleware({'HTTP_HOST': 'cruzados.accredia.cl', 'PATH_INFO': '/acreditacion',
                    'QUERY_STRING': ''}, None)

        assert captured['PATH_INFO'] == '/cruzados/acreditacion'
        assert captured[TENANT_SLUG_ENVIRON_KEY] == 'cruzados'


class TestResponses:
    """Tests for the JSON envelope helpers"""

    def test_paginated_envelope(self, app):
        response, status = paginated([{'id': 1}], total=7, limit=1, offset=3)

        body = response.get_json()
        assert status == 200
        assert body['success'] is True
        assert body['data']['pagination'] == {'total': 7, 'limit': 1, 'offset': 3}

    def test_error_carries_message_and_code(self, app):
        response, status = conflict('Ya existe', {'slug': 'cruzados'})

        assert status == 409
        assert response.get_json() == {'success': False, 'error': 'Ya existe', 'code': 'CONFLICT',
                                        'details': {'slug': 'cruzados'}}

    def test_field_errors(self, app):
        response, status = validation_error({'rut': ['Requerido']})

        assert status == 422
        assert response.get_json()['details'] == {'rut': ['Requerido']}

    def test_service_error_status(self, app):
        response, status = service_error_response(NotFoundError('Evento no encontrado'))

        assert status == 404
        assert response.get_json()['code'] == 'NOT_FOUND'
        assert 'details' not in response.get_json()
