"""
Authentication Blueprint.

Endpoints:
- POST /api/auth/register - Create an account (optionally linking a profile by RUT)
- POST /api/auth/login - Email/password login
- POST /api/auth/refresh - New access token from a refresh token
- POST /api/auth/logout - Revoke the current token
- GET /api/auth/me - Current user, roles and profile
- POST /api/auth/change-password - Change (or set a forced) password
- POST /api/auth/magic-link - Email a one-time login link
- GET /api/auth/callback - Exchange a magic-link token for a token pair

Security features:
- Passwords hashed with bcrypt
- JWT tokens (15 min access, 7 day refresh)
- Token blocklist for logout and used magic links
- Rate limiting on login and magic-link requests
"""

import logging
from flask import Blueprint, request, g
from flask_jwt_extended import jwt_required, get_jwt_identity, get_jwt
from marshmallow import ValidationError

from accredia.schemas.auth_schema import (
    register_schema,
    login_schema,
    change_password_schema,
    magic_link_request_schema,
)
from accredia.services.auth_service import AuthService
from accredia.services.errors import ServiceError
from accredia.utils.decorators import jwt_required_custom, rate_limit
from accredia.utils.responses import ok, created, bad_request, unauthorized, internal_error, service_error_response

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


@auth_bp.route('/register', methods=['POST'])
@rate_limit('RATE_LIMIT_LOGIN')
def register():
    """
    Register a new account.

    Request Body:
        {
            "email": "prensa@medio.cl",
            "password": "SecurePass123",
            "rut": "12.345.678-5"       (optional)
        }

    Response (201): {"user": {...}}
    Errors: 400 validation, 409 email already registered
    """
    try:
        data = register_schema.load(request.get_json() or {})
        user = AuthService.register(data)
        return created({'user': user.to_dict()}, 'Cuenta creada')

    except ValidationError as err:
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Registration error: {str(e)}", exc_info=True)
        return internal_error()


@auth_bp.route('/login', methods=['POST'])
@rate_limit('RATE_LIMIT_LOGIN')
def login():
    """
    Authenticate with email and password.

    Response (200):
        {
            "access_token": "...",
            "refresh_token": "...",
            "user": {...},
            "roles": {"is_superadmin": false, "tenants": [...]},
            "must_change_password": false
        }

    Errors: 401 Credenciales inválidas, 403 Cuenta desactivada
    """
    try:
        data = login_schema.load(request.get_json() or {})
        auth_data = AuthService.authenticate(data['email'], data['password'])
        return ok(auth_data, 'Sesión iniciada')

    except ValidationError as err:
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Login error: {str(e)}", exc_info=True)
        return internal_error()


@auth_bp.route('/refresh', methods=['POST'])
@jwt_required(refresh=True)
def refresh():
    """Issue a new access token. Requires the refresh token as bearer."""
    try:
        if AuthService.is_token_blacklisted(get_jwt().get('jti')):
            return unauthorized('Token revocado')
        access_token = AuthService.refresh_access_token(get_jwt_identity())
        return ok({'access_token': access_token}, 'Token renovado')

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Token refresh error: {str(e)}", exc_info=True)
        return internal_error()


@auth_bp.route('/logout', methods=['POST'])
@jwt_required_custom
def logout():
    """Revoke the access token used for this request."""
    try:
        AuthService.logout(g.jwt_claims.get('jti'))
        return ok(message='Sesión cerrada')

    except Exception as e:
        logger.error(f"Logout error: {str(e)}", exc_info=True)
        return internal_error()


@auth_bp.route('/me', methods=['GET'])
@jwt_required_custom
def me():
    try:
        return ok(AuthService.get_current_user(g.user_id))
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error loading current user: {str(e)}", exc_info=True)
        return internal_error()


@auth_bp.route('/change-password', methods=['POST'])
@jwt_required_custom
def change_password():
    """
    Change the account password.

    Request Body:
        {"current_password": "...", "new_password": "..."}

    current_password may be omitted when the account must change a
    temporary password.
    """
    try:
        data = change_password_schema.load(request.get_json() or {})
        AuthService.change_password(g.user_id, data.get('current_password'), data['new_password'])
        return ok(message='Contraseña actualizada')

    except ValidationError as err:
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Change password error: {str(e)}", exc_info=True)
        return internal_error()


@auth_bp.route('/magic-link', methods=['POST'])
@rate_limit('RATE_LIMIT_MAGIC_LINK')
def magic_link():
    """
    Email a one-time login link.

    Request Body:
        {"email": "prensa@medio.cl", "next": "/mi-perfil"}

    The response never contains the link itself.
    """
    try:
        data = magic_link_request_schema.load(request.get_json() or {})
        AuthService.request_magic_link(data['email'], data['next'])
        return ok(message='Te enviamos un enlace de acceso a tu email')

    except ValidationError as err:
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Magic link error: {str(e)}", exc_info=True)
        return internal_error()


@auth_bp.route('/callback', methods=['GET'])
def magic_link_callback():
    """
    Exchange a magic-link token.

    Query: token, next

    Response (200): same body as /login plus "next"
    Errors: 401 Enlace inválido o expirado
    """
    try:
        auth_data = AuthService.exchange_magic_link(request.args.get('token'))
        next_path = request.args.get('next') or '/'
        if not next_path.startswith('/') or next_path.startswith('//'):
            next_path = '/'
        auth_data['next'] = next_path
        return ok(auth_data, 'Sesión iniciada')

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Magic link callback error: {str(e)}", exc_info=True)
        return internal_error()
