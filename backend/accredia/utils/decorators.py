"""
Custom decorators for route protection and access control.

Provides JWT validation, superadmin / tenant admin verification, rate
limiting and JSON body validation.
"""

import time
from functools import wraps
from typing import List, Optional, Callable, Tuple, Union
from flask import request, g, current_app
from flask_jwt_extended import verify_jwt_in_request, get_jwt_identity, get_jwt
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError
import logging

from accredia.extensions import redis_manager
from accredia.models.base import parse_uuid
from accredia.utils.responses import unauthorized, forbidden, bad_request, too_many_requests

logger = logging.getLogger(__name__)

PERIODS = {
    'second': 1,
    'minute': 60,
    'hour': 3600,
    'day': 86400,
}


def _load_identity(optional: bool = False) -> Tuple[bool, Optional[str]]:
    """
    Verify the bearer token and populate g.user_id / g.jwt_claims.

    Returns:
        (ok, error_message) tuple
    """
    from accredia.services.auth_service import AuthService

    try:
        verify_jwt_in_request(optional=optional)
    except (JWTExtendedException, PyJWTError) as e:
        logger.info(f"JWT validation failed: {str(e)}")
        return False, "No autenticado"

    user_id = get_jwt_identity()
    if not user_id:
        g.user_id = None
        g.jwt_claims = {}
        return optional, None if optional else "No autenticado"

    jwt_claims = get_jwt()
    if jwt_claims.get('type') == 'magic_link':
        return False, "No autenticado"

    # Check if token is blacklisted
    jti = jwt_claims.get('jti')
    if jti and AuthService.is_token_blacklisted(jti):
        logger.warning(f"Blacklisted token attempted: user_id={user_id}, jti={jti}")
        return False, "Token revocado"

    g.user_id = user_id
    g.jwt_claims = jwt_claims
    logger.debug(f"Authenticated user: {user_id}")
    return True, None


def jwt_required_custom(fn: Callable) -> Callable:
    """
    Custom JWT authentication decorator.

    Validates the JWT token and injects user information into Flask's g object.

    Security Features:
        - Validates JWT signature and expiration
        - Checks token against blacklist (revoked tokens)
        - Rejects magic-link tokens (they are only exchangeable, never usable)

    Usage:
        @auth_bp.route('/me')
        @jwt_required_custom
        def me():
            user_id = g.user_id

    Sets in Flask g:
        - g.user_id: UUID string of authenticated user
        - g.jwt_claims: Full JWT claims dict
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        ok_, error = _load_identity()
        if not ok_:
            return unauthorized(error)
        return fn(*args, **kwargs)

    return wrapper


def jwt_optional(fn: Callable) -> Callable:
    """
    Authenticate when a bearer token is present, continue anonymously otherwise.

    Public endpoints (registration form, tenant pages) use this to link
    submissions to the logged-in user. g.user_id is None for anonymous requests.
    An invalid or revoked token is still rejected with 401.
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        g.user_id = None
        g.jwt_claims = {}
        ok_, error = _load_identity(optional=True)
        if not ok_:
            return unauthorized(error)
        return fn(*args, **kwargs)

    return wrapper


def superadmin_required(fn: Callable) -> Callable:
    """
    Require a platform superadmin. Must be used after @jwt_required_custom.

    Usage:
        @tenants_bp.route('', methods=['POST'])
        @jwt_required_custom
        @superadmin_required
        def create_tenant(): ...
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        from accredia.services.access_service import AccessService

        user_id = getattr(g, 'user_id', None)
        if not user_id:
            return unauthorized()

        if not AccessService.is_superadmin(user_id):
            logger.warning(f"Superadmin access denied: user_id={user_id}")
            return forbidden("Acceso denegado: se requiere superadmin")

        g.is_superadmin = True
        return fn(*args, **kwargs)

    return wrapper


def check_tenant_admin(tenant_id) -> Tuple[bool, Optional[tuple]]:
    """
    Verify that g.user_id administers tenant_id (superadmins always pass).

    Used inside handlers whose tenant is derived from another record
    (event, registration).

    Returns:
        (True, None) when allowed, (False, error_response) otherwise

    Example:
        >>> allowed, error = check_tenant_admin(event.tenant_id)
        >>> if not allowed:
        ...     return error
    """
    from accredia.services.access_service import AccessService

    user_id = getattr(g, 'user_id', None)
    if not user_id:
        return False, unauthorized()

    if not tenant_id:
        return False, forbidden("Acceso denegado: tenantId requerido para verificar permisos")

    role = AccessService.get_user_tenant_role(user_id, tenant_id)
    if role == 'none':
        logger.warning(f"Tenant admin access denied: user_id={user_id}, tenant_id={tenant_id}")
        return False, forbidden("Acceso denegado: no es admin de este tenant")

    g.tenant_id = str(tenant_id)
    g.user_role = role
    return True, None


def _tenant_id_from_request(tenant_id_param: str, kwargs: dict) -> Optional[str]:
    tenant_id = kwargs.get(tenant_id_param) or request.args.get(tenant_id_param)
    if not tenant_id and request.is_json:
        body = request.get_json(silent=True) or {}
        if isinstance(body, dict):
            tenant_id = body.get(tenant_id_param)
    return tenant_id


def tenant_admin_required(tenant_id_param: str = 'tenant_id') -> Callable:
    """
    Decorator to validate tenant admin rights.

    The tenant id is read from the route parameter, the query string or the
    JSON body (in that order). Must be used after @jwt_required_custom.

    Args:
        tenant_id_param: Name of the parameter containing the tenant id

    Usage:
        @tenants_bp.route('/<tenant_id>', methods=['PUT'])
        @jwt_required_custom
        @tenant_admin_required('tenant_id')
        def update_tenant(tenant_id): ...

    Sets in Flask g:
        - g.tenant_id: Tenant id string
        - g.user_role: 'superadmin', 'admin' or 'editor'
    """
    def decorator(fn: Callable) -> Callable:
        @wraps(fn)
        def wrapper(*args, **kwargs):
            tenant_id = _tenant_id_from_request(tenant_id_param, kwargs)
            if tenant_id is not None and parse_uuid(tenant_id) is None:
                return bad_request("tenant_id inválido")

            allowed, error = check_tenant_admin(tenant_id)
            if not allowed:
                return error

            return fn(*args, **kwargs)

        return wrapper
    return decorator


def _parse_limit(limit: Union[int, str], per: Optional[int]) -> Tuple[int, int]:
    """Resolve "10/minute" strings (literal or config key) into (count, seconds)."""
    if isinstance(limit, int):
        return limit, per or 60

    rule = current_app.config.get(limit, limit)
    count, _, period = str(rule).partition('/')
    return int(count), PERIODS.get(period.strip().rstrip('s'), per or 60)


def _client_identifier(scope: str) -> str:
    if scope == 'user' and getattr(g, 'user_id', None):
        return f"user:{g.user_id}"
    forwarded = request.headers.get('X-Forwarded-For', '')
    ip = forwarded.split(',')[0].strip() if forwarded else (request.remote_addr or 'unknown')
    return f"ip:{ip}"


def rate_limit(limit: Union[int, str], per: Optional[int] = None, scope: str = 'ip') -> Callable:
    """
    Fixed-window rate limiting backed by Redis.

    Args:
        limit: Maximum number of requests, or a config key / rule such as
               'RATE_LIMIT_LOGIN' or '10/minute'
        per: Window in seconds when limit is an int
        scope: 'ip' or 'user'

    Usage:
        @auth_bp.route('/login', methods=['POST'])
        @rate_limit('RATE_LIMIT_LOGIN')
        def login(): ...

    Requests pass through when RATE_LIMIT_ENABLED is False or Redis is unavailable.
    """
    def decorator(fn: Callable) -> Callable:
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if not current_app.config.get('RATE_LIMIT_ENABLED', True):
                return fn(*args, **kwargs)

            max_requests, window = _parse_limit(limit, per)
            count = redis_manager.incr_window(fn.__name__, _client_identifier(scope), window, time.time())
            if count is None:
                logger.debug("Rate limiting skipped: Redis not available")
                return fn(*args, **kwargs)

            if count > max_requests:
                logger.warning(f"Rate limit exceeded: {fn.__name__} {_client_identifier(scope)} "
                               f"({count}/{max_requests})")
                return too_many_requests(details={'limit': max_requests, 'window_seconds': window})

            return fn(*args, **kwargs)

        return wrapper
    return decorator


def validate_json(required_fields: Optional[List[str]] = None) -> Callable:
    """
    Decorator to validate JSON request body.

    Ensures request has a JSON object body and optionally validates required fields.

    Args:
        required_fields: List of required field names in JSON body

    Usage:
        @bulk_bp.route('', methods=['POST'])
        @validate_json(required_fields=['registration_ids'])
        def bulk_action(): ...
    """
    def decorator(fn: Callable) -> Callable:
        @wraps(fn)
        def wrapper(*args, **kwargs):
            data = request.get_json(silent=True)

            if not isinstance(data, dict):
                return bad_request("Se requiere un cuerpo JSON")

            if required_fields:
                missing_fields = [field for field in required_fields if data.get(field) in (None, '', [])]

                if missing_fields:
                    logger.warning(f"Missing required fields: {missing_fields}")
                    return bad_request(
                        f"{', '.join(missing_fields)} es requerido",
                        {"missing_fields": missing_fields}
                    )

            return fn(*args, **kwargs)

        return wrapper
    return decorator
