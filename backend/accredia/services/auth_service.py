"""
AuthService - Business Logic for Authentication

This service handles account registration, login, token management,
magic-link login and password changes. It separates business logic from
the route handlers in the auth blueprint.

Token Management:
- Access tokens: 15 minutes expiration (configurable via JWT_ACCESS_TOKEN_EXPIRES)
- Refresh tokens: 7 days expiration (configurable via JWT_REFRESH_TOKEN_EXPIRES)
- Magic-link tokens: short-lived access tokens with claim type=magic_link that
  can only be exchanged once for a normal token pair
- Token blacklist: RedisManager.revoke_token / is_token_revoked (Redis with in-memory fallback)
"""

import logging
import secrets
from datetime import datetime, timezone
from typing import Dict, Optional
from urllib.parse import quote
from flask_jwt_extended import create_access_token, create_refresh_token, decode_token
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError
from flask import current_app

from accredia.extensions import db, redis_manager
from accredia.models import User, parse_uuid
from accredia.services.access_service import AccessService
from accredia.services.errors import ConflictError, ForbiddenError, UnauthorizedError, ValidationFailed
from accredia.utils.validation import validate_email, validate_password

logger = logging.getLogger(__name__)

MAGIC_LINK_TOKEN_TYPE = 'magic_link'


class AuthService:
    """
    Service class for authentication operations.

    All methods are static since there's no instance state to maintain.
    Business-rule failures raise ServiceError subclasses.
    """

    @staticmethod
    def _add_to_blacklist(jti: str) -> None:
        """Revoke a token JTI (logout or an exchanged magic link)."""
        redis_manager.revoke_token(jti, current_app.config.get('REDIS_TOKEN_BLACKLIST_EXPIRE'))
        logger.debug(f"Token revoked: {jti}")

    @staticmethod
    def is_token_blacklisted(jti: str) -> bool:
        """
        Check if a token JTI has been revoked.

        Called by the JWT token_in_blocklist_loader on every protected request.
        """
        return redis_manager.is_token_revoked(jti)

    @staticmethod
    def _issue_tokens(user: User) -> Dict:
        user.last_login_at = datetime.now(timezone.utc)
        db.session.commit()

        return {
            'access_token': create_access_token(identity=str(user.id)),
            'refresh_token': create_refresh_token(identity=str(user.id)),
            'user': user.to_dict(),
            'roles': AccessService.get_user_roles(user.id),
            'must_change_password': bool(user.must_change_password),
        }

    @staticmethod
    def register(user_data: Dict) -> User:
        """
        Register a new account.

        Args:
            user_data: Dict with email, password and optional nombre / rut.
                       When rut matches an existing profile, the profile is
                       linked to the new account.

        Returns:
            The created User

        Raises:
            ValidationFailed: Invalid email or password policy violation
            ConflictError: Email already registered

        Example:
            user = AuthService.register({'email': 'prensa@medio.cl', 'password': 'SecurePass123'})
        """
        email = (user_data.get('email') or '').strip().lower()
        email_check = validate_email(email)
        if not email_check.valid:
            raise ValidationFailed(email_check.error)

        password_check = validate_password(user_data.get('password'))
        if not password_check.valid:
            raise ValidationFailed(password_check.error)

        if User.find_by_email(email):
            logger.warning(f"Registration failed: Email already exists: {email}")
            raise ConflictError('Ya existe una cuenta con este email')

        user = User(email=email, nombre=user_data.get('nombre'), is_active=True)
        user.set_password(user_data['password'])
        db.session.add(user)
        db.session.commit()

        rut = user_data.get('rut')
        if rut:
            from accredia.services.profile_service import ProfileService
            ProfileService.link_profile_to_user(rut, user.id)

        logger.info(f"User registered successfully: {user.id} ({email})")
        return user

    @staticmethod
    def authenticate(email: str, password: str) -> Dict:
        """
        Authenticate with email and password.

        Returns:
            Dict with access_token, refresh_token, user, roles and must_change_password

        Raises:
            UnauthorizedError: Unknown email or wrong password
            ForbiddenError: Account deactivated
        """
        user = User.find_by_email(email or '')

        if not user or not user.check_password(password):
            logger.warning(f"Authentication failed for: {email}")
            raise UnauthorizedError('Credenciales inválidas')

        if not user.is_active:
            logger.warning(f"Authentication failed: inactive account: {email}")
            raise ForbiddenError('Cuenta desactivada')

        auth_data = AuthService._issue_tokens(user)
        logger.info(f"User authenticated successfully: {user.id} ({user.email})")
        return auth_data

    @staticmethod
    def refresh_access_token(user_id: str) -> str:
        """
        Issue a new access token for the identity of a valid refresh token.

        The refresh token itself is verified by @jwt_required(refresh=True).
        """
        user = db.session.get(User, parse_uuid(user_id)) if parse_uuid(user_id) else None
        if not user or not user.is_active:
            logger.warning(f"Refresh failed: User not found or inactive: {user_id}")
            raise UnauthorizedError('No autenticado')

        logger.info(f"Access token refreshed for user: {user_id}")
        return create_access_token(identity=str(user.id))

    @staticmethod
    def logout(jti: str) -> None:
        """
        Revoke a token by blacklisting its JTI.

        Multiple logout calls for the same token are idempotent.
        """
        AuthService._add_to_blacklist(jti)
        logger.info(f"Token blacklisted (logout): {jti}")

    @staticmethod
    def get_current_user(user_id: str) -> Dict:
        """User, roles and linked profile for /api/auth/me."""
        from accredia.services.profile_service import ProfileService

        uid = parse_uuid(user_id)
        user = db.session.get(User, uid) if uid else None
        if not user:
            raise UnauthorizedError('No autenticado')

        profile = ProfileService.get_profile_by_user_id(user.id)
        return {
            'user': user.to_dict(),
            'roles': AccessService.get_user_roles(user.id),
            'profile': profile.to_dict() if profile else None,
            'must_change_password': bool(user.must_change_password),
        }

    @staticmethod
    def change_password(user_id: str, current_password: Optional[str], new_password: str) -> None:
        """
        Change the password of an account.

        The current password is not required when the account was created with
        a temporary password (must_change_password); the flag is cleared.
        """
        uid = parse_uuid(user_id)
        user = db.session.get(User, uid) if uid else None
        if not user:
            raise UnauthorizedError('No autenticado')

        if not user.must_change_password and not user.check_password(current_password):
            raise UnauthorizedError('La contraseña actual es incorrecta')

        check = validate_password(new_password)
        if not check.valid:
            raise ValidationFailed(check.error)

        user.set_password(new_password)
        user.must_change_password = False
        db.session.commit()
        logger.info(f"Password changed for user: {user.id}")

    @staticmethod
    def should_force_password_change(user: User) -> bool:
        return bool(user and user.must_change_password)

    @staticmethod
    def request_magic_link(email: str, next_path: str = '/') -> str:
        """
        Email a one-time login link.

        Creates the account on first use (random password, never revealed).

        Returns:
            The magic-link URL (also queued for delivery)
        """
        email = (email or '').strip().lower()
        email_check = validate_email(email)
        if not email_check.valid:
            raise ValidationFailed(email_check.error)

        user = User.find_by_email(email)
        if not user:
            user = User(email=email, is_active=True)
            user.set_password(secrets.token_urlsafe(24))
            db.session.add(user)
            db.session.commit()
            logger.info(f"User created from magic link request: {user.id} ({email})")
        elif not user.is_active:
            raise ForbiddenError('Cuenta desactivada')

        token = create_access_token(
            identity=str(user.id),
            additional_claims={'type': MAGIC_LINK_TOKEN_TYPE},
            expires_delta=current_app.config['MAGIC_LINK_EXPIRES'],
        )
        if not next_path or not next_path.startswith('/') or next_path.startswith('//'):
            next_path = '/'

        link = (f"{current_app.config['APP_URL']}/api/auth/callback"
                f"?token={quote(token)}&next={quote(next_path)}")

        from accredia.tasks.email_tasks import send_magic_link_email
        send_magic_link_email.delay(email, link)

        logger.info(f"Magic link issued for user: {user.id}")
        return link

    @staticmethod
    def exchange_magic_link(token: str) -> Dict:
        """
        Exchange a magic-link token for a normal token pair (single use).

        Raises:
            UnauthorizedError: Missing, expired, reused or non-magic-link token
        """
        if not token:
            raise UnauthorizedError('Enlace inválido o expirado')

        try:
            claims = decode_token(token)
        except (JWTExtendedException, PyJWTError) as e:
            logger.info(f"Magic link rejected: {e}")
            raise UnauthorizedError('Enlace inválido o expirado')

        jti = claims.get('jti')
        if claims.get('type') != MAGIC_LINK_TOKEN_TYPE or AuthService.is_token_blacklisted(jti):
            raise UnauthorizedError('Enlace inválido o expirado')

        uid = parse_uuid(claims.get('sub'))
        user = db.session.get(User, uid) if uid else None
        if not user or not user.is_active:
            raise UnauthorizedError('Enlace inválido o expirado')

        AuthService._add_to_blacklist(jti)
        logger.info(f"Magic link exchanged for user: {user.id}")
        return AuthService._issue_tokens(user)
