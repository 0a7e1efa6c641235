"""
SuperadminService - platform-wide statistics and superadmin accounts.
"""

import logging
import secrets
from typing import Any, Dict, List, Optional

from sqlalchemy import func

from accredia.extensions import db
from accredia.models import Superadmin, Tenant, TenantAdmin, Event, Registration, Profile, User, parse_uuid
from accredia.services.errors import ConflictError, NotFoundError, ValidationFailed
from accredia.utils.validation import validate_email

logger = logging.getLogger(__name__)


class SuperadminService:

    @staticmethod
    def get_platform_stats() -> Dict[str, Any]:
        """Counters for the superadmin dashboard."""
        by_status = dict(
            db.session.query(Registration.status, func.count(Registration.id))
            .group_by(Registration.status).all()
        )
        return {
            'tenants': Tenant.query.count(),
            'tenants_activos': Tenant.query.filter_by(activo=True).count(),
            'events': Event.query.count(),
            'events_activos': Event.query.filter_by(is_active=True).count(),
            'registrations': {
                'total': sum(by_status.values()),
                'pendiente': by_status.get(Registration.STATUS_PENDIENTE, 0),
                'aprobado': by_status.get(Registration.STATUS_APROBADO, 0),
                'rechazado': by_status.get(Registration.STATUS_RECHAZADO, 0),
                'revision': by_status.get(Registration.STATUS_REVISION, 0),
            },
            'profiles': Profile.query.count(),
            'admins': TenantAdmin.query.count(),
        }

    @staticmethod
    def list_superadmins() -> List[Superadmin]:
        return Superadmin.query.order_by(Superadmin.created_at.asc()).all()

    @staticmethod
    def add_superadmin(email: str, nombre: Optional[str] = None) -> Dict[str, Any]:
        """
        Grant superadmin rights, creating the account when the email is new.

        Returns:
            {'superadmin': Superadmin, 'temp_password': str or None}
        """
        email = (email or '').strip().lower()
        check = validate_email(email)
        if not check.valid:
            raise ValidationFailed(check.error)

        user = User.find_by_email(email)
        temp_password = None
        if not user:
            temp_password = secrets.token_urlsafe(9)
            user = User(email=email, nombre=nombre, is_active=True, must_change_password=True)
            user.set_password(temp_password)
            db.session.add(user)
            db.session.flush()
        elif Superadmin.query.filter_by(user_id=user.id).first():
            raise ConflictError('Este usuario ya es superadmin')

        superadmin = Superadmin(user_id=user.id, nombre=nombre or user.nombre, email=email)
        db.session.add(superadmin)
        db.session.commit()
        logger.info(f"Superadmin added: user={user.id}")
        return {'superadmin': superadmin, 'temp_password': temp_password}

    @staticmethod
    def remove_superadmin(superadmin_id, acting_user_id) -> None:
        superadmin = db.session.get(Superadmin, parse_uuid(superadmin_id)) if parse_uuid(superadmin_id) else None
        if not superadmin:
            raise NotFoundError('Superadmin no encontrado')
        if str(superadmin.user_id) == str(acting_user_id):
            raise ValidationFailed('No puedes quitarte tus propios permisos de superadmin')
        if Superadmin.query.count() <= 1:
            raise ValidationFailed('Debe existir al menos un superadmin')

        db.session.delete(superadmin)
        db.session.commit()
        logger.info(f"Superadmin removed: {superadmin_id}")
