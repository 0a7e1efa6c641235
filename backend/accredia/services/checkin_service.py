"""
CheckinService - gate scanning of QR credentials.

Scans never raise for business outcomes: an unknown, unapproved or
already-used QR is a normal answer shown to gate staff. Only a scanner
without rights over the event's tenant is rejected.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from accredia.extensions import db
from accredia.models import Registration, RegistrationDay, parse_uuid
from accredia.services.access_service import AccessService
from accredia.services.audit_service import AuditService
from accredia.services.errors import ForbiddenError, ValidationFailed
from accredia.utils.dates import ensure_aware

logger = logging.getLogger(__name__)

MIN_PUBLIC_TOKEN_LENGTH = 10


def _iso(value: Optional[datetime]) -> Optional[str]:
    return ensure_aware(value).isoformat() if value else None


class CheckinService:

    @staticmethod
    def validate_and_check_in(qr_token: str, user_id, event_day_id=None) -> Dict[str, Any]:
        """
        Validate a scanned QR token and register the entry.

        Args:
            qr_token: Token read from the QR
            user_id: Scanning tenant admin
            event_day_id: Jornada being scanned (multi-day events)

        Returns:
            Result dict with valid, status and message plus person details

        Raises:
            ValidationFailed: Missing token
            ForbiddenError: Scanner is not admin of the event's tenant
        """
        if not qr_token:
            raise ValidationFailed('qr_token es requerido')

        registration = (Registration.query.filter_by(qr_token=qr_token)
                        .with_for_update().first())
        if not registration:
            return {'valid': False, 'status': 'not_found', 'message': 'QR no encontrado'}

        event = registration.event
        if not AccessService.has_access_to_tenant(user_id, event.tenant_id):
            db.session.rollback()
            logger.warning(f"QR scan denied: user={user_id} tenant={event.tenant_id}")
            raise ForbiddenError('Acceso denegado: no es admin de este tenant')

        profile = registration.profile
        nombre = f'{profile.nombre} {profile.apellido}'.strip()
        rut = profile.display_id

        if registration.status != Registration.STATUS_APROBADO:
            db.session.rollback()
            return {
                'valid': False,
                'status': registration.status,
                'message': f'Acreditación no aprobada ({registration.status})',
                'nombre': nombre,
                'rut': rut,
            }

        now = datetime.now(timezone.utc)
        scanner = parse_uuid(user_id)
        day_id = parse_uuid(event_day_id) if event_day_id else None

        if event.is_multidia and day_id:
            day = RegistrationDay.query.filter_by(registration_id=registration.id, event_day_id=day_id).first()
            if not day:
                db.session.rollback()
                return {'valid': False, 'status': 'not_enrolled_day', 'message': 'No inscrito para esta jornada',
                        'nombre': nombre, 'rut': rut}
            if day.checked_in:
                db.session.rollback()
                return {'valid': False, 'status': 'already_checked_in',
                        'message': 'Ya registró ingreso para esta jornada', 'nombre': nombre, 'rut': rut,
                        'foto_url': profile.foto_url, 'registration_id': str(registration.id),
                        'checked_in_at': _iso(day.checked_in_at)}
            day.checked_in = True
            day.checked_in_at = now
            day.checked_in_by = scanner
        else:
            if registration.checked_in:
                db.session.rollback()
                return {'valid': False, 'status': 'already_checked_in', 'message': 'Ya registró ingreso',
                        'nombre': nombre, 'rut': rut, 'foto_url': profile.foto_url,
                        'registration_id': str(registration.id),
                        'checked_in_at': _iso(registration.checked_in_at)}
            registration.checked_in = True
            registration.checked_in_at = now
            registration.checked_in_by = scanner

        db.session.commit()

        result = {
            'valid': True,
            'status': 'checked_in',
            'message': 'Ingreso registrado',
            'registration_id': str(registration.id),
            'nombre': nombre,
            'rut': rut,
            'foto_url': profile.foto_url,
            'organizacion': registration.organizacion,
            'cargo': registration.cargo,
            'tipo_medio': registration.tipo_medio,
            'event_nombre': event.nombre,
            'zona': registration.zona,
        }
        metadata = {'qr_status': result['status'], 'nombre': nombre}
        if event.is_multidia and day_id:
            result['event_day_id'] = str(day_id)
            metadata['day_id'] = str(day_id)

        AuditService.log_action(user_id, 'registration.checked_in', 'registration', registration.id, metadata)
        logger.info(f"Check-in: registration={registration.id} day={day_id}")
        return result

    @staticmethod
    def get_public_qr_info(token: str) -> Optional[Dict[str, Any]]:
        """
        Read-only credential card shown when a QR is opened in a browser.

        Never exposes email or phone.

        Returns:
            Card dict, or None when the token is unknown

        Raises:
            ValidationFailed: Token too short to be real
        """
        if not token or len(token) < MIN_PUBLIC_TOKEN_LENGTH:
            raise ValidationFailed('Token inválido')

        registration = Registration.query.filter_by(qr_token=token).first()
        if not registration:
            return None

        if registration.status != Registration.STATUS_APROBADO:
            message = 'Acreditación pendiente de aprobación' \
                if registration.status == Registration.STATUS_PENDIENTE else 'Acreditación no aprobada'
            return {'valid': False, 'status': registration.status, 'message': message}

        profile, event = registration.profile, registration.event
        tenant = event.tenant
        return {
            'valid': True,
            'status': 'checked_in' if registration.checked_in else 'approved',
            'message': 'Acreditado — Ya ingresó' if registration.checked_in else 'Acreditación válida',
            'nombre': f'{profile.nombre} {profile.apellido}'.strip(),
            'apellido': profile.apellido,
            'rut': profile.display_id,
            'foto_url': profile.foto_url,
            'organizacion': registration.organizacion,
            'cargo': registration.cargo,
            'tipo_medio': registration.tipo_medio,
            'zona': registration.zona,
            'checked_in': registration.checked_in,
            'checked_in_at': _iso(registration.checked_in_at),
            'event': {
                'nombre': event.nombre,
                'fecha': event.fecha.isoformat() if event.fecha else None,
                'venue': event.venue,
            },
            'tenant': {
                'nombre': tenant.nombre,
                'slug': tenant.slug,
                'logo_url': tenant.logo_url,
                'color_primario': tenant.color_primario,
                'color_secundario': tenant.color_secundario,
            },
        }
