"""
EventService - Business Logic for Events

Handles event CRUD for tenant admins and the lookups used by the public
accreditation form (active event of a tenant, event by invite token).

Business Rules:
- Creating an event consumes the plan's 'events' limit
- Invite-only events carry a shared invite_token; making an event public
  clears it
- Multi-day events need fecha_inicio <= fecha_fin
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from accredia.extensions import db
from accredia.models import (Event, EventDay, Registration, RegistrationDay, QuotaRule, ZoneRule,
                             Invitation, parse_uuid)
from accredia.services.errors import ConflictError, NotFoundError, ValidationFailed
from accredia.utils.dates import parse_date, parse_deadline

logger = logging.getLogger(__name__)

# Columns never taken from request bodies
PROTECTED_FIELDS = {'id', 'created_at', 'updated_at', 'created_by', 'tenant', 'tenant_id'}
DATE_FIELDS = ('fecha', 'fecha_inicio', 'fecha_fin')


def _new_invite_token() -> str:
    return uuid.uuid4().hex


class EventService:

    @staticmethod
    def get_active_event(tenant_id, public_only: bool = False) -> Optional[Event]:
        """Earliest active event of a tenant (what the public form shows)."""
        tid = parse_uuid(tenant_id)
        if tid is None:
            return None
        query = Event.query.filter_by(tenant_id=tid, is_active=True)
        if public_only:
            query = query.filter_by(visibility=Event.VISIBILITY_PUBLIC)
        return query.order_by(Event.fecha.asc()).first()

    @staticmethod
    def get_by_id(event_id) -> Event:
        eid = parse_uuid(event_id)
        event = db.session.get(Event, eid) if eid else None
        if not event:
            raise NotFoundError('Evento no encontrado')
        return event

    @staticmethod
    def get_tenant_id(event_id) -> Optional[str]:
        eid = parse_uuid(event_id)
        if eid is None:
            return None
        tenant_id = db.session.query(Event.tenant_id).filter(Event.id == eid).scalar()
        return str(tenant_id) if tenant_id else None

    @staticmethod
    def list_by_tenant(tenant_id) -> List[Event]:
        return Event.query.filter_by(tenant_id=parse_uuid(tenant_id)).order_by(Event.fecha.desc()).all()

    @staticmethod
    def list_all() -> List[Event]:
        return Event.query.order_by(Event.fecha.desc()).all()

    @staticmethod
    def get_by_invite_token(token: str) -> Optional[Event]:
        if not token:
            return None
        return Event.query.filter_by(invite_token=token).first()

    @staticmethod
    def _normalize(data: Dict[str, Any]) -> Dict[str, Any]:
        values = {key: value for key, value in data.items() if key not in PROTECTED_FIELDS}

        for field in Event.NULLABLE_STRING_FIELDS:
            if field in values and values[field] == '':
                values[field] = None
        for field in DATE_FIELDS:
            if field in values:
                values[field] = parse_date(values[field])
        if 'fecha_limite_acreditacion' in values:
            values['fecha_limite_acreditacion'] = parse_deadline(values['fecha_limite_acreditacion'])

        if 'event_type' in values and values['event_type'] not in Event.VALID_TYPES:
            raise ValidationFailed('event_type debe ser simple o multidia')
        if 'visibility' in values and values['visibility'] not in Event.VALID_VISIBILITIES:
            raise ValidationFailed('visibility debe ser public o invite_only')
        if 'form_fields' in values and not isinstance(values['form_fields'] or [], list):
            raise ValidationFailed('form_fields debe ser una lista')
        return values

    @staticmethod
    def _check_dates(event: Event) -> None:
        if event.is_multidia and event.fecha_inicio and event.fecha_fin and event.fecha_inicio > event.fecha_fin:
            raise ValidationFailed('La fecha de inicio debe ser anterior o igual a la fecha de fin')

    @staticmethod
    def create(tenant_id, data: Dict[str, Any], created_by=None) -> Event:
        """
        Create an event for a tenant.

        Raises:
            ValidationFailed: Missing nombre, bad type/visibility or date range
            ConflictError: Plan 'events' limit reached
        """
        tid = parse_uuid(tenant_id)
        if tid is None:
            raise ValidationFailed('tenant_id es requerido')
        if not (data.get('nombre') or '').strip():
            raise ValidationFailed('Nombre es requerido')

        from accredia.services.billing_service import BillingService
        limit = BillingService.check_limit(tid, 'events')
        if not limit['allowed']:
            raise ConflictError(limit['message'], details=limit)

        values = EventService._normalize(data)
        event = Event(
            tenant_id=tid,
            is_active=True,
            qr_enabled=False,
            form_fields=[],
            config={},
            event_type=Event.TYPE_SIMPLE,
            visibility=Event.VISIBILITY_PUBLIC,
            created_by=parse_uuid(created_by),
        )
        event.update_from_dict(values, allowed_fields=Event.get_column_names())
        event.form_fields = list(event.form_fields or [])
        event.config = dict(event.config or {})
        if event.is_invite_only and not event.invite_token:
            event.invite_token = _new_invite_token()
        EventService._check_dates(event)

        db.session.add(event)
        db.session.commit()
        logger.info(f"Event created: {event.id} ({event.nombre}) tenant={tid}")
        return event

    @staticmethod
    def update(event_id, data: Dict[str, Any]) -> Event:
        event = EventService.get_by_id(event_id)
        values = EventService._normalize(data or {})
        values.pop('invite_token', None)
        event.update_from_dict(values, allowed_fields=Event.get_column_names())

        if 'form_fields' in values:
            event.form_fields = list(values['form_fields'] or [])
        if 'config' in values:
            event.config = dict(values['config'] or {})

        if event.is_invite_only and not event.invite_token:
            event.invite_token = _new_invite_token()
        elif not event.is_invite_only:
            event.invite_token = None
        EventService._check_dates(event)

        db.session.commit()
        logger.info(f"Event updated: {event.id}")
        return event

    @staticmethod
    def deactivate(event_id) -> Event:
        event = EventService.get_by_id(event_id)
        event.is_active = False
        db.session.commit()
        logger.info(f"Event deactivated: {event.id}")
        return event

    @staticmethod
    def delete_event_rows(event: Event) -> None:
        """Delete an event and its dependent rows without committing."""
        registration_ids = [row.id for row in db.session.query(Registration.id).filter_by(event_id=event.id)]
        if registration_ids:
            RegistrationDay.query.filter(RegistrationDay.registration_id.in_(registration_ids)) \
                .delete(synchronize_session=False)
        Registration.query.filter_by(event_id=event.id).delete(synchronize_session=False)
        EventDay.query.filter_by(event_id=event.id).delete(synchronize_session=False)
        QuotaRule.query.filter_by(event_id=event.id).delete(synchronize_session=False)
        ZoneRule.query.filter_by(event_id=event.id).delete(synchronize_session=False)
        Invitation.query.filter_by(event_id=event.id).delete(synchronize_session=False)
        db.session.expire(event, ['days'])
        db.session.delete(event)

    @staticmethod
    def delete(event_id) -> None:
        event = EventService.get_by_id(event_id)
        EventService.delete_event_rows(event)
        db.session.commit()
        logger.info(f"Event deleted: {event_id}")
