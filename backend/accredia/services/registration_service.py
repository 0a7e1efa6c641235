"""
RegistrationService - Business Logic for Accreditation Requests

Creates, lists and processes registrations (accreditation requests).

Creation flow (one database transaction):
1. Event must exist, be active and still accept submissions (deadline)
2. Invite-only events require a valid invitation or the event invite token
3. Plan limit 'registrations' for the event
4. Profile found or created by RUT
5. Access zone resolved from the event's zone rules unless given
6. Quota checked with the quota rule row locked FOR UPDATE, which
   serializes concurrent submissions of the same media type
7. Duplicate (event, profile) rejected; the unique constraint is the backstop
8. Multi-day events enroll the registration in its jornadas

After commit the reusable answers are saved to the profile's tenant data;
a failure there is logged and never fails the registration.
"""

import hashlib
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from flask import current_app
from sqlalchemy import func, or_, case
from sqlalchemy.exc import IntegrityError

from accredia.extensions import db
from accredia.models import Registration, RegistrationDay, Event, Profile, Tenant, parse_uuid
from accredia.services.errors import ConflictError, ForbiddenError, NotFoundError, ValidationFailed
from accredia.services.profile_service import ProfileService, _clean_profile_data
from accredia.services.quota_service import QuotaService
from accredia.services.zone_service import ZoneService
from accredia.utils.dates import is_deadline_past
from accredia.utils.validation import validate_rut, validate_email, validate_phone, sanitize

logger = logging.getLogger(__name__)

# Form keys stored in columns; everything else goes to datos_extra in bulk rows
BASE_FORM_KEYS = ('rut', 'nombre', 'apellido', 'email', 'telefono', 'cargo', 'organizacion', 'tipo_medio',
                  'nacionalidad', 'foto_url')


def generate_qr_token(registration_id) -> str:
    seed = f"{registration_id}{int(time.time() * 1000)}{uuid.uuid4()}"
    return hashlib.sha256(seed.encode('utf-8')).hexdigest()


class RegistrationService:

    # ─── Creation ────────────────────────────────────────────────────────

    @staticmethod
    def _check_invitation(event: Event, invite_token: Optional[str]) -> Optional[str]:
        """Return the invitation token to accept, or raise when the event is invite-only."""
        if not event.is_invite_only:
            return None
        if invite_token and event.invite_token and invite_token == event.invite_token:
            return None

        from accredia.services.invitation_service import InvitationService
        check = InvitationService.validate_token(invite_token)
        if not check.valid or check.invitation.event_id != event.id:
            raise ForbiddenError(check.reason or 'Este evento requiere invitación')
        return invite_token

    @staticmethod
    def create_registration(event_id, form: Dict[str, Any], submitted_by=None, user_id=None) -> Dict[str, Any]:
        """
        Create an accreditation request.

        Args:
            event_id: Target event
            form: rut, nombre, apellido and optional email, telefono, cargo,
                  organizacion, tipo_medio, datos_extra, event_day_ids, invite_token
            submitted_by: Profile id of the manager submitting on behalf of the person
            user_id: Authenticated account (links the profile when unlinked)

        Returns:
            {'registration': Registration, 'profile_id': str}

        Raises:
            NotFoundError: Unknown event
            ForbiddenError: Inactive event, deadline passed or missing invitation
            ValidationFailed: Invalid RUT / email / phone
            ConflictError: Plan limit, quota reached or duplicate registration
        """
        eid = parse_uuid(event_id)
        event = db.session.get(Event, eid) if eid else None
        if not event:
            raise NotFoundError('Evento no encontrado')
        if not event.is_active:
            raise ForbiddenError('Este evento ya no está activo')
        if is_deadline_past(event.fecha_limite_acreditacion):
            raise ForbiddenError('El plazo para solicitar acreditación ha cerrado')

        rut_check = validate_rut(form.get('rut'))
        if not rut_check.valid:
            raise ValidationFailed(rut_check.error)
        nombre = sanitize(form.get('nombre'))
        apellido = sanitize(form.get('apellido'))
        if not nombre or not apellido:
            raise ValidationFailed('RUT, nombre y apellido son requeridos')
        if form.get('email'):
            email_check = validate_email(form['email'])
            if not email_check.valid:
                raise ValidationFailed(email_check.error)
        phone_check = validate_phone(form.get('telefono'))
        if not phone_check.valid:
            raise ValidationFailed(phone_check.error)

        invitation_token = RegistrationService._check_invitation(event, form.get('invite_token'))

        from accredia.services.billing_service import BillingService
        limit = BillingService.check_limit(event.tenant_id, 'registrations', event_id=event.id)
        if not limit['allowed']:
            raise ConflictError(limit['message'], details=limit)

        organizacion = sanitize(form.get('organizacion')) or None
        tipo_medio = sanitize(form.get('tipo_medio')) or None
        cargo = sanitize(form.get('cargo')) or None

        profile = ProfileService.get_or_create_profile(
            {**form, 'rut': rut_check.formatted, 'nombre': nombre, 'apellido': apellido,
             'organizacion': organizacion, 'tipo_medio': tipo_medio, 'cargo': cargo},
            user_id=user_id, commit=False,
        )

        datos_extra = dict(form.get('datos_extra') or {})
        if not datos_extra.get('zona'):
            try:
                zona = ZoneService.resolve_zone(event.id, cargo, tipo_medio)
                if zona:
                    datos_extra['zona'] = zona
            except Exception as e:
                logger.warning(f"Zone resolution failed for event {event.id}: {e}")

        quota = QuotaService.check_quota(event.id, tipo_medio, organizacion, lock=True)
        if not quota.available:
            db.session.rollback()
            raise ConflictError(quota.message, details=quota.to_dict())

        if Registration.query.filter_by(event_id=event.id, profile_id=profile.id).first():
            db.session.rollback()
            raise ConflictError('Esta persona ya está registrada en este evento')

        registration = Registration(
            event_id=event.id,
            profile_id=profile.id,
            organizacion=organizacion,
            tipo_medio=tipo_medio,
            cargo=cargo,
            datos_extra=datos_extra,
            status=Registration.STATUS_PENDIENTE,
            submitted_by=parse_uuid(submitted_by),
            created_by=parse_uuid(user_id),
        )
        db.session.add(registration)
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError('Esta persona ya está registrada en este evento')

        if event.is_multidia:
            from accredia.services.event_day_service import EventDayService
            EventDayService.enroll(registration.id, event.id, form.get('event_day_ids'))

        if invitation_token:
            from accredia.services.invitation_service import InvitationService
            InvitationService.accept(invitation_token, commit=False)

        db.session.commit()
        logger.info(f"Registration created: {registration.id} event={event.id} profile={profile.id}")

        if form.get('datos_extra'):
            RegistrationService._remember_answers(profile.id, event, form['datos_extra'])

        return {'registration': registration, 'profile_id': str(profile.id)}

    @staticmethod
    def _remember_answers(profile_id, event: Event, datos_extra: Dict[str, Any]) -> None:
        try:
            form_keys = [f.get('key') for f in (event.form_fields or []) if f.get('key')]
            ProfileService.save_tenant_profile_data(profile_id, event.tenant_id,
                                                    _clean_profile_data(datos_extra), form_keys)
        except Exception as e:
            db.session.rollback()
            logger.warning(f"Could not save profile data for {profile_id}: {e}")

    @staticmethod
    def create_bulk(event_id, rows: List[Dict[str, Any]], submitted_by=None, user_id=None) -> Dict[str, Any]:
        """
        Register many people; one failing row never blocks the rest.

        Keys outside the base form fields are moved into datos_extra.

        Returns:
            {'total', 'success', 'errors', 'results': [{row, rut, nombre, ok, error?}]}
        """
        max_rows = current_app.config.get('BULK_MAX_ROWS', 2000)
        if len(rows or []) > max_rows:
            raise ValidationFailed(f'Máximo {max_rows} registros por lote')

        results = []
        success = 0
        for index, row in enumerate(rows or [], start=1):
            rut, nombre, apellido = row.get('rut'), row.get('nombre'), row.get('apellido')
            result = {'row': index, 'rut': rut, 'nombre': nombre, 'ok': False}

            if not rut or not nombre or not apellido:
                result['error'] = 'Faltan campos requeridos (rut, nombre, apellido)'
                results.append(result)
                continue

            form = {key: row.get(key) for key in BASE_FORM_KEYS if row.get(key)}
            if not form.get('organizacion') and row.get('empresa'):
                form['organizacion'] = row['empresa']
            extra = dict(row.get('datos_extra') or {})
            extra.update({key: value for key, value in row.items()
                          if key not in BASE_FORM_KEYS and key != 'datos_extra' and value not in (None, '')})
            form['datos_extra'] = extra

            try:
                RegistrationService.create_registration(event_id, form, submitted_by, user_id)
                result['ok'] = True
                success += 1
            except (ConflictError, ValidationFailed, ForbiddenError, NotFoundError) as e:
                db.session.rollback()
                result['error'] = e.message
            results.append(result)

        logger.info(f"Bulk registration: event={event_id} total={len(results)} ok={success}")
        return {'total': len(results), 'success': success, 'errors': len(results) - success, 'results': results}

    # ─── Queries ─────────────────────────────────────────────────────────

    @staticmethod
    def _full_query():
        return (db.session.query(Registration, Profile, Event, Tenant)
                .join(Profile, Registration.profile_id == Profile.id)
                .join(Event, Registration.event_id == Event.id)
                .join(Tenant, Event.tenant_id == Tenant.id))

    @staticmethod
    def _full_dict(registration: Registration, profile: Profile, event: Event, tenant: Tenant) -> Dict[str, Any]:
        data = registration.to_dict()
        data.update({
            'profile_nombre': profile.nombre,
            'profile_apellido': profile.apellido,
            'rut': profile.display_id or None,
            'profile_email': profile.email,
            'profile_telefono': profile.telefono,
            'profile_foto_url': profile.foto_url,
            'profile_datos_base': profile.datos_base or {},
            'event_nombre': event.nombre,
            'event_fecha': event.fecha.isoformat() if event.fecha else None,
            'event_venue': event.venue,
            'event_qr_enabled': event.qr_enabled,
            'tenant_id': str(tenant.id),
            'tenant_nombre': tenant.nombre,
            'tenant_slug': tenant.slug,
        })
        return data

    @staticmethod
    def list_registrations(filters: Dict[str, Any]) -> Tuple[List[Dict[str, Any]], int]:
        """
        Filtered registrations for the admin dashboard, newest first.

        Filters: event_id, tenant_id, status, tipo_medio, organizacion
        (substring), search (nombre, apellido, rut, organizacion), limit, offset.
        """
        query = RegistrationService._full_query()

        if filters.get('event_id'):
            query = query.filter(Registration.event_id == parse_uuid(filters['event_id']))
        if filters.get('tenant_id'):
            query = query.filter(Event.tenant_id == parse_uuid(filters['tenant_id']))
        if filters.get('status'):
            query = query.filter(Registration.status == filters['status'])
        if filters.get('tipo_medio'):
            query = query.filter(Registration.tipo_medio == filters['tipo_medio'])
        if filters.get('organizacion'):
            query = query.filter(Registration.organizacion.ilike(f"%{filters['organizacion']}%"))
        if filters.get('search'):
            pattern = f"%{filters['search']}%"
            query = query.filter(or_(
                Profile.nombre.ilike(pattern),
                Profile.apellido.ilike(pattern),
                Profile.rut.ilike(pattern),
                Registration.organizacion.ilike(pattern),
            ))

        total = query.count()
        limit = filters.get('limit') or current_app.config.get('DEFAULT_PAGE_SIZE', 50)
        offset = filters.get('offset') or 0
        rows = query.order_by(Registration.created_at.desc()).offset(offset).limit(limit).all()
        return [RegistrationService._full_dict(*row) for row in rows], total

    @staticmethod
    def get_full(registration_id) -> Optional[Dict[str, Any]]:
        rid = parse_uuid(registration_id)
        if rid is None:
            return None
        row = RegistrationService._full_query().filter(Registration.id == rid).first()
        return RegistrationService._full_dict(*row) if row else None

    @staticmethod
    def get_by_id(registration_id) -> Registration:
        rid = parse_uuid(registration_id)
        registration = db.session.get(Registration, rid) if rid else None
        if not registration:
            raise NotFoundError('Registro no encontrado')
        return registration

    @staticmethod
    def get_tenant_id(registration_id) -> Optional[str]:
        rid = parse_uuid(registration_id)
        if rid is None:
            return None
        tenant_id = (db.session.query(Event.tenant_id)
                     .join(Registration, Registration.event_id == Event.id)
                     .filter(Registration.id == rid).scalar())
        return str(tenant_id) if tenant_id else None

    @staticmethod
    def get_by_profile(profile_id) -> List[Dict[str, Any]]:
        rows = (RegistrationService._full_query()
                .filter(Registration.profile_id == parse_uuid(profile_id))
                .order_by(Registration.created_at.desc()).all())
        return [RegistrationService._full_dict(*row) for row in rows]

    @staticmethod
    def get_stats(event_id) -> Dict[str, int]:
        counts = db.session.query(
            func.count(Registration.id),
            func.sum(case((Registration.status == Registration.STATUS_PENDIENTE, 1), else_=0)),
            func.sum(case((Registration.status == Registration.STATUS_APROBADO, 1), else_=0)),
            func.sum(case((Registration.status == Registration.STATUS_RECHAZADO, 1), else_=0)),
            func.sum(case((Registration.status == Registration.STATUS_REVISION, 1), else_=0)),
            func.sum(case((Registration.checked_in.is_(True), 1), else_=0)),
        ).filter(Registration.event_id == parse_uuid(event_id)).one()

        keys = ('total', 'pendientes', 'aprobados', 'rechazados', 'revision', 'checked_in')
        return {key: int(value or 0) for key, value in zip(keys, counts)}

    # ─── Processing ──────────────────────────────────────────────────────

    @staticmethod
    def _issue_qr(registration: Registration) -> None:
        registration.qr_token = generate_qr_token(registration.id)
        registration.qr_generated_at = datetime.now(timezone.utc)

    @staticmethod
    def update_status(registration_id, status: str, user_id, motivo: Optional[str] = None) -> Registration:
        """
        Approve, reject or flag a registration.

        Approving a registration of a QR-enabled event issues its QR token.
        """
        if status not in Registration.VALID_STATUSES:
            raise ValidationFailed('Estado inválido')

        registration = RegistrationService.get_by_id(registration_id)
        registration.status = status
        registration.processed_by = parse_uuid(user_id)
        registration.processed_at = datetime.now(timezone.utc)
        if status == Registration.STATUS_RECHAZADO and motivo:
            registration.motivo_rechazo = motivo
        if status == Registration.STATUS_APROBADO and registration.event.qr_enabled:
            RegistrationService._issue_qr(registration)

        db.session.commit()
        logger.info(f"Registration {registration.id} -> {status} by {user_id}")
        return registration

    @staticmethod
    def bulk_update_status(registration_ids: List, status: str, user_id) -> Dict[str, Any]:
        if status not in Registration.VALID_STATUSES:
            raise ValidationFailed('Estado inválido')

        ids = [rid for rid in (parse_uuid(i) for i in registration_ids) if rid]
        registrations = Registration.query.filter(Registration.id.in_(ids)).all() if ids else []
        now = datetime.now(timezone.utc)
        for registration in registrations:
            registration.status = status
            registration.processed_by = parse_uuid(user_id)
            registration.processed_at = now
            if status == Registration.STATUS_APROBADO and registration.event.qr_enabled:
                RegistrationService._issue_qr(registration)

        db.session.commit()
        logger.info(f"Bulk status {status}: {len(registrations)} registrations by {user_id}")
        return {'success': len(registrations), 'errors': []}

    @staticmethod
    def bulk_delete(registration_ids: List) -> Dict[str, Any]:
        ids = [rid for rid in (parse_uuid(i) for i in registration_ids) if rid]
        if not ids:
            return {'success': 0, 'errors': []}
        RegistrationDay.query.filter(RegistrationDay.registration_id.in_(ids)).delete(synchronize_session=False)
        count = Registration.query.filter(Registration.id.in_(ids)).delete(synchronize_session=False)
        db.session.commit()
        return {'success': count, 'errors': []}

    @staticmethod
    def delete_registration(registration_id) -> None:
        registration = RegistrationService.get_by_id(registration_id)
        db.session.delete(registration)
        db.session.commit()
        logger.info(f"Registration deleted: {registration_id}")
