"""
Registrations Blueprint - accreditation requests.

Endpoints:
- POST /api/registrations - Public form submission (optional JWT)
- GET /api/registrations?event_id|tenant_id&status&tipo_medio&organizacion&search&limit&offset - Admin list
- GET /api/registrations/stats?event_id= - Status counters
- POST /api/registrations/bulk-create - Admin mass load for an event
- GET /api/registrations/<id> - Detail (tenant admin or the registered person)
- PATCH /api/registrations/<id> - Approve / reject / flag
- DELETE /api/registrations/<id>
"""

import logging
from typing import Optional, Tuple
from flask import Blueprint, request, g
from marshmallow import ValidationError

from accredia.models import Registration
from accredia.schemas.registration_schema import (
    registration_create_schema,
    registration_status_schema,
    bulk_create_schema,
    STATUS_CHOICES,
)
from accredia.services.audit_service import AuditService
from accredia.services.errors import ServiceError
from accredia.services.event_service import EventService
from accredia.services.profile_service import ProfileService
from accredia.services.registration_service import RegistrationService, BASE_FORM_KEYS
from accredia.utils.decorators import jwt_optional, jwt_required_custom, check_tenant_admin, rate_limit
from accredia.utils.responses import (ok, created, bad_request, not_found, internal_error, paginated,
                                      service_error_response)
from accredia.utils.validation import validate_rut

logger = logging.getLogger(__name__)

registrations_bp = Blueprint('registrations', __name__, url_prefix='/api/registrations')

# Schema fields that are not form answers
CONTROL_KEYS = ('event_id', 'datos_extra', 'event_day_ids', 'invite_token', 'submitted_by')

STATUS_AUDIT_ACTIONS = {
    Registration.STATUS_APROBADO: 'registration.approved',
    Registration.STATUS_RECHAZADO: 'registration.rejected',
}


def resolve_submitter(rut: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """
    Who is submitting a registration for `rut`.

    Returns:
        (submitted_by profile id, user_id to link). A logged-in person
        registering themselves links the profile to their account; a manager
        registering someone else is recorded as submitted_by instead.
    """
    user_id = getattr(g, 'user_id', None)
    if not user_id:
        return None, None

    own = ProfileService.get_profile_by_user_id(user_id)
    if own is None:
        return None, user_id

    check = validate_rut(rut, check_digit=False) if rut else None
    if own.rut and check is not None and check.valid and check.formatted == own.rut:
        return None, user_id
    return str(own.id), None


def _split_form(data: dict) -> dict:
    """Move unknown top-level keys of the public form into datos_extra."""
    form = {key: data.get(key) for key in BASE_FORM_KEYS if data.get(key) not in (None, '')}
    extra = dict(data.get('datos_extra') or {})
    for key, value in data.items():
        if key in BASE_FORM_KEYS or key in CONTROL_KEYS or value in (None, ''):
            continue
        extra.setdefault(key, value)
    form['datos_extra'] = extra
    form['event_day_ids'] = data.get('event_day_ids')
    form['invite_token'] = data.get('invite_token')
    return form


@registrations_bp.route('', methods=['POST'])
@rate_limit('RATE_LIMIT_REGISTRATION')
@jwt_optional
def create_registration():
    """
    Submit an accreditation request.

    **Request Body**:
        {
            "event_id": "uuid",
            "rut": "12.345.678-5", "nombre": "Ana", "apellido": "Rojas",
            "email": "ana@medio.cl", "telefono": "+56912345678",
            "organizacion": "Radio Ejemplo", "tipo_medio": "Radio", "cargo": "Periodista",
            "datos_extra": {"talla": "M"},
            "invite_token": "..."      (invite-only events)
        }

    **Response**: 201 {"registration": {...}, "profile_id": "uuid"}

    **Errors**:
        400 invalid RUT/email/phone, 403 deadline closed, inactive event or
        missing invitation, 404 unknown event, 409 quota/plan limit or duplicate
    """
    try:
        data = registration_create_schema.load(request.get_json() or {})
        form = _split_form(data)
        submitted_by, user_id = resolve_submitter(form.get('rut'))

        result = RegistrationService.create_registration(data['event_id'], form, submitted_by, user_id)
        registration = result['registration']

        AuditService.log_action(g.user_id, 'registration.created', 'registration', registration.id, {
            'event_id': data['event_id'],
            'rut': form.get('rut'),
            'organizacion': form.get('organizacion'),
            'submitted_by_profile': submitted_by,
        })
        return created({'registration': registration.to_dict(), 'profile_id': result['profile_id']},
                       'Solicitud de acreditación enviada')

    except ValidationError as err:
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error creating registration: {str(e)}", exc_info=True)
        return internal_error()


@registrations_bp.route('', methods=['GET'])
@jwt_required_custom
def list_registrations():
    try:
        event_id = request.args.get('event_id')
        tenant_id = request.args.get('tenant_id')
        if event_id:
            tenant_id = EventService.get_by_id(event_id).tenant_id
        if not tenant_id:
            return bad_request('event_id o tenant_id requerido')

        allowed, error = check_tenant_admin(tenant_id)
        if not allowed:
            return error

        status = request.args.get('status')
        if status and status not in STATUS_CHOICES:
            return bad_request('Estado inválido')

        limit = min(request.args.get('limit', type=int) or 50, 200)
        offset = max(request.args.get('offset', type=int) or 0, 0)
        rows, total = RegistrationService.list_registrations({
            'event_id': event_id,
            'tenant_id': None if event_id else tenant_id,
            'status': status,
            'tipo_medio': request.args.get('tipo_medio'),
            'organizacion': request.args.get('organizacion'),
            'search': request.args.get('search'),
            'limit': limit,
            'offset': offset,
        })
        return paginated(rows, total, limit, offset)

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error listing registrations: {str(e)}", exc_info=True)
        return internal_error()


@registrations_bp.route('/stats', methods=['GET'])
@jwt_required_custom
def registration_stats():
    try:
        event_id = request.args.get('event_id')
        if not event_id:
            return bad_request('event_id es requerido')

        allowed, error = check_tenant_admin(EventService.get_by_id(event_id).tenant_id)
        if not allowed:
            return error
        return ok(RegistrationService.get_stats(event_id))

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error loading registration stats: {str(e)}", exc_info=True)
        return internal_error()


@registrations_bp.route('/bulk-create', methods=['POST'])
@jwt_required_custom
def bulk_create():
    """
    Admin mass load.

    **Request Body**:
        {"event_id": "uuid", "rows": [{"rut": ..., "nombre": ..., "apellido": ..., ...}]}

    **Response**: {"total", "success", "errors", "results": [{row, rut, nombre, ok, error?}]}
    """
    try:
        data = bulk_create_schema.load(request.get_json() or {})
        event = EventService.get_by_id(data['event_id'])
        allowed, error = check_tenant_admin(event.tenant_id)
        if not allowed:
            return error

        result = RegistrationService.create_bulk(event.id, data['rows'])
        AuditService.log_action(g.user_id, 'registration.bulk_created', 'event', event.id,
                                {'total': result['total'], 'success': result['success']})
        return ok(result, 'Carga masiva procesada')

    except ValidationError as err:
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error in bulk create: {str(e)}", exc_info=True)
        return internal_error()


@registrations_bp.route('/<registration_id>', methods=['GET'])
@jwt_required_custom
def get_registration(registration_id):
    try:
        registration = RegistrationService.get_full(registration_id)
        if not registration:
            return not_found('Registro no encontrado')

        own = ProfileService.get_profile_by_user_id(g.user_id)
        if not (own and str(own.id) == registration['profile_id']):
            allowed, error = check_tenant_admin(registration['tenant_id'])
            if not allowed:
                return error
        return ok(registration)

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error loading registration {registration_id}: {str(e)}", exc_info=True)
        return internal_error()


@registrations_bp.route('/<registration_id>', methods=['PATCH'])
@jwt_required_custom
def update_registration_status(registration_id):
    """
    Change the status of a registration.

    **Request Body**:
        {"status": "aprobado" | "rechazado" | "revision" | "pendiente",
         "motivo_rechazo": "...", "send_email": true}

    Approving a QR-enabled event's registration issues its QR. Unless
    send_email is false, the approval / rejection email is queued.
    """
    try:
        tenant_id = RegistrationService.get_tenant_id(registration_id)
        if not tenant_id:
            return not_found('Registro no encontrado')
        allowed, error = check_tenant_admin(tenant_id)
        if not allowed:
            return error

        data = registration_status_schema.load(request.get_json() or {})
        registration = RegistrationService.update_status(registration_id, data['status'], g.user_id,
                                                         data.get('motivo_rechazo'))

        action = STATUS_AUDIT_ACTIONS.get(registration.status, 'registration.status_changed')
        AuditService.log_action(g.user_id, action, 'registration', registration.id,
                                {'status': registration.status, 'motivo': data.get('motivo_rechazo')})

        if data['send_email']:
            from accredia.tasks.email_tasks import send_approval_email, send_rejection_email
            if registration.status == Registration.STATUS_APROBADO:
                send_approval_email.delay(str(registration.id))
            elif registration.status == Registration.STATUS_RECHAZADO:
                send_rejection_email.delay(str(registration.id), data.get('motivo_rechazo'))

        return ok(registration.to_dict(), 'Estado actualizado')

    except ValidationError as err:
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error updating registration {registration_id}: {str(e)}", exc_info=True)
        return internal_error()


@registrations_bp.route('/<registration_id>', methods=['DELETE'])
@jwt_required_custom
def delete_registration(registration_id):
    try:
        tenant_id = RegistrationService.get_tenant_id(registration_id)
        if not tenant_id:
            return not_found('Registro no encontrado')
        allowed, error = check_tenant_admin(tenant_id)
        if not allowed:
            return error

        RegistrationService.delete_registration(registration_id)
        AuditService.log_action(g.user_id, 'registration.deleted', 'registration', registration_id)
        return ok(message='Registro eliminado')

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error deleting registration {registration_id}: {str(e)}", exc_info=True)
        return internal_error()
