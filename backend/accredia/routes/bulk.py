"""
Bulk Blueprint - mass operations over registrations.

Endpoints:
- POST /api/bulk - Approve / reject / delete many registrations (tenant admin)
- POST /api/bulk/parse - Parse an uploaded CSV into registration rows
- GET /api/bulk/template?event_id= - CSV template for mass accreditation
- POST /api/bulk/accreditation - Submit many people to an event (e.g. a manager's team)
"""

import logging
import time
from flask import Blueprint, request, g, Response
from marshmallow import ValidationError

from accredia.models import Registration
from accredia.schemas.registration_schema import bulk_action_schema, bulk_create_schema
from accredia.services.access_service import AccessService
from accredia.services.audit_service import AuditService
from accredia.services.bulk_service import parse_csv_text, decode_upload, build_template_csv
from accredia.services.email_service import EmailService
from accredia.services.errors import ServiceError
from accredia.services.event_service import EventService
from accredia.services.registration_service import RegistrationService
from accredia.routes.registrations import resolve_submitter
from accredia.utils.dates import is_deadline_past
from accredia.utils.decorators import jwt_required_custom
from accredia.utils.responses import ok, bad_request, forbidden, internal_error, service_error_response

logger = logging.getLogger(__name__)

bulk_bp = Blueprint('bulk', __name__, url_prefix='/api/bulk')

BULK_ACTION_DELETE = 'delete'
BULK_STATUSES = (Registration.STATUS_APROBADO, Registration.STATUS_RECHAZADO)


def _check_registrations_access(registration_ids):
    """Every registration must belong to a tenant the caller administers."""
    tenant_ids = {RegistrationService.get_tenant_id(rid) for rid in registration_ids}
    tenant_ids.discard(None)
    for tenant_id in tenant_ids:
        if not AccessService.has_access_to_tenant(g.user_id, tenant_id):
            return forbidden('Acceso denegado: no es admin de este tenant')
    return None


@bulk_bp.route('', methods=['POST'])
@jwt_required_custom
def bulk_action():
    """
    Bulk status change or deletion.

    **Request Body**:
        {"registration_ids": ["uuid", ...], "status": "aprobado" | "rechazado", "send_emails": true}
        {"registration_ids": ["uuid", ...], "action": "delete"}

    With status aprobado and send_emails, approval emails are sent inline and
    the response includes "emails": {"sent", "errors"}.
    """
    try:
        data = bulk_action_schema.load(request.get_json() or {})
        ids = data['registration_ids']
        if not ids:
            return bad_request('registration_ids es requerido')

        error = _check_registrations_access(ids)
        if error:
            return error

        if data.get('action') == BULK_ACTION_DELETE:
            result = RegistrationService.bulk_delete(ids)
            AuditService.log_action(g.user_id, 'registration.bulk_deleted', 'registration', None,
                                    {'count': result['success'], 'ids': ids})
            return ok(result, 'Registros eliminados')

        status = data.get('status')
        if status not in BULK_STATUSES:
            return bad_request('status debe ser aprobado o rechazado')

        result = RegistrationService.bulk_update_status(ids, status, g.user_id)
        AuditService.log_action(g.user_id, 'registration.bulk_approved', 'registration', None,
                                {'status': status, 'count': result['success']})

        if data['send_emails'] and status == Registration.STATUS_APROBADO:
            result['emails'] = EmailService.send_bulk_approval_emails(ids)

        return ok(result, 'Estados actualizados')

    except ValidationError as err:
        if 'registration_ids' in err.messages:
            return bad_request('registration_ids es requerido', err.messages)
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Bulk action error: {str(e)}", exc_info=True)
        return internal_error()


@bulk_bp.route('/parse', methods=['POST'])
@jwt_required_custom
def parse_file():
    """
    Parse an uploaded CSV (multipart field "file").

    **Response**: {"rows": [{rut, nombre, apellido, ...}], "total": n}
    """
    try:
        upload = request.files.get('file')
        if not upload:
            return bad_request('Archivo requerido')

        rows = parse_csv_text(decode_upload(upload.read()))
        if not rows:
            return bad_request('No se encontraron datos válidos')
        return ok({'rows': rows, 'total': len(rows)})

    except Exception as e:
        logger.error(f"Bulk parse error: {str(e)}", exc_info=True)
        return internal_error()


@bulk_bp.route('/template', methods=['GET'])
@jwt_required_custom
def download_template():
    """CSV template with the base columns plus the event's form field labels."""
    try:
        form_fields = []
        event_id = request.args.get('event_id')
        if event_id:
            form_fields = EventService.get_by_id(event_id).form_fields or []

        return Response(
            build_template_csv(form_fields),
            mimetype='text/csv; charset=utf-8',
            headers={'Content-Disposition': 'attachment; filename="plantilla-acreditacion.csv"'},
        )

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Template error: {str(e)}", exc_info=True)
        return internal_error()


@bulk_bp.route('/accreditation', methods=['POST'])
@jwt_required_custom
def bulk_accreditation():
    """
    Submit many people to an event in one request.

    **Request Body**:
        {"event_id": "uuid", "rows": [{"rut", "nombre", "apellido", "email", "cargo", ...}]}

    Each row goes through the same checks as a single submission; the
    logged-in person is recorded as submitter.
    """
    try:
        data = bulk_create_schema.load(request.get_json() or {})
        if not data['rows']:
            return bad_request('Se requiere un array de registros')

        event = EventService.get_by_id(data['event_id'])
        if is_deadline_past(event.fecha_limite_acreditacion):
            return forbidden('El plazo para solicitar acreditación ha cerrado')

        submitted_by, _ = resolve_submitter(None)
        started = time.monotonic()
        result = RegistrationService.create_bulk(event.id, data['rows'], submitted_by=submitted_by)

        AuditService.log_action(g.user_id, 'registration.created', 'event', event.id, {
            'bulk': True,
            'total': result['total'],
            'success': result['success'],
            'submitted_by_profile': submitted_by,
        })
        logger.info(f"Bulk accreditation event={event.id} rows={result['total']} "
                    f"in {time.monotonic() - started:.2f}s")
        return ok(result, 'Carga masiva procesada')

    except ValidationError as err:
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Bulk accreditation error: {str(e)}", exc_info=True)
        return internal_error()
