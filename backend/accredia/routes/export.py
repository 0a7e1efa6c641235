"""
Export Blueprint - registrations as CSV.

- GET /api/export?event_id|tenant_id&status&format=full|puntoticket&columns=a,b,c
"""

import logging
import time
from flask import Blueprint, Response, request, current_app, g

from accredia.schemas.registration_schema import STATUS_CHOICES
from accredia.services.audit_service import AuditService
from accredia.services.errors import ServiceError
from accredia.services.event_service import EventService
from accredia.services.export_service import (ExportService, FORMAT_FULL, FORMAT_PUNTOTICKET, filter_columns,
                                              export_filename)
from accredia.services.registration_service import RegistrationService
from accredia.utils.decorators import jwt_required_custom, check_tenant_admin
from accredia.utils.responses import bad_request, internal_error, service_error_response

logger = logging.getLogger(__name__)

export_bp = Blueprint('export', __name__, url_prefix='/api/export')


@export_bp.route('', methods=['GET'])
@jwt_required_custom
def export_registrations():
    """
    Download registrations as a UTF-8 CSV with BOM (Excel friendly).

    **Query Parameters**:
        - event_id or tenant_id (one is required)
        - status: pendiente | aprobado | rechazado | revision
        - format: full (default) or puntoticket (ticketing import layout)
        - columns: comma separated column keys for the full layout

    **Response**: text/csv attachment
    """
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

        export_format = request.args.get('format') or FORMAT_FULL
        if export_format not in (FORMAT_FULL, FORMAT_PUNTOTICKET):
            return bad_request('Formato inválido')

        rows, _ = RegistrationService.list_registrations({
            'event_id': event_id,
            'tenant_id': None if event_id else tenant_id,
            'status': status,
            'limit': current_app.config.get('EXPORT_MAX_ROWS', 10000),
        })
        body = ExportService.to_csv(rows, export_format, filter_columns(request.args.get('columns')))
        filename = export_filename(rows, export_format, int(time.time() * 1000))

        AuditService.log_action(g.user_id, 'registration.exported', 'event' if event_id else 'tenant',
                                event_id or tenant_id, {'format': export_format, 'rows': len(rows)})

        return Response(body, mimetype='text/csv', headers={
            'Content-Type': 'text/csv; charset=utf-8',
            'Content-Disposition': f'attachment; filename="{filename}"',
        })

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error exporting registrations: {str(e)}", exc_info=True)
        return internal_error()
