"""
QR Blueprint - gate check-in.

- POST /api/qr/validate - Scan a QR (tenant admin of the event)
- GET /api/qr/<token> - Public credential card (no email or phone)
"""

import logging
from flask import Blueprint, request, g

from accredia.services.checkin_service import CheckinService
from accredia.services.errors import ServiceError
from accredia.utils.decorators import jwt_required_custom, rate_limit
from accredia.utils.responses import ok, not_found, internal_error, service_error_response

logger = logging.getLogger(__name__)

qr_bp = Blueprint('qr', __name__, url_prefix='/api/qr')


@qr_bp.route('/validate', methods=['POST'])
@jwt_required_custom
@rate_limit('RATE_LIMIT_QR', scope='user')
def validate_qr():
    """
    Validate a scanned QR and register the entry.

    **Request Body**:
        {"qr_token": "...", "event_day_id": "uuid"}     (event_day_id for multi-day events)

    **Response** (200 for every scan outcome):
        {"valid": true, "status": "checked_in", "message": "Ingreso registrado", "nombre": ..., "zona": ...}
        {"valid": false, "status": "already_checked_in" | "not_found" | "pendiente" | ..., "message": ...}

    **Errors**: 400 missing qr_token, 403 scanner is not admin of the event's tenant
    """
    try:
        data = request.get_json(silent=True) or {}
        result = CheckinService.validate_and_check_in(data.get('qr_token'), g.user_id, data.get('event_day_id'))
        return ok(result, result['message'])

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"QR validation error: {str(e)}", exc_info=True)
        return internal_error()


@qr_bp.route('/<token>', methods=['GET'])
def public_qr_info(token):
    try:
        info = CheckinService.get_public_qr_info(token)
        if info is None:
            return not_found('Credencial no encontrada')
        return ok(info)

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"QR info error: {str(e)}", exc_info=True)
        return internal_error()
