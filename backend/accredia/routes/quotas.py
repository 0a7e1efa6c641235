"""
Quotas Blueprint - public quota availability used by the registration form.

- GET /api/quotas/check?event_id=&tipo_medio=&organizacion=
"""

import logging
from flask import Blueprint, request

from accredia.services.quota_service import QuotaService
from accredia.utils.responses import ok, bad_request, internal_error

logger = logging.getLogger(__name__)

quotas_bp = Blueprint('quotas', __name__, url_prefix='/api/quotas')


@quotas_bp.route('/check', methods=['GET'])
def check_quota():
    """
    **Response**:
        {"available": true, "used_org": 1, "max_org": 2, "used_global": 5,
         "max_global": 20, "message": "Cupo disponible: 1/2 por organización"}
    """
    try:
        event_id = request.args.get('event_id')
        tipo_medio = request.args.get('tipo_medio')
        if not event_id or not tipo_medio:
            return bad_request('event_id y tipo_medio son requeridos')

        check = QuotaService.check_quota(event_id, tipo_medio, request.args.get('organizacion') or '')
        return ok(check.to_dict())

    except Exception as e:
        logger.error(f"Quota check error: {str(e)}", exc_info=True)
        return internal_error()
