"""
Superadmin Blueprint - platform operations.

Endpoints (superadmin only):
- GET /api/superadmin/stats - Platform counters
- GET /api/superadmin/admins - Superadmin accounts
- POST /api/superadmin/admins - Grant superadmin (creates the account if needed)
- DELETE /api/superadmin/admins/<superadmin_id>
- GET /api/superadmin/audit-logs?entity_type&entity_id&action&user_id&limit
"""

import logging
from flask import Blueprint, request, g

from accredia.services.audit_service import AuditService
from accredia.services.errors import ServiceError
from accredia.services.superadmin_service import SuperadminService
from accredia.utils.decorators import jwt_required_custom, superadmin_required, validate_json
from accredia.utils.responses import ok, created, internal_error, service_error_response

logger = logging.getLogger(__name__)

superadmin_bp = Blueprint('superadmin', __name__, url_prefix='/api/superadmin')


@superadmin_bp.route('/stats', methods=['GET'])
@jwt_required_custom
@superadmin_required
def platform_stats():
    try:
        return ok(SuperadminService.get_platform_stats())
    except Exception as e:
        logger.error(f"Error computing platform stats: {str(e)}", exc_info=True)
        return internal_error()


@superadmin_bp.route('/admins', methods=['GET'])
@jwt_required_custom
@superadmin_required
def list_superadmins():
    try:
        return ok([admin.to_dict() for admin in SuperadminService.list_superadmins()])
    except Exception as e:
        logger.error(f"Error listing superadmins: {str(e)}", exc_info=True)
        return internal_error()


@superadmin_bp.route('/admins', methods=['POST'])
@jwt_required_custom
@superadmin_required
@validate_json(['email'])
def add_superadmin():
    """
    **Request Body**: {"email": "ops@accredia.cl", "nombre": "Operaciones"}

    **Response**: 201 {"superadmin": {...}, "temp_password": "..." | null}
        temp_password is only present when a new account was created.
    """
    try:
        data = request.get_json()
        result = SuperadminService.add_superadmin(data['email'], data.get('nombre'))
        superadmin = result['superadmin']
        AuditService.log_action(g.user_id, 'superadmin.added', 'user', superadmin.user_id,
                                {'email': superadmin.email})
        return created({'superadmin': superadmin.to_dict(), 'temp_password': result['temp_password']},
                       'Superadmin agregado')

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error adding superadmin: {str(e)}", exc_info=True)
        return internal_error()


@superadmin_bp.route('/admins/<superadmin_id>', methods=['DELETE'])
@jwt_required_custom
@superadmin_required
def remove_superadmin(superadmin_id):
    try:
        SuperadminService.remove_superadmin(superadmin_id, g.user_id)
        AuditService.log_action(g.user_id, 'superadmin.removed', 'superadmin', superadmin_id)
        return ok(None, 'Superadmin eliminado')

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error removing superadmin: {str(e)}", exc_info=True)
        return internal_error()


@superadmin_bp.route('/audit-logs', methods=['GET'])
@jwt_required_custom
@superadmin_required
def audit_logs():
    try:
        limit = min(request.args.get('limit', type=int) or 100, 500)
        logs = AuditService.get_audit_logs(
            entity_type=request.args.get('entity_type'),
            entity_id=request.args.get('entity_id'),
            action=request.args.get('action'),
            user_id=request.args.get('user_id'),
            limit=limit,
        )
        return ok([log.to_dict() for log in logs])

    except Exception as e:
        logger.error(f"Error listing audit logs: {str(e)}", exc_info=True)
        return internal_error()
