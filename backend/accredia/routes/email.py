"""
Email Blueprint - tenant email customization.

Endpoints (tenant admin):
- GET /api/email/templates?tenant_id= - Approval / rejection template overrides
- PUT /api/email/templates - Save a template override
- GET /api/email/zone-content?tenant_id=&tipo= - Per-zone email blocks
- PUT /api/email/zone-content - Save a zone block
- DELETE /api/email/zone-content/<content_id>?tenant_id=
- POST /api/email/preview - Render a draft with sample data
"""

import logging
from flask import Blueprint, request, g
from marshmallow import ValidationError

from accredia.schemas.email_schema import email_template_schema, email_zone_content_schema, email_preview_schema
from accredia.services.email_service import EmailService
from accredia.services.errors import ServiceError
from accredia.utils.decorators import jwt_required_custom, tenant_admin_required
from accredia.utils.responses import ok, bad_request, internal_error, service_error_response

logger = logging.getLogger(__name__)

email_bp = Blueprint('email', __name__, url_prefix='/api/email')


@email_bp.route('/templates', methods=['GET'])
@jwt_required_custom
@tenant_admin_required('tenant_id')
def list_templates():
    try:
        templates = EmailService.get_templates(g.tenant_id)
        return ok([template.to_dict() for template in templates])

    except Exception as e:
        logger.error(f"Error listing email templates: {str(e)}", exc_info=True)
        return internal_error()


@email_bp.route('/templates', methods=['PUT'])
@jwt_required_custom
@tenant_admin_required('tenant_id')
def save_template():
    """
    Save the tenant's override for an email type.

    **Request Body**:
        {"tenant_id": "uuid", "tipo": "aprobacion", "subject": "...", "body_html": "<p>...</p>",
         "info_general": "<p>...</p>"}

    Placeholders like {nombre}, {evento}, {zona} and {qr_url} are filled at send time.
    HTML is sanitized before it is stored.
    """
    try:
        data = email_template_schema.load(request.get_json() or {})
        template = EmailService.upsert_template(data['tenant_id'], data['tipo'], data['subject'],
                                                data['body_html'], data['info_general'])
        return ok(template.to_dict(), 'Plantilla guardada')

    except ValidationError as err:
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error saving email template: {str(e)}", exc_info=True)
        return internal_error()


@email_bp.route('/zone-content', methods=['GET'])
@jwt_required_custom
@tenant_admin_required('tenant_id')
def list_zone_content():
    try:
        contents = EmailService.get_zone_contents(g.tenant_id, request.args.get('tipo'))
        return ok([content.to_dict() for content in contents])

    except Exception as e:
        logger.error(f"Error listing zone content: {str(e)}", exc_info=True)
        return internal_error()


@email_bp.route('/zone-content', methods=['PUT'])
@jwt_required_custom
@tenant_admin_required('tenant_id')
def save_zone_content():
    try:
        data = email_zone_content_schema.load(request.get_json() or {})
        content = EmailService.upsert_zone_content(data['tenant_id'], data)
        return ok(content.to_dict(), 'Contenido de zona guardado')

    except ValidationError as err:
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error saving zone content: {str(e)}", exc_info=True)
        return internal_error()


@email_bp.route('/zone-content/<content_id>', methods=['DELETE'])
@jwt_required_custom
@tenant_admin_required('tenant_id')
def delete_zone_content(content_id):
    try:
        EmailService.delete_zone_content(g.tenant_id, content_id)
        return ok(None, 'Contenido de zona eliminado')

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error deleting zone content: {str(e)}", exc_info=True)
        return internal_error()


@email_bp.route('/preview', methods=['POST'])
@jwt_required_custom
@tenant_admin_required('tenant_id')
def preview_email():
    try:
        data = email_preview_schema.load(request.get_json() or {})
        return ok(EmailService.preview(data['tenant_id'], data['tipo'], data['subject'], data['body_html']))

    except ValidationError as err:
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error rendering email preview: {str(e)}", exc_info=True)
        return internal_error()
