"""
Tenants Blueprint - Tenant Management Routes

Endpoints:
- GET /api/tenants - Superadmin: every tenant with stats; ?active=1: public list
- POST /api/tenants - Create tenant (superadmin)
- GET /api/tenants/by-slug/<slug> - Public tenant branding
- GET /api/tenants/<tenant_id> - Tenant details (tenant admin)
- PUT /api/tenants/<tenant_id> - Update branding (tenant admin)
- DELETE /api/tenants/<tenant_id> - Delete tenant and its data (superadmin)
- GET /api/tenants/<tenant_id>/admins - List admins (superadmin)
- POST /api/tenants/<tenant_id>/admins - Create admin (superadmin)
- DELETE /api/tenants/<tenant_id>/admins/<admin_id> - Remove admin (superadmin)
"""

import logging
from flask import Blueprint, request, g
from marshmallow import ValidationError

from accredia.schemas.tenant_schema import (
    tenant_create_schema,
    tenant_update_schema,
    tenant_admin_create_schema,
)
from accredia.services.access_service import AccessService
from accredia.services.audit_service import AuditService
from accredia.services.errors import ServiceError
from accredia.services.tenant_service import TenantService
from accredia.utils.decorators import jwt_optional, jwt_required_custom, superadmin_required, tenant_admin_required
from accredia.utils.responses import (ok, created, bad_request, unauthorized, not_found, forbidden, internal_error,
                                      service_error_response)

logger = logging.getLogger(__name__)

tenants_bp = Blueprint('tenants', __name__, url_prefix='/api/tenants')


@tenants_bp.route('', methods=['GET'])
@jwt_optional
def list_tenants():
    """
    List tenants.

    **Query**:
        active=1: Public list of active tenants (no authentication needed)

    Without active=1 the caller must be a superadmin and receives every
    tenant with total_events, total_registrations and total_admins.
    """
    try:
        if request.args.get('active') in ('1', 'true'):
            tenants = TenantService.list_active()
            return ok([t.to_public_dict() for t in tenants])

        if not g.user_id:
            return unauthorized()
        if not AccessService.is_superadmin(g.user_id):
            return forbidden('Acceso denegado: se requiere superadmin')

        return ok(TenantService.list_with_stats())

    except Exception as e:
        logger.error(f"Error listing tenants: {str(e)}", exc_info=True)
        return internal_error()


@tenants_bp.route('', methods=['POST'])
@jwt_required_custom
@superadmin_required
def create_tenant():
    """
    Create a tenant subscribed to the Free plan.

    **Request Body**:
        {
            "nombre": "Club Deportivo",
            "slug": "club-deportivo",
            "color_primario": "#1a1a2e"
        }

    **Response**: 201 with the tenant, 409 when the slug exists
    """
    try:
        data = tenant_create_schema.load(request.get_json() or {})
        tenant = TenantService.create(data, created_by=g.user_id)
        AuditService.log_action(g.user_id, 'tenant.created', 'tenant', tenant.id, {'slug': tenant.slug})
        return created(tenant.to_dict(), 'Tenant creado')

    except ValidationError as err:
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error creating tenant: {str(e)}", exc_info=True)
        return internal_error()


@tenants_bp.route('/by-slug/<slug>', methods=['GET'])
def get_tenant_by_slug(slug):
    try:
        tenant = TenantService.get_by_slug(slug)
        if not tenant:
            return not_found('Tenant no encontrado')
        return ok(tenant.to_public_dict())
    except Exception as e:
        logger.error(f"Error loading tenant {slug}: {str(e)}", exc_info=True)
        return internal_error()


@tenants_bp.route('/<tenant_id>', methods=['GET'])
@jwt_required_custom
@tenant_admin_required('tenant_id')
def get_tenant(tenant_id):
    try:
        tenant = TenantService.get_by_id(tenant_id)
        data = tenant.to_dict()
        data['role'] = g.user_role
        return ok(data)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error loading tenant {tenant_id}: {str(e)}", exc_info=True)
        return internal_error()


@tenants_bp.route('/<tenant_id>', methods=['PUT'])
@jwt_required_custom
@tenant_admin_required('tenant_id')
def update_tenant(tenant_id):
    """
    Update branding and configuration.

    The slug is immutable; id, created_at and stat counters are ignored.
    Empty URL fields are stored as null; invalid colors keep the current value.
    """
    try:
        data = tenant_update_schema.load(request.get_json() or {})
        tenant = TenantService.update(tenant_id, data)
        AuditService.log_action(g.user_id, 'tenant.updated', 'tenant', tenant.id, {'fields': sorted(data)})
        return ok(tenant.to_dict(), 'Tenant actualizado')

    except ValidationError as err:
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error updating tenant {tenant_id}: {str(e)}", exc_info=True)
        return internal_error()


@tenants_bp.route('/<tenant_id>', methods=['DELETE'])
@jwt_required_custom
@superadmin_required
def delete_tenant(tenant_id):
    """
    Delete a tenant with its events, registrations, rules, templates and
    billing rows. Admin accounts without any other role are deleted too,
    and the tenant's files are removed from storage.
    """
    try:
        result = TenantService.delete(tenant_id)
        AuditService.log_action(g.user_id, 'tenant.deleted', 'tenant', tenant_id, result)
        return ok(result, 'Tenant eliminado')
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error deleting tenant {tenant_id}: {str(e)}", exc_info=True)
        return internal_error()


@tenants_bp.route('/<tenant_id>/admins', methods=['GET'])
@jwt_required_custom
@superadmin_required
def list_admins(tenant_id):
    try:
        return ok([admin.to_dict() for admin in TenantService.list_admins(tenant_id)])
    except Exception as e:
        logger.error(f"Error listing admins of {tenant_id}: {str(e)}", exc_info=True)
        return internal_error()


@tenants_bp.route('/<tenant_id>/admins', methods=['POST'])
@jwt_required_custom
@superadmin_required
def create_admin(tenant_id):
    """
    Grant admin rights to an email.

    **Request Body**:
        {"email": "admin@club.cl", "nombre": "Ana", "rol": "admin" | "editor"}

    New accounts receive a welcome email with a temporary password.
    """
    try:
        data = tenant_admin_create_schema.load(request.get_json() or {})
        result = TenantService.create_tenant_admin(tenant_id, data['email'], data.get('nombre'), data['rol'])
        admin = result['admin']
        AuditService.log_action(g.user_id, 'tenant_admin.created', 'tenant', tenant_id,
                                {'email': admin.email, 'rol': admin.rol})
        return created({'admin': admin.to_dict(), 'user_created': result['user_created']}, 'Admin creado')

    except ValidationError as err:
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error creating admin for {tenant_id}: {str(e)}", exc_info=True)
        return internal_error()


@tenants_bp.route('/<tenant_id>/admins/<admin_id>', methods=['DELETE'])
@jwt_required_custom
@superadmin_required
def remove_admin(tenant_id, admin_id):
    try:
        TenantService.remove_admin(tenant_id, admin_id)
        AuditService.log_action(g.user_id, 'tenant_admin.removed', 'tenant', tenant_id, {'admin_id': admin_id})
        return ok(message='Admin eliminado')
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error removing admin {admin_id}: {str(e)}", exc_info=True)
        return internal_error()
