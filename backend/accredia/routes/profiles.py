"""
Profiles Blueprint - registrant identity and autofill.

Endpoints:
- GET /api/profiles/lookup?rut=&event_id= - Profile by RUT (own profile, or any for admins)
- GET /api/profiles/me - Own profile
- PUT /api/profiles/me - Update (or create) own profile
- GET /api/profiles/tenant-data?tenant_id= - Own answers for a tenant's forms
- PUT /api/profiles/tenant-data - Save own answers for a tenant
- GET /api/profiles/tenant-status?tenant_id=&event_id= - Form completion per tenant
- GET /api/profiles/me/registrations - Own registrations

Profiles are never exposed by RUT to anonymous users.
"""

import logging
from flask import Blueprint, request, g
from marshmallow import ValidationError

from accredia.models import Profile
from accredia.schemas.profile_schema import profile_update_schema, tenant_data_schema
from accredia.services.access_service import AccessService
from accredia.services.errors import ServiceError
from accredia.services.event_service import EventService
from accredia.services.profile_service import ProfileService
from accredia.services.registration_service import RegistrationService
from accredia.services.tenant_service import TenantService
from accredia.utils.decorators import jwt_required_custom
from accredia.utils.responses import ok, bad_request, not_found, internal_error, service_error_response

logger = logging.getLogger(__name__)

profiles_bp = Blueprint('profiles', __name__, url_prefix='/api/profiles')


def _can_see_any_profile(user_id) -> bool:
    roles = AccessService.get_user_roles(user_id)
    return roles['is_superadmin'] or bool(roles['tenants'])


def _profile_payload(profile: Profile, event_id=None) -> dict:
    data = {'found': True, 'profile': profile.to_dict()}
    if event_id:
        event = EventService.get_by_id(event_id)
        data['autofill'] = ProfileService.build_merged_autofill_data(profile, event.tenant_id,
                                                                     event.form_fields or [])
        data['tenant_data'] = ProfileService.get_tenant_profile_data(profile, event.tenant_id)
    return data


@profiles_bp.route('/lookup', methods=['GET'])
@jwt_required_custom
def lookup_profile():
    """
    Look up a profile for form autofill.

    **Query**:
        rut: RUT to look up (admins may look up anyone; others only themselves)
        event_id: Include merged autofill values for the event's form

    **Response**: {"found": true, "profile": {...}, "autofill": {...}} or {"found": false}
    """
    try:
        rut = request.args.get('rut')
        event_id = request.args.get('event_id')

        if rut:
            profile = ProfileService.lookup_profile_by_rut(rut)
            if profile and str(profile.user_id) != str(g.user_id) and not _can_see_any_profile(g.user_id):
                profile = None
        else:
            profile = ProfileService.get_profile_by_user_id(g.user_id)

        if not profile:
            return ok({'found': False, 'profile': None})
        return ok(_profile_payload(profile, event_id))

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Profile lookup error: {str(e)}", exc_info=True)
        return internal_error()


@profiles_bp.route('/me', methods=['GET'])
@jwt_required_custom
def get_my_profile():
    try:
        profile = ProfileService.get_profile_by_user_id(g.user_id)
        if not profile:
            return ok({'found': False, 'profile': None})
        return ok({'found': True, 'profile': profile.to_dict()})
    except Exception as e:
        logger.error(f"Error loading own profile: {str(e)}", exc_info=True)
        return internal_error()


@profiles_bp.route('/me', methods=['PUT'])
@jwt_required_custom
def update_my_profile():
    """
    Update own profile.

    When the account has no profile yet, rut, nombre and apellido create one
    (or link the existing profile of that RUT).
    """
    try:
        data = profile_update_schema.load(request.get_json() or {})
        profile = ProfileService.get_profile_by_user_id(g.user_id)

        if not profile:
            if not data.get('rut') or not data.get('nombre') or not data.get('apellido'):
                return bad_request('rut, nombre y apellido son requeridos')
            profile = ProfileService.get_or_create_profile(data, user_id=g.user_id)
        else:
            profile = ProfileService.update_profile(profile, data)

        if data.get('datos_base'):
            profile = ProfileService.update_profile_datos_base(profile.id, data['datos_base'])

        return ok({'profile': profile.to_dict()}, 'Perfil actualizado')

    except ValidationError as err:
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error updating own profile: {str(e)}", exc_info=True)
        return internal_error()


@profiles_bp.route('/tenant-data', methods=['GET'])
@jwt_required_custom
def get_tenant_data():
    try:
        tenant_id = request.args.get('tenant_id')
        if not tenant_id:
            return bad_request('tenant_id es requerido')

        profile = ProfileService.get_profile_by_user_id(g.user_id)
        if not profile:
            return not_found('Perfil no encontrado')
        return ok({'tenant_id': tenant_id, 'data': ProfileService.get_tenant_profile_data(profile, tenant_id)})

    except Exception as e:
        logger.error(f"Error loading tenant data: {str(e)}", exc_info=True)
        return internal_error()


@profiles_bp.route('/tenant-data', methods=['PUT'])
@jwt_required_custom
def save_tenant_data():
    """
    Save answers for a tenant's forms.

    **Request Body**:
        {"tenant_id": "uuid", "data": {"talla": "M"}, "form_keys": ["talla"]}
    """
    try:
        payload = tenant_data_schema.load(request.get_json() or {})
        profile = ProfileService.get_profile_by_user_id(g.user_id)
        if not profile:
            return not_found('Perfil no encontrado')

        TenantService.get_by_id(payload['tenant_id'])
        profile = ProfileService.save_tenant_profile_data(profile.id, payload['tenant_id'], payload['data'],
                                                          payload.get('form_keys'))
        return ok({'data': ProfileService.get_tenant_profile_data(profile, payload['tenant_id'])},
                  'Datos guardados')

    except ValidationError as err:
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error saving tenant data: {str(e)}", exc_info=True)
        return internal_error()


def _tenant_status(profile: Profile, tenant, event) -> dict:
    form_fields = event.form_fields or []
    status = ProfileService.compute_tenant_profile_status(profile, tenant.id, form_fields)
    status.update({
        'tenant_id': str(tenant.id),
        'tenant_slug': tenant.slug,
        'tenant_nombre': tenant.nombre,
        'tenant_shield': tenant.shield_url,
        'tenant_color': tenant.color_primario,
        'event_id': str(event.id),
        'event_nombre': event.nombre,
        'event_fecha': event.fecha.isoformat() if event.fecha else None,
        'form_fields': form_fields,
    })
    return status


@profiles_bp.route('/tenant-status', methods=['GET'])
@jwt_required_custom
def tenant_status():
    """
    Completion status of the user's profile per tenant.

    **Query**:
        tenant_id, event_id: Restrict to one tenant (and one of its events);
        without them every active tenant with an active event is listed.

    **Response**: {"tenants": [{tenant_*, event_*, completion_pct, missing_fields, ...}]}
    """
    try:
        profile = ProfileService.get_profile_by_user_id(g.user_id)
        if not profile:
            return ok({'tenants': [], 'profile': None})

        tenant_id = request.args.get('tenant_id')
        event_id = request.args.get('event_id')

        statuses = []
        if event_id:
            event = EventService.get_by_id(event_id)
            statuses.append(_tenant_status(profile, event.tenant, event))
        else:
            tenants = [TenantService.get_by_id(tenant_id)] if tenant_id else TenantService.list_active()
            for tenant in tenants:
                event = EventService.get_active_event(tenant.id)
                if event:
                    statuses.append(_tenant_status(profile, tenant, event))

        return ok({'tenants': statuses, 'profile': {'id': str(profile.id), 'nombre': profile.nombre}})

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error computing tenant status: {str(e)}", exc_info=True)
        return internal_error()


@profiles_bp.route('/me/registrations', methods=['GET'])
@jwt_required_custom
def my_registrations():
    try:
        profile = ProfileService.get_profile_by_user_id(g.user_id)
        if not profile:
            return ok([])
        return ok(RegistrationService.get_by_profile(profile.id))
    except Exception as e:
        logger.error(f"Error loading own registrations: {str(e)}", exc_info=True)
        return internal_error()
