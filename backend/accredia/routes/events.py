"""
Events Blueprint - events, jornadas, quota/zone rules and invitations.

Endpoints:
- GET /api/events?tenant_id=&active=1 - Tenant events (admin) or its active event (public)
- POST /api/events - Create event (tenant admin)
- GET /api/events/invite/<token> - Event by its shared invite token (public)
- GET/PUT/DELETE /api/events/<event_id>
- POST /api/events/<event_id>/deactivate
- GET/POST/PUT /api/events/<event_id>/days - List / create / replace jornadas
- GET /api/events/<event_id>/days/stats - Check-ins per jornada
- PATCH/DELETE /api/events/<event_id>/days/<day_id>
- GET/POST /api/events/<event_id>/quotas, DELETE /quotas/<rule_id>
- GET/POST /api/events/<event_id>/zones, DELETE /zones/<rule_id>
- GET/POST /api/events/<event_id>/invitations, DELETE /invitations/<invitation_id>

Admin endpoints resolve the tenant from the event and require tenant admin
rights (superadmins always pass).
"""

import logging
from flask import Blueprint, request, g
from marshmallow import ValidationError

from accredia.schemas.event_schema import event_schema, event_create_schema, event_day_schema, event_day_sync_schema
from accredia.schemas.invitation_schema import invitation_create_schema
from accredia.schemas.rule_schema import quota_rule_schema, zone_rule_schema
from accredia.services.access_service import AccessService
from accredia.services.audit_service import AuditService
from accredia.services.errors import ServiceError
from accredia.services.event_day_service import EventDayService
from accredia.services.event_service import EventService
from accredia.services.invitation_service import InvitationService
from accredia.services.quota_service import QuotaService
from accredia.services.zone_service import ZoneService
from accredia.utils.decorators import jwt_optional, jwt_required_custom, check_tenant_admin, tenant_admin_required
from accredia.utils.responses import (ok, created, accepted, bad_request, not_found, internal_error,
                                      service_error_response)

logger = logging.getLogger(__name__)

events_bp = Blueprint('events', __name__, url_prefix='/api/events')


def _admin_event(event_id):
    """
    Load an event and check tenant admin rights over it.

    Returns:
        (event, None) or (None, error_response)
    """
    event = EventService.get_by_id(event_id)
    allowed, error = check_tenant_admin(event.tenant_id)
    if not allowed:
        return None, error
    return event, None


def _event_dict(event) -> dict:
    data = event.to_dict()
    data['days'] = [day.to_dict() for day in EventDayService.list_days(event.id)] if event.is_multidia else []
    return data


# ─── Events ──────────────────────────────────────────────────────────────

@events_bp.route('', methods=['GET'])
@jwt_optional
def list_events():
    """
    List events.

    **Query**:
        tenant_id: Tenant whose events are listed (tenant admin)
        active=1: With tenant_id, the tenant's current public event (no auth)

    Superadmins may omit tenant_id to list every event.
    """
    try:
        tenant_id = request.args.get('tenant_id')

        if request.args.get('active') in ('1', 'true'):
            if not tenant_id:
                return bad_request('tenant_id es requerido')
            event = EventService.get_active_event(tenant_id, public_only=True)
            if not event:
                return ok(None)
            data = _event_dict(event)
            data.pop('invite_token', None)
            return ok(data)

        if not tenant_id:
            if g.user_id and AccessService.is_superadmin(g.user_id):
                return ok([event.to_dict() for event in EventService.list_all()])
            return bad_request('tenant_id es requerido')

        allowed, error = check_tenant_admin(tenant_id)
        if not allowed:
            return error
        return ok([event.to_dict() for event in EventService.list_by_tenant(tenant_id)])

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error listing events: {str(e)}", exc_info=True)
        return internal_error()


@events_bp.route('', methods=['POST'])
@jwt_required_custom
@tenant_admin_required('tenant_id')
def create_event():
    """
    Create an event.

    **Request Body**:
        {
            "tenant_id": "uuid",
            "nombre": "Fecha 5 vs Rival",
            "fecha": "2025-03-15",
            "event_type": "simple" | "multidia",
            "visibility": "public" | "invite_only",
            "form_fields": [...],
            "days": [{"fecha": "2025-03-15", "label": "Día 1"}]    (multidia)
        }

    **Errors**: 400 validation, 409 plan limit reached
    """
    try:
        data = event_create_schema.load(request.get_json() or {})
        tenant_id = data.pop('tenant_id')
        days = data.pop('days', None)

        event = EventService.create(tenant_id, data, created_by=g.user_id)
        if event.is_multidia and days:
            EventDayService.bulk_create_days(event.id, days)

        AuditService.log_action(g.user_id, 'event.created', 'event', event.id, {'nombre': event.nombre})
        return created(_event_dict(event), 'Evento creado')

    except ValidationError as err:
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error creating event: {str(e)}", exc_info=True)
        return internal_error()


@events_bp.route('/invite/<token>', methods=['GET'])
def get_event_by_invite(token):
    try:
        event = EventService.get_by_invite_token(token)
        if not event or not event.is_active:
            return not_found('Invitación no válida')
        data = _event_dict(event)
        data['tenant'] = event.tenant.to_public_dict()
        return ok(data)
    except Exception as e:
        logger.error(f"Error resolving invite token: {str(e)}", exc_info=True)
        return internal_error()


@events_bp.route('/<event_id>', methods=['GET'])
@jwt_optional
def get_event(event_id):
    """
    Event detail.

    Tenant admins receive every field; everyone else only sees active
    events, without the invite token.
    """
    try:
        event = EventService.get_by_id(event_id)
        if g.user_id and AccessService.has_access_to_tenant(g.user_id, event.tenant_id):
            return ok(_event_dict(event))

        if not event.is_active:
            return not_found('Evento no encontrado')
        data = _event_dict(event)
        data.pop('invite_token', None)
        data.pop('created_by', None)
        return ok(data)

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error loading event {event_id}: {str(e)}", exc_info=True)
        return internal_error()


@events_bp.route('/<event_id>', methods=['PUT'])
@jwt_required_custom
def update_event(event_id):
    try:
        _, error = _admin_event(event_id)
        if error:
            return error

        data = event_schema.load(request.get_json() or {})
        days = data.pop('days', None)
        event = EventService.update(event_id, data)
        if event.is_multidia and days is not None:
            EventDayService.sync_days(event.id, days)

        AuditService.log_action(g.user_id, 'event.updated', 'event', event.id, {'fields': sorted(data)})
        return ok(_event_dict(event), 'Evento actualizado')

    except ValidationError as err:
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error updating event {event_id}: {str(e)}", exc_info=True)
        return internal_error()


@events_bp.route('/<event_id>', methods=['DELETE'])
@jwt_required_custom
def delete_event(event_id):
    """Delete an event with its jornadas, registrations, rules and invitations."""
    try:
        event, error = _admin_event(event_id)
        if error:
            return error

        nombre = event.nombre
        EventService.delete(event_id)
        AuditService.log_action(g.user_id, 'event.deleted', 'event', event_id, {'nombre': nombre})
        return ok(message='Evento eliminado')

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error deleting event {event_id}: {str(e)}", exc_info=True)
        return internal_error()


@events_bp.route('/<event_id>/deactivate', methods=['POST'])
@jwt_required_custom
def deactivate_event(event_id):
    try:
        _, error = _admin_event(event_id)
        if error:
            return error

        event = EventService.deactivate(event_id)
        AuditService.log_action(g.user_id, 'event.deactivated', 'event', event.id)
        return ok(event.to_dict(), 'Evento desactivado')

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error deactivating event {event_id}: {str(e)}", exc_info=True)
        return internal_error()


# ─── Jornadas ────────────────────────────────────────────────────────────

@events_bp.route('/<event_id>/days', methods=['GET'])
def list_days(event_id):
    try:
        EventService.get_by_id(event_id)
        return ok([day.to_dict() for day in EventDayService.list_days(event_id)])
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error listing days of {event_id}: {str(e)}", exc_info=True)
        return internal_error()


@events_bp.route('/<event_id>/days', methods=['POST'])
@jwt_required_custom
def create_day(event_id):
    try:
        _, error = _admin_event(event_id)
        if error:
            return error

        data = event_day_schema.load(request.get_json() or {})
        day = EventDayService.create_day(event_id, data)
        return created(day.to_dict(), 'Jornada creada')

    except ValidationError as err:
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error creating day for {event_id}: {str(e)}", exc_info=True)
        return internal_error()


@events_bp.route('/<event_id>/days', methods=['PUT'])
@jwt_required_custom
def sync_days(event_id):
    """Replace every jornada. Body: {"days": [{"fecha", "label", "orden"}]}"""
    try:
        _, error = _admin_event(event_id)
        if error:
            return error

        data = event_day_sync_schema.load(request.get_json() or {})
        days = EventDayService.sync_days(event_id, data['days'])
        return ok([day.to_dict() for day in days], 'Jornadas actualizadas')

    except ValidationError as err:
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error syncing days of {event_id}: {str(e)}", exc_info=True)
        return internal_error()


@events_bp.route('/<event_id>/days/stats', methods=['GET'])
@jwt_required_custom
def day_stats(event_id):
    try:
        _, error = _admin_event(event_id)
        if error:
            return error
        return ok(EventDayService.get_checkin_stats_by_day(event_id))
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error loading day stats of {event_id}: {str(e)}", exc_info=True)
        return internal_error()


@events_bp.route('/<event_id>/days/<day_id>', methods=['PATCH'])
@jwt_required_custom
def update_day(event_id, day_id):
    try:
        _, error = _admin_event(event_id)
        if error:
            return error

        data = event_day_schema.load(request.get_json() or {})
        day = EventDayService.update_day(event_id, day_id, data)
        return ok(day.to_dict(), 'Jornada actualizada')

    except ValidationError as err:
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error updating day {day_id}: {str(e)}", exc_info=True)
        return internal_error()


@events_bp.route('/<event_id>/days/<day_id>', methods=['DELETE'])
@jwt_required_custom
def delete_day(event_id, day_id):
    try:
        _, error = _admin_event(event_id)
        if error:
            return error
        EventDayService.delete_day(event_id, day_id)
        return ok(message='Jornada eliminada')
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error deleting day {day_id}: {str(e)}", exc_info=True)
        return internal_error()


# ─── Quota rules ─────────────────────────────────────────────────────────

@events_bp.route('/<event_id>/quotas', methods=['GET'])
@jwt_required_custom
def list_quotas(event_id):
    try:
        _, error = _admin_event(event_id)
        if error:
            return error
        return ok(QuotaService.get_quota_rules_with_usage(event_id))
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error listing quotas of {event_id}: {str(e)}", exc_info=True)
        return internal_error()


@events_bp.route('/<event_id>/quotas', methods=['POST'])
@jwt_required_custom
def upsert_quota(event_id):
    """
    Create or update the quota rule of a media type.

    **Request Body**:
        {"tipo_medio": "Radio", "max_per_organization": 2, "max_global": 20}

    0 means no limit for that dimension.
    """
    try:
        _, error = _admin_event(event_id)
        if error:
            return error

        data = quota_rule_schema.load(request.get_json() or {})
        rule = QuotaService.upsert_quota_rule(event_id, data['tipo_medio'], data['max_per_organization'],
                                              data['max_global'])
        AuditService.log_action(g.user_id, 'quota_rule.saved', 'event', event_id, data)
        return ok(rule.to_dict(), 'Regla de cupo guardada')

    except ValidationError as err:
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error saving quota rule for {event_id}: {str(e)}", exc_info=True)
        return internal_error()


@events_bp.route('/<event_id>/quotas/<rule_id>', methods=['DELETE'])
@jwt_required_custom
def delete_quota(event_id, rule_id):
    try:
        _, error = _admin_event(event_id)
        if error:
            return error
        QuotaService.delete_quota_rule(event_id, rule_id)
        return ok(message='Regla de cupo eliminada')
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error deleting quota rule {rule_id}: {str(e)}", exc_info=True)
        return internal_error()


# ─── Zone rules ──────────────────────────────────────────────────────────

@events_bp.route('/<event_id>/zones', methods=['GET'])
@jwt_required_custom
def list_zones(event_id):
    """
    Zone rules of the event.

    With ?cargo= and/or ?tipo_medio= the matching zone is resolved instead:
    {"zona": "Cancha" | null}
    """
    try:
        _, error = _admin_event(event_id)
        if error:
            return error

        cargo = request.args.get('cargo')
        tipo_medio = request.args.get('tipo_medio')
        if cargo or tipo_medio:
            return ok({'zona': ZoneService.resolve_zone(event_id, cargo, tipo_medio)})
        return ok([rule.to_dict() for rule in ZoneService.get_zone_rules(event_id)])

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error listing zones of {event_id}: {str(e)}", exc_info=True)
        return internal_error()


@events_bp.route('/<event_id>/zones', methods=['POST'])
@jwt_required_custom
def upsert_zone(event_id):
    """Body: {"cargo": "Fotógrafo", "zona": "Cancha", "match_field": "cargo" | "tipo_medio"}"""
    try:
        _, error = _admin_event(event_id)
        if error:
            return error

        data = zone_rule_schema.load(request.get_json() or {})
        rule = ZoneService.upsert_zone_rule(event_id, data['cargo'], data['zona'], data['match_field'])
        AuditService.log_action(g.user_id, 'zone_rule.saved', 'event', event_id, data)
        return ok(rule.to_dict(), 'Regla de zona guardada')

    except ValidationError as err:
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error saving zone rule for {event_id}: {str(e)}", exc_info=True)
        return internal_error()


@events_bp.route('/<event_id>/zones/<rule_id>', methods=['DELETE'])
@jwt_required_custom
def delete_zone(event_id, rule_id):
    try:
        _, error = _admin_event(event_id)
        if error:
            return error
        ZoneService.delete_zone_rule(event_id, rule_id)
        return ok(message='Regla de zona eliminada')
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error deleting zone rule {rule_id}: {str(e)}", exc_info=True)
        return internal_error()


# ─── Invitations ─────────────────────────────────────────────────────────

@events_bp.route('/<event_id>/invitations', methods=['GET'])
@jwt_required_custom
def list_invitations(event_id):
    try:
        _, error = _admin_event(event_id)
        if error:
            return error
        return ok([inv.to_dict() for inv in InvitationService.list_invitations(event_id)])
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error listing invitations of {event_id}: {str(e)}", exc_info=True)
        return internal_error()


@events_bp.route('/<event_id>/invitations', methods=['POST'])
@jwt_required_custom
def create_invitations(event_id):
    """
    Invite people to an invite-only event.

    **Request Body**:
        {"invitees": [{"email": "a@medio.cl", "nombre": "Ana"}], "send": true}

    With send=true the invitation emails are queued (202).
    """
    try:
        event, error = _admin_event(event_id)
        if error:
            return error
        if not event.is_invite_only:
            return bad_request('El evento no es solo por invitación')

        data = invitation_create_schema.load(request.get_json() or {})
        result = InvitationService.create_invitations(event_id, data['invitees'])
        payload = {
            'created': [inv.to_dict() for inv in result['created']],
            'invalid': result['invalid'],
        }
        AuditService.log_action(g.user_id, 'invitations.created', 'event', event_id,
                                {'count': len(result['created'])})

        if data['send'] and result['created']:
            from accredia.tasks.email_tasks import send_invitation_emails
            send_invitation_emails.delay([str(inv.id) for inv in result['created']])
            return accepted(payload, 'Invitaciones creadas; envío en curso')

        return created(payload, 'Invitaciones creadas')

    except ValidationError as err:
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error creating invitations for {event_id}: {str(e)}", exc_info=True)
        return internal_error()


@events_bp.route('/<event_id>/invitations/<invitation_id>', methods=['DELETE'])
@jwt_required_custom
def delete_invitation(event_id, invitation_id):
    try:
        _, error = _admin_event(event_id)
        if error:
            return error
        InvitationService.delete(event_id, invitation_id)
        return ok(message='Invitación eliminada')
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error deleting invitation {invitation_id}: {str(e)}", exc_info=True)
        return internal_error()
