"""
Public Blueprint - tenant landing and accreditation form data.

Tenant subdomains are rewritten to /<slug><path> by TenantRoutingMiddleware,
so ``cruzados.accredia.cl/acreditacion`` arrives here as ``/cruzados/acreditacion``.

- GET /<slug> - Tenant branding, active public event and its form fields
- GET /<slug>/acreditacion?invite= - Form config with autofill, quota rules and deadline status
"""

import logging
from flask import Blueprint, request, g

from accredia.models import Tenant
from accredia.services.event_day_service import EventDayService
from accredia.services.event_service import EventService
from accredia.services.invitation_service import InvitationService
from accredia.services.profile_service import ProfileService
from accredia.services.quota_service import QuotaService
from accredia.utils.dates import is_deadline_past
from accredia.utils.decorators import jwt_optional
from accredia.utils.responses import ok, forbidden, not_found, internal_error

logger = logging.getLogger(__name__)

public_bp = Blueprint('public', __name__)


def _event_payload(event) -> dict:
    data = event.to_public_dict()
    if event.event_type == event.TYPE_MULTIDIA:
        data['days'] = [day.to_dict() for day in EventDayService.list_days(event.id) if day.is_active]
    return data


@public_bp.route('/<slug>', methods=['GET'])
def tenant_landing(slug):
    try:
        tenant = Tenant.find_by_slug(slug)
        if not tenant:
            return not_found('Organización no encontrada')

        event = EventService.get_active_event(tenant.id, public_only=True)
        return ok({
            'tenant': tenant.to_public_dict(),
            'event': _event_payload(event) if event else None,
            'form_fields': (event.form_fields or []) if event else [],
        })

    except Exception as e:
        logger.error(f"Error loading tenant page {slug}: {str(e)}", exc_info=True)
        return internal_error()


@public_bp.route('/<slug>/acreditacion', methods=['GET'])
@jwt_optional
def accreditation_form(slug):
    """
    Everything the public form needs in one call.

    **Query Parameters**:
        - invite: Invitation token (required for invite-only events)

    **Response**:
        {
            "tenant": {...}, "event": {...}, "form_fields": [...],
            "quota_rules": [{"tipo_medio": "Radio", "max_per_organization": 2, ...}],
            "deadline": {"fecha_limite": "...", "closed": false},
            "autofill": {...}, "tenant_status": {...}     (logged-in users with a profile)
            "invitation": {...}                          (when invite is given)
        }
    """
    try:
        tenant = Tenant.find_by_slug(slug)
        if not tenant:
            return not_found('Organización no encontrada')

        invitation = None
        invite_token = request.args.get('invite')
        if invite_token:
            check = InvitationService.validate_token(invite_token)
            if not check.valid:
                return forbidden(check.reason)
            if str(check.event.tenant_id) != str(tenant.id):
                return forbidden('La invitación no corresponde a esta organización')
            event = check.event
            invitation = check.invitation
        else:
            event = EventService.get_active_event(tenant.id, public_only=True)

        if not event:
            return not_found('No hay un evento activo')

        form_fields = event.form_fields or []
        data = {
            'tenant': tenant.to_public_dict(),
            'event': _event_payload(event),
            'form_fields': form_fields,
            'quota_rules': [rule.to_dict() for rule in QuotaService.get_quota_rules(event.id)],
            'deadline': {
                'fecha_limite': event.fecha_limite_acreditacion.isoformat()
                if event.fecha_limite_acreditacion else None,
                'closed': is_deadline_past(event.fecha_limite_acreditacion),
            },
        }
        if invitation is not None:
            data['invitation'] = {'email': invitation.email, 'nombre': invitation.nombre}

        if g.user_id:
            profile = ProfileService.get_profile_by_user_id(g.user_id)
            if profile:
                data['profile'] = profile.to_dict()
                data['autofill'] = ProfileService.build_merged_autofill_data(profile, tenant.id, form_fields)
                data['tenant_status'] = ProfileService.compute_tenant_profile_status(profile, tenant.id,
                                                                                     form_fields)
        return ok(data)

    except Exception as e:
        logger.error(f"Error loading accreditation form for {slug}: {str(e)}", exc_info=True)
        return internal_error()
