"""
Teams Blueprint - a manager's saved roster of people to accredit.

The manager is the profile linked to the authenticated account.

Endpoints:
- GET /api/teams?event_id= - Members (with per-event autofill when event_id is given)
- POST /api/teams - Add a member
- PATCH /api/teams/<member_id> - Update alias / notes
- DELETE /api/teams/<member_id> - Remove a member
"""

import logging
from flask import Blueprint, request, g
from marshmallow import ValidationError

from accredia.schemas.team_schema import team_member_create_schema, team_member_update_schema
from accredia.services.errors import ServiceError
from accredia.services.profile_service import ProfileService
from accredia.services.team_service import TeamService
from accredia.utils.decorators import jwt_required_custom
from accredia.utils.responses import ok, created, bad_request, forbidden, internal_error, service_error_response

logger = logging.getLogger(__name__)

teams_bp = Blueprint('teams', __name__, url_prefix='/api/teams')


def _manager_profile():
    return ProfileService.get_profile_by_user_id(g.user_id)


@teams_bp.route('', methods=['GET'])
@jwt_required_custom
def list_members():
    try:
        manager = _manager_profile()
        if not manager:
            return ok([])

        event_id = request.args.get('event_id')
        if event_id:
            return ok(TeamService.get_members_for_event(manager.id, event_id))
        return ok([TeamService.member_to_dict(m) for m in TeamService.get_members(manager.id)])

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error listing team: {str(e)}", exc_info=True)
        return internal_error()


@teams_bp.route('', methods=['POST'])
@jwt_required_custom
def add_member():
    """
    Add a person to the team.

    **Request Body**:
        {"rut": "12.345.678-5", "nombre": "Ana", "apellido": "Rojas",
         "email": "ana@medio.cl", "cargo": "Fotógrafa", "alias": "Ana R."}

    **Errors**: 403 incomplete manager profile, 400 own RUT, 409 already in team
    """
    try:
        data = team_member_create_schema.load(request.get_json() or {})
        manager = _manager_profile()
        if not manager:
            return forbidden('Completa tu perfil antes de agregar miembros')

        member = TeamService.add_member(manager, data)
        return created(TeamService.member_to_dict(member), 'Miembro agregado')

    except ValidationError as err:
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error adding team member: {str(e)}", exc_info=True)
        return internal_error()


@teams_bp.route('/<member_id>', methods=['PATCH'])
@jwt_required_custom
def update_member(member_id):
    try:
        data = team_member_update_schema.load(request.get_json() or {})
        manager = _manager_profile()
        if not manager:
            return forbidden('Perfil no encontrado')

        member = TeamService.update_member(manager.id, member_id, data.get('alias'), data.get('notas'))
        return ok(TeamService.member_to_dict(member), 'Miembro actualizado')

    except ValidationError as err:
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error updating team member {member_id}: {str(e)}", exc_info=True)
        return internal_error()


@teams_bp.route('/<member_id>', methods=['DELETE'])
@jwt_required_custom
def remove_member(member_id):
    try:
        manager = _manager_profile()
        if not manager:
            return forbidden('Perfil no encontrado')

        TeamService.remove_member(manager.id, member_id)
        return ok(message='Miembro eliminado')

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error removing team member {member_id}: {str(e)}", exc_info=True)
        return internal_error()
