"""
TeamService - press managers' rosters.

A manager keeps the people they accredit on every event. Members are
profiles; when listing the roster for an event each member comes with
autofill data for that tenant's form and their registration state.
"""

import logging
from typing import Any, Dict, List

from sqlalchemy.exc import IntegrityError

from accredia.extensions import db
from accredia.models import TeamMember, Profile, Registration, parse_uuid
from accredia.services.errors import ConflictError, ForbiddenError, NotFoundError, ValidationFailed
from accredia.services.profile_service import ProfileService
from accredia.utils.validation import (validate_rut, validate_email, is_profile_complete,
                                       get_missing_profile_fields)

logger = logging.getLogger(__name__)


class TeamService:

    @staticmethod
    def get_members(manager_id) -> List[TeamMember]:
        return (TeamMember.query.filter_by(manager_id=parse_uuid(manager_id))
                .order_by(TeamMember.created_at.asc()).all())

    @staticmethod
    def member_to_dict(member: TeamMember) -> Dict[str, Any]:
        data = member.to_dict()
        data['profile'] = member.member_profile.to_dict() if member.member_profile else None
        return data

    @staticmethod
    def add_member(manager: Profile, member_data: Dict[str, Any]) -> TeamMember:
        """
        Add a person to the manager's team, creating their profile only when the RUT is unknown.

        Raises:
            ForbiddenError: Manager profile incomplete (details lists missing fields)
            ValidationFailed: Invalid RUT or the manager's own RUT
            ConflictError: Person already in the team
        """
        if not is_profile_complete(manager):
            raise ForbiddenError('Completa tu perfil antes de agregar miembros',
                                 details={'missing_fields': get_missing_profile_fields(manager)})

        rut_check = validate_rut(member_data.get('rut'))
        if not rut_check.valid:
            raise ValidationFailed(rut_check.error)
        if not member_data.get('nombre') or not member_data.get('apellido'):
            raise ValidationFailed('Nombre y apellido son requeridos')
        if member_data.get('email'):
            email_check = validate_email(member_data['email'])
            if not email_check.valid:
                raise ValidationFailed(email_check.error)

        if manager.rut and rut_check.formatted == manager.rut:
            raise ValidationFailed('No puedes agregarte a ti mismo como miembro de equipo')
        if member_data.get('email') and manager.email and \
                member_data['email'].strip().lower() == manager.email.lower():
            logger.warning(f"Team member shares the manager's email: manager={manager.id}")

        # an existing person's profile is never edited from someone else's roster
        profile = ProfileService.lookup_profile_by_rut(rut_check.formatted)
        if profile is None:
            profile = ProfileService.get_or_create_profile({**member_data, 'rut': rut_check.formatted},
                                                           commit=False)

        if TeamMember.query.filter_by(manager_id=manager.id, member_profile_id=profile.id).first():
            db.session.rollback()
            raise ConflictError('Esta persona ya está en tu equipo')

        member = TeamMember(
            manager_id=manager.id,
            member_profile_id=profile.id,
            alias=member_data.get('alias') or f'{profile.nombre} {profile.apellido}',
            notas=member_data.get('notas'),
        )
        db.session.add(member)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError('Esta persona ya está en tu equipo')

        logger.info(f"Team member added: manager={manager.id} member={profile.id}")
        return member

    @staticmethod
    def _get_scoped(manager_id, member_id) -> TeamMember:
        member = TeamMember.query.filter_by(id=parse_uuid(member_id), manager_id=parse_uuid(manager_id)).first()
        if not member:
            raise NotFoundError('Miembro no encontrado')
        return member

    @staticmethod
    def remove_member(manager_id, member_id) -> None:
        member = TeamService._get_scoped(manager_id, member_id)
        db.session.delete(member)
        db.session.commit()

    @staticmethod
    def update_member(manager_id, member_id, alias=None, notas=None) -> TeamMember:
        member = TeamService._get_scoped(manager_id, member_id)
        if alias is not None:
            member.alias = alias
        if notas is not None:
            member.notas = notas
        db.session.commit()
        return member

    @staticmethod
    def get_members_for_event(manager_id, event_id) -> List[Dict[str, Any]]:
        """
        Roster prepared for registering the team to an event.

        Each item has the member, its profile, tenant-specific autofill and
        already_registered / registration_status. When the member is already
        registered, the cargo, organizacion and tipo_medio of that
        registration win over the profile values.
        """
        from accredia.services.event_service import EventService

        event = EventService.get_by_id(event_id)
        members = TeamService.get_members(manager_id)
        profile_ids = [member.member_profile_id for member in members]

        registrations = {}
        if profile_ids:
            for reg in Registration.query.filter(Registration.event_id == event.id,
                                                 Registration.profile_id.in_(profile_ids)):
                registrations[reg.profile_id] = reg

        result = []
        for member in members:
            profile = member.member_profile
            autofill = ProfileService.build_merged_autofill_data(profile, event.tenant_id, event.form_fields or [])
            item = TeamService.member_to_dict(member)

            reg = registrations.get(member.member_profile_id)
            if reg:
                extra = reg.datos_extra or {}
                for key, value in (('cargo', reg.cargo or extra.get('cargo')),
                                   ('organizacion', reg.organizacion or extra.get('organizacion')),
                                   ('medio', reg.organizacion or extra.get('organizacion')),
                                   ('tipo_medio', reg.tipo_medio or extra.get('tipo_medio'))):
                    if value:
                        autofill[key] = str(value)

            item['autofill'] = autofill
            item['already_registered'] = reg is not None
            item['registration_status'] = reg.status if reg else None
            result.append(item)
        return result
