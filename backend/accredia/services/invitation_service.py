"""
InvitationService - personal invitations for invite-only events.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from accredia.extensions import db
from accredia.models import Invitation, Event, parse_uuid
from accredia.services.errors import NotFoundError
from accredia.utils.validation import validate_email

logger = logging.getLogger(__name__)


@dataclass
class InvitationCheck:
    valid: bool
    reason: Optional[str] = None
    invitation: Optional[Invitation] = None
    event: Optional[Event] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'valid': self.valid,
            'reason': self.reason,
            'invitation': self.invitation.to_dict() if self.invitation else None,
            'event': self.event.to_public_dict() if self.event else None,
        }


class InvitationService:

    @staticmethod
    def list_invitations(event_id) -> List[Invitation]:
        return (Invitation.query.filter_by(event_id=parse_uuid(event_id))
                .order_by(Invitation.created_at.desc()).all())

    @staticmethod
    def get_by_token(token: str) -> Optional[Invitation]:
        return Invitation.find_by_token(token)

    @staticmethod
    def validate_token(token: str) -> InvitationCheck:
        """
        Check that an invitation can still be used to register.

        Example:
            >>> InvitationService.validate_token('abc').reason
            'Invitación no encontrada'
        """
        invitation = Invitation.find_by_token(token)
        if not invitation:
            return InvitationCheck(False, 'Invitación no encontrada')
        if invitation.status == Invitation.STATUS_EXPIRED:
            return InvitationCheck(False, 'Esta invitación ha expirado', invitation)
        if invitation.status == Invitation.STATUS_ACCEPTED:
            return InvitationCheck(False, 'Esta invitación ya fue utilizada', invitation)

        event = db.session.get(Event, invitation.event_id)
        if not event:
            return InvitationCheck(False, 'Evento no encontrado', invitation)
        if not event.is_active:
            return InvitationCheck(False, 'Este evento ya no está activo', invitation, event)
        return InvitationCheck(True, None, invitation, event)

    @staticmethod
    def create_invitations(event_id, invitees: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Create or refresh invitations for a list of {email, nombre}.

        Existing invitations for the same email are reused (nombre updated).

        Returns:
            {'created': [Invitation], 'invalid': [{email, error}]}
        """
        eid = parse_uuid(event_id)
        created, invalid = [], []

        for invitee in invitees or []:
            email = (invitee.get('email') or '').strip().lower()
            check = validate_email(email)
            if not check.valid:
                invalid.append({'email': email, 'error': check.error})
                continue

            invitation = Invitation.query.filter_by(event_id=eid, email=email).first()
            if invitation:
                if invitee.get('nombre'):
                    invitation.nombre = invitee['nombre']
            else:
                invitation = Invitation(event_id=eid, email=email, nombre=invitee.get('nombre'),
                                        token=secrets.token_urlsafe(24), status=Invitation.STATUS_PENDING)
                db.session.add(invitation)
            created.append(invitation)

        db.session.commit()
        logger.info(f"Invitations saved: event={eid} ok={len(created)} invalid={len(invalid)}")
        return {'created': created, 'invalid': invalid}

    @staticmethod
    def mark_sent(invitation_ids: List) -> int:
        ids = [parse_uuid(i) for i in invitation_ids]
        count = Invitation.query.filter(Invitation.id.in_(ids), Invitation.status == Invitation.STATUS_PENDING) \
            .update({'status': Invitation.STATUS_SENT, 'sent_at': datetime.now(timezone.utc)},
                    synchronize_session=False)
        db.session.commit()
        return count

    @staticmethod
    def accept(token: str, commit: bool = True) -> Optional[Invitation]:
        invitation = Invitation.find_by_token(token)
        if not invitation:
            return None
        invitation.status = Invitation.STATUS_ACCEPTED
        invitation.accepted_at = datetime.now(timezone.utc)
        if commit:
            db.session.commit()
        return invitation

    @staticmethod
    def delete(event_id, invitation_id) -> None:
        invitation = Invitation.query.filter_by(id=parse_uuid(invitation_id), event_id=parse_uuid(event_id)).first()
        if not invitation:
            raise NotFoundError('Invitación no encontrada')
        db.session.delete(invitation)
        db.session.commit()

    @staticmethod
    def expire_event_invitations(event_id, commit: bool = True) -> int:
        """Expire pending and sent invitations of an event."""
        count = Invitation.query.filter(
            Invitation.event_id == parse_uuid(event_id),
            Invitation.status.in_(Invitation.OPEN_STATUSES),
        ).update({'status': Invitation.STATUS_EXPIRED}, synchronize_session=False)
        if commit:
            db.session.commit()
        return count
