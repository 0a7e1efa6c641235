"""
ZoneService - access zone assignment.

Zones are resolved from per-event rules: an exact match on the
registrant's cargo wins, then a match on tipo_medio, else no zone.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from accredia.extensions import db
from accredia.models import ZoneRule, parse_uuid
from accredia.services.errors import NotFoundError, ValidationFailed, ConflictError

logger = logging.getLogger(__name__)


class ZoneService:

    @staticmethod
    def get_zone_rules(event_id) -> List[ZoneRule]:
        eid = parse_uuid(event_id)
        if eid is None:
            return []
        return (
            ZoneRule.query
            .filter_by(event_id=eid)
            .order_by(ZoneRule.match_field, ZoneRule.cargo)
            .all()
        )

    @staticmethod
    def resolve_zone(event_id, cargo: Optional[str] = None, tipo_medio: Optional[str] = None) -> Optional[str]:
        """
        Resolve the access zone of a registrant.

        Args:
            event_id: Event whose rules apply
            cargo: Job title declared on the form
            tipo_medio: Media type declared on the form

        Returns:
            Zone name, or None when no rule matches (no query when both inputs are empty)

        Example:
            >>> ZoneService.resolve_zone(event_id, cargo='Fotógrafo', tipo_medio='TV')
            'Cancha'
        """
        if not cargo and not tipo_medio:
            return None

        eid = parse_uuid(event_id)
        if eid is None:
            return None

        if cargo:
            rule = ZoneRule.query.filter_by(
                event_id=eid, match_field=ZoneRule.MATCH_CARGO, cargo=cargo
            ).first()
            if rule:
                return rule.zona

        if tipo_medio:
            rule = ZoneRule.query.filter_by(
                event_id=eid, match_field=ZoneRule.MATCH_TIPO_MEDIO, cargo=tipo_medio
            ).first()
            if rule:
                return rule.zona

        return None

    @staticmethod
    def upsert_zone_rule(event_id, cargo: str, zona: str, match_field: str = ZoneRule.MATCH_CARGO) -> ZoneRule:
        """Create or update the rule for (event, match_field, value)."""
        if match_field not in ZoneRule.VALID_MATCH_FIELDS:
            raise ValidationFailed('match_field debe ser cargo o tipo_medio')
        if not cargo or not zona:
            raise ValidationFailed('cargo y zona son requeridos')

        eid = parse_uuid(event_id)
        rule = ZoneRule.query.filter_by(event_id=eid, match_field=match_field, cargo=cargo).first()
        if rule:
            rule.zona = zona
        else:
            rule = ZoneRule(event_id=eid, match_field=match_field, cargo=cargo, zona=zona)
            db.session.add(rule)

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError('Ya existe una regla de zona para ese valor')

        logger.info(f"Zone rule saved: event={eid} {match_field}={cargo} -> {zona}")
        return rule

    @staticmethod
    def delete_zone_rule(event_id, rule_id) -> None:
        rule = ZoneRule.query.filter_by(id=parse_uuid(rule_id), event_id=parse_uuid(event_id)).first()
        if not rule:
            raise NotFoundError('Regla de zona no encontrada')
        db.session.delete(rule)
        db.session.commit()
