"""
QuotaService - registration caps per media type.

A quota rule limits non-rejected registrations of an event for one
tipo_medio, per organization and/or globally. 0 disables a dimension.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from accredia.extensions import db
from accredia.models import QuotaRule, Registration, parse_uuid
from accredia.services.errors import NotFoundError, ValidationFailed, ConflictError

logger = logging.getLogger(__name__)

UNKNOWN_KEY = 'unknown'


@dataclass
class QuotaCheck:
    available: bool
    used_org: int
    max_org: int
    used_global: int
    max_global: int
    message: str

    def to_dict(self) -> Dict:
        return asdict(self)


class QuotaService:

    @staticmethod
    def get_rule(event_id, tipo_medio: str, lock: bool = False) -> Optional[QuotaRule]:
        """
        Fetch the rule for (event, tipo_medio).

        With lock=True the row is selected FOR UPDATE so concurrent
        submissions for the same media type are serialized until commit.
        """
        query = QuotaRule.query.filter_by(event_id=parse_uuid(event_id), tipo_medio=tipo_medio)
        if lock:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def _count(event_id, tipo_medio: str, organizacion: Optional[str] = None, per_org: bool = False) -> int:
        query = db.session.query(func.count(Registration.id)).filter(
            Registration.event_id == parse_uuid(event_id),
            Registration.tipo_medio == tipo_medio,
            Registration.status != Registration.STATUS_RECHAZADO,
        )
        if per_org:
            if organizacion:
                query = query.filter(Registration.organizacion == organizacion)
            else:
                query = query.filter(Registration.organizacion.is_(None))
        return query.scalar() or 0

    @staticmethod
    def check_quota(event_id, tipo_medio: str, organizacion: str, lock: bool = False) -> QuotaCheck:
        """
        Check whether one more registration fits the quota.

        Returns:
            QuotaCheck with usage counters and a user-facing message

        Example:
            >>> QuotaService.check_quota(event_id, 'TV', 'Canal 13').message
            'Cupo disponible: 1/2 por organización'
        """
        rule = QuotaService.get_rule(event_id, tipo_medio, lock=lock) if tipo_medio else None
        if not rule:
            return QuotaCheck(available=True, used_org=0, max_org=0, used_global=0, max_global=0,
                              message='Sin restricción de cupo')

        used_org = QuotaService._count(event_id, tipo_medio, organizacion, per_org=True)
        used_global = QuotaService._count(event_id, tipo_medio)
        max_org = rule.max_per_organization or 0
        max_global = rule.max_global or 0

        if max_org > 0 and used_org >= max_org:
            return QuotaCheck(False, used_org, max_org, used_global, max_global,
                              f'Se alcanzó el límite de {max_org} cupos de {tipo_medio} para {organizacion}')

        if max_global > 0 and used_global >= max_global:
            return QuotaCheck(False, used_org, max_org, used_global, max_global,
                              f'Se alcanzó el límite global de {max_global} cupos para {tipo_medio}')

        return QuotaCheck(True, used_org, max_org, used_global, max_global,
                          f'Cupo disponible: {used_org}/{max_org} por organización')

    @staticmethod
    def get_quota_rules(event_id) -> List[QuotaRule]:
        return QuotaRule.query.filter_by(event_id=parse_uuid(event_id)).order_by(QuotaRule.tipo_medio).all()

    @staticmethod
    def get_quota_rules_with_usage(event_id) -> List[Dict]:
        """
        Rules with current usage for the admin dashboard.

        Each item adds used_global and used_org_map {organizacion: count};
        empty organizations are counted under 'unknown'.
        """
        eid = parse_uuid(event_id)
        rules = QuotaService.get_quota_rules(eid)
        if not rules:
            return []

        rows = (
            db.session.query(Registration.tipo_medio, Registration.organizacion, func.count(Registration.id))
            .filter(Registration.event_id == eid, Registration.status != Registration.STATUS_RECHAZADO)
            .group_by(Registration.tipo_medio, Registration.organizacion)
            .all()
        )

        usage: Dict[str, Dict[str, int]] = {}
        for tipo_medio, organizacion, count in rows:
            per_org = usage.setdefault(tipo_medio or UNKNOWN_KEY, {})
            org_key = organizacion or UNKNOWN_KEY
            per_org[org_key] = per_org.get(org_key, 0) + count

        result = []
        for rule in rules:
            used_org_map = usage.get(rule.tipo_medio, {})
            item = rule.to_dict()
            item['used_org_map'] = used_org_map
            item['used_global'] = sum(used_org_map.values())
            result.append(item)
        return result

    @staticmethod
    def upsert_quota_rule(event_id, tipo_medio: str, max_per_organization: int, max_global: int = 0) -> QuotaRule:
        if not tipo_medio:
            raise ValidationFailed('tipo_medio es requerido')
        if max_per_organization is None or max_per_organization < 0 or (max_global or 0) < 0:
            raise ValidationFailed('Los límites deben ser números mayores o iguales a 0')

        eid = parse_uuid(event_id)
        rule = QuotaRule.query.filter_by(event_id=eid, tipo_medio=tipo_medio).first()
        if rule:
            rule.max_per_organization = max_per_organization
            rule.max_global = max_global or 0
        else:
            rule = QuotaRule(event_id=eid, tipo_medio=tipo_medio,
                             max_per_organization=max_per_organization, max_global=max_global or 0)
            db.session.add(rule)

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError('Ya existe una regla de cupo para ese tipo de medio')

        logger.info(f"Quota rule saved: event={eid} {tipo_medio} org={max_per_organization} global={max_global}")
        return rule

    @staticmethod
    def delete_quota_rule(event_id, rule_id) -> None:
        rule = QuotaRule.query.filter_by(id=parse_uuid(rule_id), event_id=parse_uuid(event_id)).first()
        if not rule:
            raise NotFoundError('Regla de cupo no encontrada')
        db.session.delete(rule)
        db.session.commit()
