"""
Per-event rule tables: quota limits and zone assignment.
"""

from sqlalchemy import Column, String, Integer, ForeignKey, UniqueConstraint, CheckConstraint, Uuid

from accredia.extensions import db
from accredia.models.base import BaseModel


class QuotaRule(BaseModel, db.Model):
    """
    Maximum number of non-rejected registrations for a media type.

    A value of 0 disables that dimension of the limit.

    Attributes:
        event_id: Event the rule applies to
        tipo_medio: Media type the rule applies to (unique per event)
        max_per_organization: Cap per organization within the media type
        max_global: Cap across all organizations within the media type
    """

    __tablename__ = 'event_quota_rules'

    event_id = Column(Uuid(as_uuid=True), ForeignKey('events.id', ondelete='CASCADE'), nullable=False)
    tipo_medio = Column(String(100), nullable=False)
    max_per_organization = Column(Integer, nullable=False, default=0)
    max_global = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint('event_id', 'tipo_medio', name='uq_quota_rules_event_tipo_medio'),
        CheckConstraint('max_per_organization >= 0', name='ck_quota_rules_max_org'),
        CheckConstraint('max_global >= 0', name='ck_quota_rules_max_global'),
    )


class ZoneRule(BaseModel, db.Model):
    """
    Maps a cargo or tipo_medio value to a physical access zone.

    The ``cargo`` column holds the matched value for both kinds of rules;
    ``match_field`` tells which registration attribute it is compared with.
    """

    __tablename__ = 'event_zone_rules'

    MATCH_CARGO = 'cargo'
    MATCH_TIPO_MEDIO = 'tipo_medio'
    VALID_MATCH_FIELDS = [MATCH_CARGO, MATCH_TIPO_MEDIO]

    event_id = Column(Uuid(as_uuid=True), ForeignKey('events.id', ondelete='CASCADE'), nullable=False)
    match_field = Column(String(20), nullable=False, default=MATCH_CARGO)
    cargo = Column(String(150), nullable=False, comment="Matched value (cargo or tipo_medio)")
    zona = Column(String(150), nullable=False)

    __table_args__ = (
        UniqueConstraint('event_id', 'match_field', 'cargo', name='uq_zone_rules_event_field_value'),
        CheckConstraint("match_field IN ('cargo', 'tipo_medio')", name='ck_zone_rules_match_field'),
    )
