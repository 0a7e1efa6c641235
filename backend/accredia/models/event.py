"""
Event and EventDay models.

An event belongs to a tenant and owns its registration form definition
(form_fields), its quota and zone rules, invitations and registrations.
Multi-day events (event_type 'multidia') have one EventDay per jornada.
"""

import logging
from sqlalchemy import (Column, String, Text, Boolean, Date, DateTime, Integer, ForeignKey,
                        Index, CheckConstraint, JSON, Uuid)
from sqlalchemy.orm import relationship
from typing import Optional

from accredia.extensions import db
from accredia.models.base import BaseModel

logger = logging.getLogger(__name__)


class Event(BaseModel, db.Model):
    """
    Accreditation event.

    Attributes:
        tenant_id: Owning tenant
        nombre, descripcion, venue, league: Descriptive fields
        fecha, hora: Event date (YYYY-MM-DD) and time (HH:MM)
        opponent_name, opponent_logo_url: Match opponent branding
        is_active: Only active events accept registrations
        qr_enabled: Approved registrations receive a QR token
        fecha_limite_acreditacion: Deadline for submissions (aware datetime)
        form_fields: List of field definitions rendered by the public form
        config: Free-form JSON (e.g. acreditado_label, notas)
        event_type: 'simple' or 'multidia'
        visibility: 'public' or 'invite_only'
        invite_token: Shared invitation token for invite-only events
        fecha_inicio, fecha_fin: Date range for multi-day events
    """

    __tablename__ = 'events'

    TYPE_SIMPLE = 'simple'
    TYPE_MULTIDIA = 'multidia'
    VALID_TYPES = [TYPE_SIMPLE, TYPE_MULTIDIA]

    VISIBILITY_PUBLIC = 'public'
    VISIBILITY_INVITE_ONLY = 'invite_only'
    VALID_VISIBILITIES = [VISIBILITY_PUBLIC, VISIBILITY_INVITE_ONLY]

    # String columns that accept '' from forms and are stored as NULL
    NULLABLE_STRING_FIELDS = ('descripcion', 'hora', 'venue', 'league', 'opponent_name',
                              'opponent_logo_url')

    tenant_id = Column(Uuid(as_uuid=True), ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    nombre = Column(String(255), nullable=False)
    descripcion = Column(Text, nullable=True)
    fecha = Column(Date, nullable=True)
    hora = Column(String(10), nullable=True)
    venue = Column(String(255), nullable=True)
    league = Column(String(100), nullable=True)
    opponent_name = Column(String(150), nullable=True)
    opponent_logo_url = Column(String(1000), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    qr_enabled = Column(Boolean, nullable=False, default=False)
    fecha_limite_acreditacion = Column(DateTime(timezone=True), nullable=True)
    form_fields = Column(JSON, nullable=False, default=list)
    config = Column(JSON, nullable=False, default=dict)
    event_type = Column(String(20), nullable=False, default=TYPE_SIMPLE)
    visibility = Column(String(20), nullable=False, default=VISIBILITY_PUBLIC)
    invite_token = Column(String(64), nullable=True, unique=True)
    fecha_inicio = Column(Date, nullable=True)
    fecha_fin = Column(Date, nullable=True)

    tenant = relationship('Tenant', back_populates='events')
    days = relationship('EventDay', back_populates='event', cascade='all, delete-orphan',
                        order_by='EventDay.orden')

    __table_args__ = (
        Index('ix_events_tenant_active', 'tenant_id', 'is_active'),
        CheckConstraint("event_type IN ('simple', 'multidia')", name='ck_events_type'),
        CheckConstraint("visibility IN ('public', 'invite_only')", name='ck_events_visibility'),
    )

    @property
    def is_multidia(self) -> bool:
        return self.event_type == self.TYPE_MULTIDIA

    @property
    def is_invite_only(self) -> bool:
        return self.visibility == self.VISIBILITY_INVITE_ONLY

    def to_public_dict(self) -> dict:
        """Event fields exposed on the public form (no invite token)."""
        return self.to_dict(exclude=['invite_token', 'created_by'])


class EventDay(BaseModel, db.Model):
    """One jornada of a multi-day event."""

    __tablename__ = 'event_days'

    event_id = Column(Uuid(as_uuid=True), ForeignKey('events.id', ondelete='CASCADE'), nullable=False)
    fecha = Column(Date, nullable=False)
    label = Column(String(100), nullable=False)
    orden = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True)

    event = relationship('Event', back_populates='days')

    __table_args__ = (
        Index('ix_event_days_event_orden', 'event_id', 'orden'),
    )

    @classmethod
    def find_for_event(cls, event_id, day_id) -> Optional['EventDay']:
        return cls.query.filter_by(id=day_id, event_id=event_id).first()
