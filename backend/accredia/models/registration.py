"""
Registration (accreditation request) and per-day enrollment models.
"""

import logging
from sqlalchemy import (Column, String, Text, Boolean, DateTime, ForeignKey, Index,
                        CheckConstraint, UniqueConstraint, JSON, Uuid)
from sqlalchemy.orm import relationship

from accredia.extensions import db
from accredia.models.base import BaseModel

logger = logging.getLogger(__name__)


class Registration(BaseModel, db.Model):
    """
    Accreditation request of one profile for one event.

    Lifecycle: pendiente -> aprobado | rechazado | revision.
    Approving a registration of a QR-enabled event issues a unique qr_token
    that gate staff scan for check-in.

    Attributes:
        event_id, profile_id: The (event, person) pair, unique together
        organizacion, tipo_medio, cargo: Values declared on this submission
        datos_extra: Remaining form answers (zona, area, responsable_* ...)
        status: pendiente | aprobado | rechazado | revision
        motivo_rechazo: Reason sent with the rejection email
        submitted_by: Profile of the team manager who submitted on behalf of the person
        processed_by, processed_at: Admin decision audit
        qr_token, qr_generated_at: Check-in credential
        checked_in, checked_in_at, checked_in_by: Gate scan (simple events)
    """

    __tablename__ = 'registrations'

    STATUS_PENDIENTE = 'pendiente'
    STATUS_APROBADO = 'aprobado'
    STATUS_RECHAZADO = 'rechazado'
    STATUS_REVISION = 'revision'
    VALID_STATUSES = [STATUS_PENDIENTE, STATUS_APROBADO, STATUS_RECHAZADO, STATUS_REVISION]

    event_id = Column(Uuid(as_uuid=True), ForeignKey('events.id', ondelete='CASCADE'), nullable=False)
    profile_id = Column(Uuid(as_uuid=True), ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False)
    organizacion = Column(String(200), nullable=True)
    tipo_medio = Column(String(100), nullable=True)
    cargo = Column(String(150), nullable=True)
    datos_extra = Column(JSON, nullable=False, default=dict)
    status = Column(String(20), nullable=False, default=STATUS_PENDIENTE)
    motivo_rechazo = Column(Text, nullable=True)
    submitted_by = Column(Uuid(as_uuid=True), ForeignKey('profiles.id', ondelete='SET NULL'), nullable=True)
    processed_by = Column(Uuid(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    qr_token = Column(String(64), nullable=True, unique=True)
    qr_generated_at = Column(DateTime(timezone=True), nullable=True)
    checked_in = Column(Boolean, nullable=False, default=False)
    checked_in_at = Column(DateTime(timezone=True), nullable=True)
    checked_in_by = Column(Uuid(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)

    event = relationship('Event')
    profile = relationship('Profile', foreign_keys=[profile_id])
    days = relationship('RegistrationDay', back_populates='registration', cascade='all, delete-orphan')

    __table_args__ = (
        UniqueConstraint('event_id', 'profile_id', name='uq_registrations_event_profile'),
        CheckConstraint("status IN ('pendiente', 'aprobado', 'rechazado', 'revision')",
                        name='ck_registrations_status'),
        Index('ix_registrations_event_status', 'event_id', 'status'),
        Index('ix_registrations_quota', 'event_id', 'tipo_medio', 'organizacion'),
    )

    @property
    def zona(self):
        return (self.datos_extra or {}).get('zona')


class RegistrationDay(BaseModel, db.Model):
    """Enrollment of a registration in one jornada of a multi-day event."""

    __tablename__ = 'registration_days'

    registration_id = Column(Uuid(as_uuid=True), ForeignKey('registrations.id', ondelete='CASCADE'),
                             nullable=False)
    event_day_id = Column(Uuid(as_uuid=True), ForeignKey('event_days.id', ondelete='CASCADE'),
                          nullable=False)
    checked_in = Column(Boolean, nullable=False, default=False)
    checked_in_at = Column(DateTime(timezone=True), nullable=True)
    checked_in_by = Column(Uuid(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)

    registration = relationship('Registration', back_populates='days')

    __table_args__ = (
        UniqueConstraint('registration_id', 'event_day_id', name='uq_registration_days_reg_day'),
        Index('ix_registration_days_day', 'event_day_id'),
    )
