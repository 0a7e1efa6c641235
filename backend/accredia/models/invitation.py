"""
Invitation model for invite-only events.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint, CheckConstraint, Uuid
from typing import Optional

from accredia.extensions import db
from accredia.models.base import BaseModel


class Invitation(BaseModel, db.Model):
    """
    Personal invitation to register for an invite-only event.

    Lifecycle: pending -> sent -> accepted, or expired once the event is over.
    """

    __tablename__ = 'event_invitations'

    STATUS_PENDING = 'pending'
    STATUS_SENT = 'sent'
    STATUS_ACCEPTED = 'accepted'
    STATUS_EXPIRED = 'expired'
    VALID_STATUSES = [STATUS_PENDING, STATUS_SENT, STATUS_ACCEPTED, STATUS_EXPIRED]
    OPEN_STATUSES = [STATUS_PENDING, STATUS_SENT]

    event_id = Column(Uuid(as_uuid=True), ForeignKey('events.id', ondelete='CASCADE'), nullable=False)
    email = Column(String(255), nullable=False)
    nombre = Column(String(200), nullable=True)
    token = Column(String(64), nullable=False, unique=True, index=True)
    status = Column(String(20), nullable=False, default=STATUS_PENDING)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    accepted_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint('event_id', 'email', name='uq_invitations_event_email'),
        CheckConstraint("status IN ('pending', 'sent', 'accepted', 'expired')",
                        name='ck_invitations_status'),
    )

    @classmethod
    def find_by_token(cls, token: str) -> Optional['Invitation']:
        if not token:
            return None
        return cls.query.filter_by(token=token).first()

    def before_insert(self):
        if self.email:
            self.email = self.email.strip().lower()
