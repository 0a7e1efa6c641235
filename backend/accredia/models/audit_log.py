"""
AuditLog model: append-only record of admin and gate actions.
"""

from sqlalchemy import Column, String, Index, JSON, Uuid
from typing import Optional

from accredia.extensions import db
from accredia.models.base import BaseModel


class AuditLog(BaseModel, db.Model):
    """
    Attributes:
        user_id: Acting user (None for public submissions)
        action: Dotted action name, e.g. 'registration.approved'
        entity_type, entity_id: Affected record
        metadata: JSON context (stored in column "metadata")
        ip_address: Client address when known
    """

    __tablename__ = 'audit_logs'

    user_id = Column(Uuid(as_uuid=True), nullable=True)
    action = Column(String(100), nullable=False)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(64), nullable=True)
    metadata_ = Column('metadata', JSON, nullable=False, default=dict)
    ip_address = Column(String(64), nullable=True)

    __table_args__ = (
        Index('ix_audit_logs_entity', 'entity_type', 'entity_id'),
        Index('ix_audit_logs_action', 'action'),
        Index('ix_audit_logs_created_at', 'created_at'),
    )

    def to_dict(self, exclude: Optional[list] = None) -> dict:
        data = super().to_dict(exclude=list(exclude or []) + ['metadata_'])
        data['metadata'] = self.metadata_ or {}
        return data
