"""
Email customization and delivery log models.
"""

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, UniqueConstraint, CheckConstraint, Index, Uuid

from accredia.extensions import db
from accredia.models.base import BaseModel

TIPO_APROBACION = 'aprobacion'
TIPO_RECHAZO = 'rechazo'
EMAIL_TIPOS = [TIPO_APROBACION, TIPO_RECHAZO]


class EmailTemplate(BaseModel, db.Model):
    """
    Tenant override for the approval / rejection email.

    Used only when both subject and body_html are set; body_html is
    sanitized before it is stored.
    """

    __tablename__ = 'email_templates'

    tenant_id = Column(Uuid(as_uuid=True), ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    tipo = Column(String(20), nullable=False)
    subject = Column(String(300), nullable=True)
    body_html = Column(Text, nullable=True)
    info_general = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint('tenant_id', 'tipo', name='uq_email_templates_tenant_tipo'),
        CheckConstraint("tipo IN ('aprobacion', 'rechazo')", name='ck_email_templates_tipo'),
    )


class EmailZoneContent(BaseModel, db.Model):
    """Zone-specific blocks injected into approval emails (access instructions per zone)."""

    __tablename__ = 'email_zone_content'

    tenant_id = Column(Uuid(as_uuid=True), ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    tipo = Column(String(20), nullable=False, default=TIPO_APROBACION)
    zona = Column(String(150), nullable=False)
    titulo = Column(String(300), nullable=True)
    instrucciones_acceso = Column(Text, nullable=True)
    info_especifica = Column(Text, nullable=True)
    notas_importantes = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint('tenant_id', 'tipo', 'zona', name='uq_email_zone_content_tenant_tipo_zona'),
    )


class EmailLog(BaseModel, db.Model):
    """One delivery attempt."""

    __tablename__ = 'email_logs'

    STATUS_SENT = 'sent'
    STATUS_FAILED = 'failed'

    registration_id = Column(Uuid(as_uuid=True), ForeignKey('registrations.id', ondelete='SET NULL'),
                             nullable=True)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey('tenants.id', ondelete='SET NULL'), nullable=True)
    tipo = Column(String(30), nullable=False)
    to_email = Column(String(255), nullable=False)
    subject = Column(String(300), nullable=True)
    status = Column(String(20), nullable=False)
    provider_id = Column(String(100), nullable=True)
    error = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index('ix_email_logs_registration', 'registration_id'),
    )
