"""
Tenant model and admin role tables.

A tenant is an organization (club, federation, venue) with its own
subdomain, branding and isolated data scope. Admin access is granted
through tenant_admins; platform operators are listed in superadmins.
"""

import logging
import re
from sqlalchemy import Column, String, Boolean, ForeignKey, Index, CheckConstraint, UniqueConstraint, JSON, Uuid
from sqlalchemy.orm import relationship
from typing import Optional

from accredia.extensions import db
from accredia.models.base import BaseModel

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r'^[a-z0-9]+(?:-[a-z0-9]+)*$')

DEFAULT_COLORS = {
    'color_primario': '#1a1a2e',
    'color_secundario': '#e94560',
    'color_light': '#f5f5f5',
    'color_dark': '#0f0f1a',
}


class Tenant(BaseModel, db.Model):
    """
    Tenant organization with branding used by the public accreditation site.

    Attributes:
        nombre: Display name
        slug: Subdomain / path segment (unique, immutable after creation)
        activo: Inactive tenants are hidden from public resolution
        logo_url, shield_url, background_url: Branding assets (S3 URLs)
        color_primario, color_secundario, color_light, color_dark: Theme colors
        config: Free-form JSON settings (e.g. acreditado_label)
    """

    __tablename__ = 'tenants'

    nombre = Column(String(200), nullable=False, comment="Tenant display name")
    slug = Column(String(63), unique=True, nullable=False, index=True,
                  comment="Subdomain slug (lowercase, hyphen separated)")
    activo = Column(Boolean, default=True, nullable=False, comment="Publicly resolvable")

    logo_url = Column(String(1000), nullable=True)
    shield_url = Column(String(1000), nullable=True)
    background_url = Column(String(1000), nullable=True)

    color_primario = Column(String(20), nullable=False, default=DEFAULT_COLORS['color_primario'])
    color_secundario = Column(String(20), nullable=False, default=DEFAULT_COLORS['color_secundario'])
    color_light = Column(String(20), nullable=False, default=DEFAULT_COLORS['color_light'])
    color_dark = Column(String(20), nullable=False, default=DEFAULT_COLORS['color_dark'])

    config = Column(JSON, nullable=False, default=dict, comment="Tenant-level settings")

    events = relationship('Event', back_populates='tenant', cascade='all, delete-orphan', passive_deletes=True)
    admins = relationship('TenantAdmin', back_populates='tenant', cascade='all, delete-orphan',
                          passive_deletes=True)

    PUBLIC_FIELDS = ('id', 'nombre', 'slug', 'logo_url', 'shield_url', 'background_url',
                     'color_primario', 'color_secundario', 'color_light', 'color_dark', 'config')

    def to_public_dict(self) -> dict:
        """Branding fields safe to expose on public pages."""
        data = self.to_dict()
        return {key: data.get(key) for key in self.PUBLIC_FIELDS}

    @classmethod
    def find_by_slug(cls, slug: str, active_only: bool = True) -> Optional['Tenant']:
        if not slug:
            return None
        query = cls.query.filter_by(slug=slug.lower())
        if active_only:
            query = query.filter_by(activo=True)
        return query.first()

    @staticmethod
    def is_valid_slug(slug: str) -> bool:
        return bool(slug) and len(slug) <= 63 and SLUG_PATTERN.match(slug) is not None


class TenantAdmin(BaseModel, db.Model):
    """
    Grants a user admin rights over one tenant.

    Roles:
        - admin: full management of the tenant
        - editor: manages events and registrations
    """

    __tablename__ = 'tenant_admins'

    ROLE_ADMIN = 'admin'
    ROLE_EDITOR = 'editor'
    VALID_ROLES = [ROLE_ADMIN, ROLE_EDITOR]

    tenant_id = Column(Uuid(as_uuid=True), ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(Uuid(as_uuid=True), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    rol = Column(String(20), nullable=False, default=ROLE_ADMIN)
    nombre = Column(String(200), nullable=True)
    email = Column(String(255), nullable=True)

    tenant = relationship('Tenant', back_populates='admins')
    user = relationship('User')

    __table_args__ = (
        UniqueConstraint('tenant_id', 'user_id', name='uq_tenant_admins_tenant_user'),
        CheckConstraint("rol IN ('admin', 'editor')", name='ck_tenant_admins_rol'),
        Index('ix_tenant_admins_user', 'user_id'),
    )


class Superadmin(BaseModel, db.Model):
    """Platform operator with access to every tenant."""

    __tablename__ = 'superadmins'

    user_id = Column(Uuid(as_uuid=True), ForeignKey('users.id', ondelete='CASCADE'),
                     unique=True, nullable=False)
    nombre = Column(String(200), nullable=True)
    email = Column(String(255), nullable=True)

    user = relationship('User')
