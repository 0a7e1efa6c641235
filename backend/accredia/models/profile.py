"""
Profile model: the identity of a registrant.

One profile per person (keyed by RUT when available). Profiles are
created or refreshed on every accreditation submission and can be linked
to a login account so that forms are autofilled on the next event.
"""

import logging
from sqlalchemy import Column, String, ForeignKey, JSON, Uuid
from typing import Optional

from accredia.extensions import db
from accredia.models.base import BaseModel

logger = logging.getLogger(__name__)


class Profile(BaseModel, db.Model):
    """
    Registrant identity shared across tenants.

    Attributes:
        rut: Chilean national id, formatted "12.345.678-9" (unique, nullable for foreign documents)
        document_type: 'rut' or 'passport' / 'dni' for foreign registrants
        document_number: Identifier when the document is not a RUT
        nombre, apellido, email, telefono, nacionalidad: Personal data
        cargo: Job title (e.g. Periodista, Fotógrafo)
        medio: Media outlet / company
        tipo_medio: Media type (TV, Radio, Prensa escrita, ...)
        foto_url: Photo shown at the gate
        datos_base: JSON with extra fields; per-tenant data lives under
                    datos_base['_tenant'][<tenant_id>]
        user_id: Linked login account (unique, nullable)
    """

    __tablename__ = 'profiles'

    FIXED_FIELDS = ('rut', 'nombre', 'apellido', 'email', 'telefono', 'nacionalidad',
                    'cargo', 'medio', 'tipo_medio')

    rut = Column(String(20), unique=True, nullable=True, index=True, comment="Formatted RUT")
    document_type = Column(String(20), nullable=False, default='rut')
    document_number = Column(String(50), nullable=True)
    nombre = Column(String(150), nullable=False)
    apellido = Column(String(150), nullable=False)
    email = Column(String(255), nullable=True, index=True)
    telefono = Column(String(50), nullable=True)
    nacionalidad = Column(String(100), nullable=True)
    cargo = Column(String(150), nullable=True)
    medio = Column(String(200), nullable=True)
    tipo_medio = Column(String(100), nullable=True)
    foto_url = Column(String(1000), nullable=True)
    datos_base = Column(JSON, nullable=False, default=dict)

    user_id = Column(Uuid(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'),
                     unique=True, nullable=True)

    @property
    def display_id(self) -> str:
        """RUT, or the foreign document number."""
        return self.rut or self.document_number or ''

    @classmethod
    def find_by_rut(cls, rut: str) -> Optional['Profile']:
        if not rut:
            return None
        return cls.query.filter_by(rut=rut).first()

    @classmethod
    def find_by_user_id(cls, user_id) -> Optional['Profile']:
        if not user_id:
            return None
        return cls.query.filter_by(user_id=user_id).first()

    def before_insert(self):
        if self.email:
            self.email = self.email.strip().lower()
        if self.datos_base is None:
            self.datos_base = {}
