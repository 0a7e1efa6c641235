"""
Tenant Schemas for request validation.

Branding colors and URLs are checked again by TenantService (safe_color,
'' → None); these schemas reject wrong types and unknown roles early.
"""

from marshmallow import Schema, fields, validate, EXCLUDE

SLUG_PATTERN = r'^[a-z0-9]+(?:-[a-z0-9]+)*$'


class TenantBaseSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    nombre = fields.Str(validate=validate.Length(min=1, max=255))
    activo = fields.Boolean()
    logo_url = fields.Str(allow_none=True)
    shield_url = fields.Str(allow_none=True)
    background_url = fields.Str(allow_none=True)
    color_primario = fields.Str(allow_none=True)
    color_secundario = fields.Str(allow_none=True)
    color_light = fields.Str(allow_none=True)
    color_dark = fields.Str(allow_none=True)
    config = fields.Dict(allow_none=True)


class TenantCreateSchema(TenantBaseSchema):
    """Used for POST /api/tenants (superadmin)."""
    nombre = fields.Str(required=True, validate=validate.Length(min=1, max=255))
    slug = fields.Str(
        required=True,
        validate=validate.Regexp(SLUG_PATTERN, error="Slug inválido: solo minúsculas, números y guiones")
    )


class TenantUpdateSchema(TenantBaseSchema):
    """Used for PUT /api/tenants/<id>. Slug is immutable and silently ignored."""


class TenantAdminCreateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    email = fields.Email(required=True)
    nombre = fields.Str(load_default=None, allow_none=True)
    rol = fields.Str(load_default='admin', validate=validate.OneOf(['admin', 'editor']))


tenant_create_schema = TenantCreateSchema()
tenant_update_schema = TenantUpdateSchema()
tenant_admin_create_schema = TenantAdminCreateSchema()
