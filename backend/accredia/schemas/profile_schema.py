"""Profile schemas."""

from marshmallow import Schema, fields, EXCLUDE


class ProfileUpdateSchema(Schema):
    """Used for PUT /api/profiles/me. RUT cannot be changed once set."""

    class Meta:
        unknown = EXCLUDE

    rut = fields.Str(allow_none=True)
    nombre = fields.Str()
    apellido = fields.Str()
    email = fields.Str(allow_none=True)
    telefono = fields.Str(allow_none=True)
    nacionalidad = fields.Str(allow_none=True)
    cargo = fields.Str(allow_none=True)
    medio = fields.Str(allow_none=True)
    tipo_medio = fields.Str(allow_none=True)
    foto_url = fields.Str(allow_none=True)
    document_type = fields.Str(allow_none=True)
    document_number = fields.Str(allow_none=True)
    datos_base = fields.Dict(allow_none=True)


class TenantDataSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    tenant_id = fields.Str(required=True)
    data = fields.Dict(required=True)
    form_keys = fields.List(fields.Str(), load_default=None, allow_none=True)


profile_update_schema = ProfileUpdateSchema()
tenant_data_schema = TenantDataSchema()
