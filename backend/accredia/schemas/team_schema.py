"""Team member schemas."""

from marshmallow import Schema, fields, EXCLUDE


class TeamMemberCreateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    rut = fields.Str(required=True)
    nombre = fields.Str(required=True)
    apellido = fields.Str(required=True)
    email = fields.Str(load_default=None, allow_none=True)
    telefono = fields.Str(load_default=None, allow_none=True)
    cargo = fields.Str(load_default=None, allow_none=True)
    medio = fields.Str(load_default=None, allow_none=True)
    tipo_medio = fields.Str(load_default=None, allow_none=True)
    nacionalidad = fields.Str(load_default=None, allow_none=True)
    alias = fields.Str(load_default=None, allow_none=True)
    notas = fields.Str(load_default=None, allow_none=True)


class TeamMemberUpdateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    alias = fields.Str(allow_none=True)
    notas = fields.Str(allow_none=True)


team_member_create_schema = TeamMemberCreateSchema()
team_member_update_schema = TeamMemberUpdateSchema()
