"""Invitation schemas."""

from marshmallow import Schema, fields, validate, EXCLUDE


class InviteeSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    email = fields.Str(required=True)
    nombre = fields.Str(load_default=None, allow_none=True)


class InvitationCreateSchema(Schema):
    """Used for POST /api/events/<id>/invitations."""

    class Meta:
        unknown = EXCLUDE

    invitees = fields.List(fields.Nested(InviteeSchema), required=True,
                           validate=validate.Length(min=1, error="Se requiere al menos un invitado"))
    send = fields.Boolean(load_default=False)


invitation_create_schema = InvitationCreateSchema()
