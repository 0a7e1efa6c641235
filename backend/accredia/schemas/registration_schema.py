"""
Registration Schemas for request validation.

The public form posts base person fields plus any event-specific answers.
Unknown top-level keys are kept (INCLUDE) and folded into datos_extra by
the route, so custom form fields survive without schema changes.
"""

from marshmallow import Schema, fields, validate, EXCLUDE, INCLUDE

STATUS_CHOICES = ['pendiente', 'aprobado', 'rechazado', 'revision']


class RegistrationCreateSchema(Schema):
    """Used for POST /api/registrations (public form)."""

    class Meta:
        unknown = INCLUDE

    event_id = fields.Str(required=True)
    rut = fields.Str(required=True)
    nombre = fields.Str(required=True)
    apellido = fields.Str(required=True)
    email = fields.Str(load_default=None, allow_none=True)
    telefono = fields.Str(load_default=None, allow_none=True)
    cargo = fields.Str(load_default=None, allow_none=True)
    organizacion = fields.Str(load_default=None, allow_none=True)
    tipo_medio = fields.Str(load_default=None, allow_none=True)
    nacionalidad = fields.Str(load_default=None, allow_none=True)
    foto_url = fields.Str(load_default=None, allow_none=True)
    datos_extra = fields.Dict(load_default=dict)
    event_day_ids = fields.List(fields.Str(), load_default=None, allow_none=True)
    invite_token = fields.Str(load_default=None, allow_none=True)
    submitted_by = fields.Str(load_default=None, allow_none=True)


class RegistrationStatusSchema(Schema):
    """Used for PATCH /api/registrations/<id>."""

    class Meta:
        unknown = EXCLUDE

    status = fields.Str(required=True, validate=validate.OneOf(STATUS_CHOICES, error="Estado inválido"))
    motivo_rechazo = fields.Str(load_default=None, allow_none=True)
    send_email = fields.Boolean(load_default=True)


class BulkCreateSchema(Schema):
    """Used for POST /api/registrations/bulk-create and /api/bulk/accreditation."""

    class Meta:
        unknown = EXCLUDE

    event_id = fields.Str(required=True)
    rows = fields.List(fields.Dict(), required=True)
    submitted_by = fields.Str(load_default=None, allow_none=True)


class BulkActionSchema(Schema):
    """Used for POST /api/bulk."""

    class Meta:
        unknown = EXCLUDE

    registration_ids = fields.List(fields.Str(), required=True)
    action = fields.Str(load_default=None, allow_none=True)
    status = fields.Str(load_default=None, allow_none=True)
    send_emails = fields.Boolean(load_default=False)


registration_create_schema = RegistrationCreateSchema()
registration_status_schema = RegistrationStatusSchema()
bulk_create_schema = BulkCreateSchema()
bulk_action_schema = BulkActionSchema()
