"""
Event Schemas for request validation.

Dates travel as strings and are parsed by EventService so that empty
form values ('') can be stored as NULL.
"""

from marshmallow import Schema, fields, validate, EXCLUDE


class EventSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    nombre = fields.Str(validate=validate.Length(min=1, max=255))
    descripcion = fields.Str(allow_none=True)
    fecha = fields.Str(allow_none=True)
    hora = fields.Str(allow_none=True)
    venue = fields.Str(allow_none=True)
    league = fields.Str(allow_none=True)
    opponent_name = fields.Str(allow_none=True)
    opponent_logo_url = fields.Str(allow_none=True)
    is_active = fields.Boolean()
    qr_enabled = fields.Boolean()
    fecha_limite_acreditacion = fields.Str(allow_none=True)
    form_fields = fields.List(fields.Dict(), allow_none=True)
    config = fields.Dict(allow_none=True)
    event_type = fields.Str(validate=validate.OneOf(['simple', 'multidia'],
                                                    error="event_type debe ser simple o multidia"))
    visibility = fields.Str(validate=validate.OneOf(['public', 'invite_only'],
                                                    error="visibility debe ser public o invite_only"))
    fecha_inicio = fields.Str(allow_none=True)
    fecha_fin = fields.Str(allow_none=True)
    days = fields.List(fields.Dict(), load_default=None)


class EventCreateSchema(EventSchema):
    """Used for POST /api/events. tenant_id is checked by the tenant admin decorator."""
    tenant_id = fields.Str(required=True)
    nombre = fields.Str(required=True, validate=validate.Length(min=1, max=255))


class EventDaySchema(Schema):
    class Meta:
        unknown = EXCLUDE

    fecha = fields.Str()
    label = fields.Str()
    orden = fields.Integer()
    is_active = fields.Boolean()


class EventDaySyncSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    days = fields.List(fields.Dict(), required=True)


event_schema = EventSchema()
event_create_schema = EventCreateSchema()
event_day_schema = EventDaySchema()
event_day_sync_schema = EventDaySyncSchema()
