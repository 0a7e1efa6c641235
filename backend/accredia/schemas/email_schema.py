"""Email template and zone content schemas."""

from marshmallow import Schema, fields, validate, EXCLUDE

TIPO_CHOICES = ['aprobacion', 'rechazo']


class EmailTemplateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    tenant_id = fields.Str(required=True)
    tipo = fields.Str(required=True, validate=validate.OneOf(TIPO_CHOICES, error="tipo inválido"))
    subject = fields.Str(load_default=None, allow_none=True)
    body_html = fields.Str(load_default=None, allow_none=True)
    info_general = fields.Str(load_default=None, allow_none=True)


class EmailZoneContentSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    tenant_id = fields.Str(required=True)
    tipo = fields.Str(load_default='aprobacion', validate=validate.OneOf(TIPO_CHOICES, error="tipo inválido"))
    zona = fields.Str(load_default=None, allow_none=True)
    titulo = fields.Str(load_default=None, allow_none=True)
    instrucciones_acceso = fields.Str(load_default=None, allow_none=True)
    info_especifica = fields.Str(load_default=None, allow_none=True)
    notas_importantes = fields.Str(load_default=None, allow_none=True)


class EmailPreviewSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    tenant_id = fields.Str(required=True)
    tipo = fields.Str(load_default='aprobacion', validate=validate.OneOf(TIPO_CHOICES, error="tipo inválido"))
    subject = fields.Str(load_default=None, allow_none=True)
    body_html = fields.Str(load_default=None, allow_none=True)


email_template_schema = EmailTemplateSchema()
email_zone_content_schema = EmailZoneContentSchema()
email_preview_schema = EmailPreviewSchema()
