"""Quota and zone rule schemas."""

from marshmallow import Schema, fields, validate, EXCLUDE


class QuotaRuleSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    tipo_medio = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    max_per_organization = fields.Integer(required=True, validate=validate.Range(min=0))
    max_global = fields.Integer(load_default=0, validate=validate.Range(min=0))


class ZoneRuleSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    cargo = fields.Str(required=True, validate=validate.Length(min=1, max=150))
    zona = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    match_field = fields.Str(load_default='cargo', validate=validate.OneOf(['cargo', 'tipo_medio']))


quota_rule_schema = QuotaRuleSchema()
zone_rule_schema = ZoneRuleSchema()
