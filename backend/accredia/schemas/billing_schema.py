"""Billing request schemas."""

from marshmallow import Schema, fields, validate, EXCLUDE

CURRENCIES = ['CLP', 'BRL', 'USD']


class CheckoutSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    tenant_id = fields.Str(required=True)
    plan_slug = fields.Str(required=True)
    currency = fields.Str(load_default='CLP', validate=validate.OneOf(CURRENCIES, error="Moneda no soportada"))


class AssignPlanSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    tenant_id = fields.Str(required=True)
    plan_id = fields.Str(load_default=None, allow_none=True)
    plan_slug = fields.Str(load_default=None, allow_none=True)


checkout_schema = CheckoutSchema()
assign_plan_schema = AssignPlanSchema()
