"""
Auth Schemas for request validation.

Schemas:
- RegisterSchema: Account creation (email + password, optional RUT)
- LoginSchema: Email/password login
- ChangePasswordSchema: Password change (current optional for forced changes)
- MagicLinkRequestSchema: Passwordless login request
"""

from marshmallow import Schema, fields, validate, validates, ValidationError, EXCLUDE, pre_load


class _EmailNormalizingSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    @pre_load
    def normalize_email(self, data, **kwargs):
        if isinstance(data, dict) and isinstance(data.get('email'), str):
            data = dict(data)
            data['email'] = data['email'].strip().lower()
        return data


class RegisterSchema(_EmailNormalizingSchema):
    """Used for POST /api/auth/register."""
    email = fields.Email(required=True, validate=validate.Length(max=255))
    password = fields.Str(required=True, load_only=True)
    rut = fields.Str(load_default=None, allow_none=True)


class LoginSchema(_EmailNormalizingSchema):
    email = fields.Email(required=True)
    password = fields.Str(required=True, load_only=True)

    @validates('password')
    def validate_password_present(self, value, **kwargs):
        if not value:
            raise ValidationError("Password es requerido")


class ChangePasswordSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    current_password = fields.Str(load_default=None, allow_none=True, load_only=True)
    new_password = fields.Str(required=True, load_only=True)


class MagicLinkRequestSchema(_EmailNormalizingSchema):
    email = fields.Email(required=True)
    next = fields.Str(load_default='/')

    @validates('next')
    def validate_next(self, value, **kwargs):
        # only same-site relative paths
        if not value.startswith('/') or value.startswith('//'):
            raise ValidationError("next debe ser una ruta relativa")


register_schema = RegisterSchema()
login_schema = LoginSchema()
change_password_schema = ChangePasswordSchema()
magic_link_request_schema = MagicLinkRequestSchema()
