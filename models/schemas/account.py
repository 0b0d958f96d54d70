from flask import current_app, has_app_context
from marshmallow import EXCLUDE, Schema, fields, pre_load, validate, validates, ValidationError

from models.account import ROLES, ROLE_ADMIN, ROLE_USER, normalize_email

DEFAULT_PASSWORD_MIN_LENGTH = 8


def _check_password_length(value):
    minimum = DEFAULT_PASSWORD_MIN_LENGTH
    if has_app_context():
        minimum = current_app.config.get("PASSWORD_MIN_LENGTH", minimum)
    if len(value) < minimum:
        raise ValidationError(f"Password must be at least {minimum} characters long.")


class _NormalizedEmailMixin:
    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and isinstance(data.get("email"), str):
            data = dict(data)
            data["email"] = normalize_email(data["email"])
        return data


class AccountCreateSchema(_NormalizedEmailMixin, Schema):
    name = fields.String(required=True, validate=validate.Length(min=2, max=255))
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)

    @validates("password")
    def validate_password(self, value, **kwargs):
        _check_password_length(value)


class LoginSchema(_NormalizedEmailMixin, Schema):
    email = fields.String(required=True)
    password = fields.String(required=True, load_only=True)


class PasswordChangeSchema(Schema):
    current_password = fields.String(required=True, load_only=True)
    new_password = fields.String(required=True, load_only=True)

    @validates("new_password")
    def validate_new_password(self, value, **kwargs):
        _check_password_length(value)


class ResetRequestSchema(_NormalizedEmailMixin, Schema):
    email = fields.String(required=True, validate=validate.Length(min=1))


class ResetConfirmSchema(Schema):
    reset_token = fields.String(required=True, validate=validate.Length(min=1), load_only=True)
    new_password = fields.String(required=True, load_only=True)

    @validates("new_password")
    def validate_new_password(self, value, **kwargs):
        _check_password_length(value)


class AccountDeleteSchema(Schema):
    password = fields.String(required=True, validate=validate.Length(min=1), load_only=True)


class AccountUpdateSchema(_NormalizedEmailMixin, Schema):
    """Fields an administrator may change on another account."""
    name = fields.String(validate=validate.Length(min=2, max=255))
    email = fields.Email()
    role = fields.String(validate=validate.OneOf(ROLES))
    is_active = fields.Boolean()
    new_password = fields.String(load_only=True)

    @validates("new_password")
    def validate_new_password(self, value, **kwargs):
        _check_password_length(value)


class AccountOutSchema(Schema):
    id = fields.String(allow_none=False)
    name = fields.String(allow_none=True)
    email = fields.String(allow_none=False)
    role = fields.String()
    is_active = fields.Boolean()
    last_login = fields.DateTime(allow_none=True)
    created_at = fields.DateTime(allow_none=True)
    updated_at = fields.DateTime(allow_none=True)


class AccountListQuerySchema(Schema):
    class Meta:
        unknown = EXCLUDE

    role = fields.String(validate=validate.OneOf((ROLE_USER, ROLE_ADMIN)), load_default=None)
    q = fields.String(load_default=None)
