"""
schemas/auth_schema.py — Marshmallow schemas for authentication endpoints.

Validation responsibility:
  - This file: field presence, types, lengths, formats.
  - services/credential_store.py: duplicate email (needs a DB lookup) and
    the minimum password length, which is re-checked there so that every
    path setting a password enforces it.

Request schemas inherit from marshmallow.Schema directly so they load
without an app context. TeacherSchema is dump-only and uses ma.Schema.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates

from backend.app.extensions import ma

PASSWORD_MIN_LENGTH = 8
# bcrypt only accepts the first 72 bytes of a password.
PASSWORD_MAX_BYTES = 72

_non_blank = validate.Length(min=1, error="Must not be blank.")


def _check_password_length(value: str) -> None:
    if len(value) < PASSWORD_MIN_LENGTH:
        raise ValidationError(
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters long."
        )
    if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValidationError(
            f"Password must be at most {PASSWORD_MAX_BYTES} bytes long."
        )


class RegisterSchema(Schema):
    """
    POST /auth/register

    Field rules:
      email      : valid email format, max 255 chars
      password   : min 8 chars, max 72 bytes UTF-8
      first_name : 1–100 chars
      last_name  : 1–100 chars

    Uniqueness is checked in credential_store.py, not here.
    """

    email = fields.Email(
        required=True,
        validate=validate.Length(max=255),
    )
    password = fields.Str(required=True, load_only=True)
    first_name = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    last_name = fields.Str(required=True, validate=validate.Length(min=1, max=100))

    @validates("password")
    def validate_password_length(self, value: str, **kwargs) -> None:
        _check_password_length(value)

    @validates("first_name")
    def validate_first_name(self, value: str, **kwargs) -> None:
        if not value.strip():
            raise ValidationError("Must not be blank.")

    @validates("last_name")
    def validate_last_name(self, value: str, **kwargs) -> None:
        if not value.strip():
            raise ValidationError("Must not be blank.")


class LoginSchema(Schema):
    """
    POST /auth/login

    Credential correctness is checked in session_service.py
    (INVALID_CREDENTIALS, 401).
    """

    email = fields.Str(required=True, validate=_non_blank)
    password = fields.Str(required=True, load_only=True)


class RefreshTokenSchema(Schema):
    """
    POST /auth/refresh, POST /auth/logout

    Token validity is checked in session_service.py (TOKEN_INVALID, 401).
    """

    refresh_token = fields.Str(required=True, validate=_non_blank)


class PasswordResetRequestSchema(Schema):
    """POST /auth/password/reset-request"""

    email = fields.Str(required=True, validate=_non_blank)


class PasswordResetSchema(Schema):
    """POST /auth/password/reset"""

    token = fields.Str(required=True, validate=_non_blank)
    password = fields.Str(required=True, load_only=True)

    @validates("password")
    def validate_password_length(self, value: str, **kwargs) -> None:
        _check_password_length(value)


class PasswordChangeSchema(Schema):
    """POST /auth/password/change"""

    current_password = fields.Str(required=True, load_only=True)
    new_password = fields.Str(required=True, load_only=True)

    @validates("new_password")
    def validate_password_length(self, value: str, **kwargs) -> None:
        _check_password_length(value)


class EmailVerifySchema(Schema):
    """POST /auth/email/verify"""

    token = fields.Str(required=True, validate=_non_blank)


class TeacherSchema(ma.Schema):
    """Public view of a teacher account. Never includes the password hash."""

    id = fields.UUID(dump_only=True)
    email = fields.Str(dump_only=True)
    first_name = fields.Str(dump_only=True)
    last_name = fields.Str(dump_only=True)
    is_active = fields.Bool(dump_only=True)
    email_verified = fields.Bool(dump_only=True)
    email_verified_at = fields.DateTime(dump_only=True)
    created_at = fields.DateTime(dump_only=True)
