"""
routes/auth.py — Authentication route handlers.

Layer rules:
  - Parse request body
  - Validate with the appropriate schema (raises ValidationError on bad input)
  - Call exactly ONE service function
  - Commit the DB session
  - Return the standard response envelope: {"success": true, "data": ...}

No business logic here. No DB queries. AppError propagates to the global
error handler in app/__init__.py — routes never catch it.

Endpoints (url_prefix=/api/v1/auth):
  POST   /register                    → 201
  POST   /login                       → 200
  POST   /refresh                     → 200
  POST   /logout                      → 204
  POST   /logout-all                  → 204  (auth)
  POST   /password/reset-request      → 200
  POST   /password/reset              → 200
  POST   /password/change             → 200  (auth)
  POST   /email/verify                → 200
  POST   /email/resend-verification   → 200  (auth)
  GET    /me                          → 200  (auth)
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request
from marshmallow import ValidationError

from backend.app.errors import token_invalid
from backend.app.extensions import db
from backend.app.middleware.auth_middleware import current_teacher, require_auth
from backend.app.schemas.auth_schema import (
    EmailVerifySchema,
    LoginSchema,
    PasswordChangeSchema,
    PasswordResetRequestSchema,
    PasswordResetSchema,
    RefreshTokenSchema,
    RegisterSchema,
    TeacherSchema,
)
from backend.app.services import account_service, session_service

auth_bp = Blueprint("auth", __name__)

_teacher_schema = TeacherSchema()


def _body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _ok(data, status: int = 200):
    return jsonify({"success": True, "data": data}), status


@auth_bp.route("/register", methods=["POST"])
def register():
    """POST /auth/register — Create account. (No auth required.)"""
    data = RegisterSchema().load(_body())
    teacher = account_service.register(
        email=data["email"],
        password=data["password"],
        first_name=data["first_name"],
        last_name=data["last_name"],
        session=db.session,
    )
    db.session.commit()
    return _ok(_teacher_schema.dump(teacher), 201)


@auth_bp.route("/login", methods=["POST"])
def login():
    """POST /auth/login — Authenticate; return tokens. (No auth required.)"""
    data = LoginSchema().load(_body())
    result = session_service.login(
        email=data["email"],
        password=data["password"],
        session=db.session,
    )
    db.session.commit()
    return _ok(result)


@auth_bp.route("/refresh", methods=["POST"])
def refresh():
    """POST /auth/refresh — Exchange refresh token for a new access token."""
    try:
        data = RefreshTokenSchema().load(_body())
    except ValidationError:
        raise token_invalid()
    result = session_service.refresh(
        raw_refresh_token=data["refresh_token"],
        session=db.session,
    )
    return _ok(result)


@auth_bp.route("/logout", methods=["POST"])
def logout():
    """POST /auth/logout — Revoke a refresh token. Always 204 for well-formed input."""
    try:
        data = RefreshTokenSchema().load(_body())
    except ValidationError:
        raise token_invalid()
    session_service.logout(
        raw_refresh_token=data["refresh_token"],
        session=db.session,
    )
    db.session.commit()
    return "", 204


@auth_bp.route("/logout-all", methods=["POST"])
@require_auth
def logout_all():
    """POST /auth/logout-all — Revoke every refresh token of the caller. (Auth required.)"""
    session_service.logout_all(teacher_id=g.teacher_id, session=db.session)
    db.session.commit()
    return "", 204


@auth_bp.route("/password/reset-request", methods=["POST"])
def password_reset_request():
    """POST /auth/password/reset-request — Same response whether or not the email exists."""
    data = PasswordResetRequestSchema().load(_body())
    account_service.request_password_reset(email=data["email"], session=db.session)
    db.session.commit()
    return _ok({
        "message": "If an account exists for this email, a reset link has been sent.",
    })


@auth_bp.route("/password/reset", methods=["POST"])
def password_reset():
    """POST /auth/password/reset — Consume a reset token and set a new password."""
    data = PasswordResetSchema().load(_body())
    account_service.perform_password_reset(
        token=data["token"],
        new_password=data["password"],
        session=db.session,
    )
    db.session.commit()
    return _ok({"message": "Your password has been reset."})


@auth_bp.route("/password/change", methods=["POST"])
@require_auth
def password_change():
    """POST /auth/password/change — Change password. (Auth required.)"""
    data = PasswordChangeSchema().load(_body())
    account_service.change_password(
        teacher=current_teacher(),
        current_password=data["current_password"],
        new_password=data["new_password"],
        session=db.session,
    )
    db.session.commit()
    return _ok({"message": "Your password has been changed."})


@auth_bp.route("/email/verify", methods=["POST"])
def email_verify():
    """POST /auth/email/verify — Consume an email verification token."""
    data = EmailVerifySchema().load(_body())
    teacher = account_service.verify_email(token=data["token"], session=db.session)
    db.session.commit()
    return _ok(_teacher_schema.dump(teacher))


@auth_bp.route("/email/resend-verification", methods=["POST"])
@require_auth
def email_resend_verification():
    """POST /auth/email/resend-verification — Issue a new verification token. (Auth required.)"""
    account_service.resend_verification(teacher=current_teacher(), session=db.session)
    db.session.commit()
    return _ok({"message": "A new verification email has been sent."})


@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    """GET /auth/me — Return the current teacher's profile. (Auth required.)"""
    teacher = account_service.get_profile(teacher_id=g.teacher_id, session=db.session)
    return _ok(_teacher_schema.dump(teacher))
