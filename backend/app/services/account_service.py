"""
services/account_service.py — Registration, password reset / change and
email verification.

The one-shot tokens live on the teacher row (see credential_store.py):
  - email_verification_token: created at registration, cleared once on
    successful verification, regenerated on resend.
  - password_reset_token: valid for PASSWORD_RESET_TOKEN_TTL (2 h) after
    the request; a new request overwrites the old token; consuming it clears
    both reset fields.

Any credential change (reset or change) revokes every refresh token of the
teacher, ending all of their sessions.

Layer rules:
  - No imports from routes or schemas
  - No use of flask.request or flask.g
  - Commits are the route's responsibility — only flush here
"""

from __future__ import annotations

import uuid

from flask import current_app
from sqlalchemy.orm import Session

from backend.app.errors import AppError, ErrorCode, invalid_credentials, invalid_one_shot_token
from backend.app.models.teacher import Teacher
from backend.app.services import credential_store, mail_service, refresh_token_store


def register(
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        session: Session,
) -> Teacher:
    """
    Creates a teacher account and mails the verification link.

    Raises:
      AppError(VALIDATION_ERROR, 422) — duplicate email or short password.
    """
    teacher = credential_store.create(
        email=email,
        password=password,
        first_name=first_name,
        last_name=last_name,
        session=session,
    )
    mail_service.send_verification_email(teacher)
    current_app.logger.info("Registered teacher %s", teacher.id)
    return teacher


def get_profile(teacher_id: uuid.UUID, session: Session) -> Teacher:
    """
    Raises:
      AppError(NOT_FOUND, 404) — the teacher no longer exists.
    """
    teacher = credential_store.find_by_id(teacher_id, session)
    if teacher is None:
        raise AppError(
            ErrorCode.NOT_FOUND,
            f"Teacher {teacher_id} not found.",
            404,
        )
    return teacher


# ── Password reset ─────────────────────────────────────────────────────────

def request_password_reset(email: str, session: Session) -> None:
    """
    Starts a password reset. Never reveals whether the email is registered:
    the caller always reports success. A token is generated and mailed only
    for an existing, active account.
    """
    teacher = credential_store.find_by_email(email, session)
    if teacher is None or not teacher.is_active:
        current_app.logger.info("Password reset requested for unknown or inactive account")
        return

    credential_store.generate_password_reset_token(teacher, session)
    mail_service.send_password_reset_email(teacher)
    current_app.logger.info("Password reset token issued for teacher %s", teacher.id)


def perform_password_reset(token: str, new_password: str, session: Session) -> None:
    """
    Consumes a reset token and sets the new password.

    Raises:
      AppError(INVALID_TOKEN, 400)    — unknown token or outside the window.
      AppError(VALIDATION_ERROR, 422) — new password too short.
    """
    teacher = credential_store.find_by_password_reset_token(token, session)
    if teacher is None or not credential_store.is_password_reset_token_valid(teacher):
        raise invalid_one_shot_token()

    credential_store.set_password(teacher, new_password, session)
    credential_store.clear_password_reset_token(teacher, session)
    teacher_id = teacher.id
    revoked = refresh_token_store.revoke_all_for_principal(teacher_id, session)
    current_app.logger.info(
        "Password reset for teacher %s; %d session(s) revoked", teacher_id, revoked
    )


def change_password(
        teacher: Teacher,
        current_password: str,
        new_password: str,
        session: Session,
) -> None:
    """
    Raises:
      AppError(INVALID_CREDENTIALS, 401) — current password is wrong.
      AppError(VALIDATION_ERROR, 422)    — new password too short.
    """
    if not credential_store.verify_password(teacher, current_password):
        raise invalid_credentials()

    credential_store.set_password(teacher, new_password, session)
    teacher_id = teacher.id
    revoked = refresh_token_store.revoke_all_for_principal(teacher_id, session)
    current_app.logger.info(
        "Password changed for teacher %s; %d session(s) revoked", teacher_id, revoked
    )


# ── Email verification ─────────────────────────────────────────────────────

def verify_email(token: str, session: Session) -> Teacher:
    """
    Raises:
      AppError(INVALID_TOKEN, 400) — no account holds this token.
    """
    teacher = credential_store.find_by_verification_token(token, session)
    if teacher is None:
        raise invalid_one_shot_token()

    credential_store.verify_email(teacher, session)
    current_app.logger.info("Email verified for teacher %s", teacher.id)
    return teacher


def resend_verification(teacher: Teacher, session: Session) -> None:
    credential_store.regenerate_verification_token(teacher, session)
    mail_service.send_verification_email(teacher)


# ── Activation ─────────────────────────────────────────────────────────────

def set_active(teacher: Teacher, active: bool, session: Session) -> int:
    """
    Flips the active flag. Deactivation also revokes every refresh token.
    Returns the number of refresh tokens revoked.
    """
    credential_store.set_active(teacher, active, session)
    if active:
        return 0
    return refresh_token_store.revoke_all_for_principal(teacher.id, session)
