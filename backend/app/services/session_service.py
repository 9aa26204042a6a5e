"""
services/session_service.py — Login, refresh and logout.

Session lifecycle per client:

  Unauthenticated --login--> Authenticated(access, refresh)
  Authenticated --refresh--> Authenticated(new access, same refresh)
  Authenticated --logout / refresh revoked / refresh expired--> Unauthenticated

Token design:
  - Access token: JWT, 1 h TTL by default, never stored, not revocable.
  - Refresh token: JWT with a jti, 30 d TTL by default, one DB row per token
    (stored as a SHA-256 digest). Revoked on logout and on credential change.
  - Refresh tokens are issued at login only and are NOT rotated on refresh:
    the same refresh token keeps minting access tokens until it expires or
    is revoked. Concurrent refreshes with one token all succeed.

Layer rules:
  - No imports from routes or schemas
  - No use of flask.request or flask.g
  - Commits are the route's responsibility — only flush here
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy.orm import Session

from backend.app.errors import account_inactive, invalid_credentials, token_invalid
from backend.app.services import credential_store, refresh_token_store
from backend.app.services.token_codec import get_codec

TOKEN_TYPE = "Bearer"


def _access_ttl():
    return current_app.config["JWT_ACCESS_TOKEN_EXPIRES"]


def _refresh_ttl():
    return current_app.config["JWT_REFRESH_TOKEN_EXPIRES"]


def _issue_access_token(teacher_id: uuid.UUID) -> dict:
    ttl = _access_ttl()
    return {
        "access_token": get_codec().encode_access(teacher_id, ttl),
        "expires_in": int(ttl.total_seconds()),
        "token_type": TOKEN_TYPE,
    }


def _issue_refresh_token(teacher_id: uuid.UUID, session: Session) -> dict:
    """Mints a refresh token and persists its record. Returns the raw token."""
    ttl = _refresh_ttl()
    now = datetime.now(timezone.utc)
    token, jti = get_codec().encode_refresh(teacher_id, ttl, now=now)
    refresh_token_store.persist(
        teacher_id=teacher_id,
        token_value=token,
        jti=jti,
        expires_at=now + ttl,
        session=session,
    )
    return {
        "refresh_token": token,
        "refresh_expires_in": int(ttl.total_seconds()),
    }


# ── Public service functions ───────────────────────────────────────────────

def login(email: str, password: str, session: Session) -> dict:
    """
    Validates credentials and issues an access + refresh token pair.

    Raises:
      AppError(INVALID_CREDENTIALS, 401) — unknown email or wrong password.
        The same error is used for both to avoid account enumeration.
      AppError(UNAUTHORIZED, 401)        — the account is deactivated.

    Returns: {"access_token", "refresh_token", "expires_in",
              "refresh_expires_in", "token_type"}
    """
    teacher = credential_store.find_by_email(email, session)
    if teacher is None:
        credential_store.check_password_without_account(password)
        current_app.logger.info(
            "Login failed: no account for %s",
            credential_store.normalize_email(email),
        )
        raise invalid_credentials()

    if not teacher.is_active:
        current_app.logger.info("Login refused: teacher %s is inactive", teacher.id)
        raise account_inactive()

    if not credential_store.verify_password(teacher, password):
        current_app.logger.info("Login failed: wrong password for teacher %s", teacher.id)
        raise invalid_credentials()

    tokens = {
        **_issue_access_token(teacher.id),
        **_issue_refresh_token(teacher.id, session),
    }
    current_app.logger.info("Login succeeded for teacher %s", teacher.id)
    return tokens


def refresh(raw_refresh_token: str, session: Session) -> dict:
    """
    Validates a refresh token and issues a new access token.

    The refresh token itself is NOT rotated.

    Raises:
      AppError(TOKEN_INVALID, 401) — malformed, wrong type, expired, unknown
                                     or revoked refresh token.
      AppError(UNAUTHORIZED, 401)  — the owning account is deactivated.

    Returns: {"access_token", "expires_in", "token_type"}
    """
    claims = get_codec().decode_refresh(raw_refresh_token)

    record = refresh_token_store.find_active_by_token_value(raw_refresh_token, session)
    if record is None or record.teacher_id != claims.principal_id:
        raise token_invalid()

    teacher = credential_store.find_by_id(record.teacher_id, session)
    if teacher is None:
        raise token_invalid()
    if not teacher.is_active:
        raise account_inactive()

    return _issue_access_token(teacher.id)


def logout(raw_refresh_token: str, session: Session) -> None:
    """
    Revokes a refresh token. Best effort and idempotent: an unknown or
    already-revoked token is not an error.

    Access tokens are not revocable; they run out after their short TTL.
    """
    record = refresh_token_store.find_by_token_value(raw_refresh_token, session)
    if record is None:
        return

    if refresh_token_store.revoke(record, session):
        current_app.logger.info(
            "Refresh token %s revoked for teacher %s", record.id, record.teacher_id
        )


def logout_all(teacher_id: uuid.UUID, session: Session) -> int:
    """Revokes every refresh token of the teacher. Returns how many were revoked."""
    count = refresh_token_store.revoke_all_for_principal(teacher_id, session)
    current_app.logger.info(
        "Revoked %d refresh token(s) for teacher %s", count, teacher_id
    )
    return count
