"""
services/credential_store.py — Teacher (principal) credential records.

Responsibilities:
  - Account creation with email normalisation and password hashing (bcrypt)
  - Case-insensitive lookups by email and lookups by one-shot token
  - Password verification and replacement
  - Email-verification and password-reset token state on the teacher row
  - Activation toggling

Layer rules:
  - No imports from routes or schemas
  - No use of flask.request, flask.g, or HTTP status codes beyond AppError
  - current_app.config is read only for bcrypt cost, password rules and the
    reset-token window
  - Commits are the route's responsibility — only flush here

Normalisation is explicit: create() calls normalize_email() and
generate_verification_token() directly. Nothing relies on ORM hooks.
"""

from __future__ import annotations

import functools
import secrets
import uuid
from datetime import datetime, timedelta, timezone

import bcrypt
from flask import current_app, has_app_context
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.app.errors import validation_error
from backend.app.models.teacher import Teacher

DEFAULT_RESET_TOKEN_TTL = timedelta(hours=2)
DEFAULT_PASSWORD_MIN_LENGTH = 8
# bcrypt refuses (5.x) or truncates (4.x) anything longer.
PASSWORD_MAX_BYTES = 72


# ── Private helpers ────────────────────────────────────────────────────────

def _config(key: str, default):
    if has_app_context():
        return current_app.config.get(key, default)
    return default


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treats naive datetimes (SQLite drops tzinfo) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _hash_password(password: str) -> str:
    rounds = _config("BCRYPT_LOG_ROUNDS", 12)
    return bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt(rounds=rounds),
    ).decode("utf-8")


def _check_password_rules(password: str) -> None:
    """Raises VALIDATION_ERROR (422) if the password is too short or too long for bcrypt."""
    min_length = _config("PASSWORD_MIN_LENGTH", DEFAULT_PASSWORD_MIN_LENGTH)
    if not isinstance(password, str) or len(password) < min_length:
        raise validation_error(
            "password",
            f"Password must be at least {min_length} characters long.",
        )
    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise validation_error(
            "password",
            f"Password must be at most {PASSWORD_MAX_BYTES} bytes long.",
        )


# ── Normalisation ──────────────────────────────────────────────────────────

def normalize_email(email: str) -> str:
    return email.strip().lower()


def generate_verification_token() -> str:
    return secrets.token_urlsafe(32)


def generate_reset_token() -> str:
    return secrets.token_urlsafe(32)


# ── Creation and lookup ────────────────────────────────────────────────────

def create(
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        session: Session,
) -> Teacher:
    """
    Creates a new teacher account.

    Raises:
      AppError(VALIDATION_ERROR, 422) — email already registered (any case)
                                        or password shorter than the minimum.
    """
    normalized = normalize_email(email)
    _check_password_rules(password)

    if find_by_email(normalized, session) is not None:
        raise validation_error(
            "email",
            "An account with this email address already exists.",
        )

    teacher = Teacher(
        id=uuid.uuid4(),
        email=normalized,
        password_hash=_hash_password(password),
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        is_active=True,
        email_verification_token=generate_verification_token(),
    )

    # The unique constraint is the real guard; a concurrent registration
    # that slipped past the lookup above lands here.
    session.add(teacher)
    try:
        session.flush()
    except IntegrityError:
        session.rollback()
        raise validation_error(
            "email",
            "An account with this email address already exists.",
        )

    return teacher


def find_by_email(email: str, session: Session) -> Teacher | None:
    """
    Case-insensitive lookup. Stored emails are already lower-case
    (ck_teachers_email_lowercase), so the unique index on email is usable.
    Returns None when no account matches.
    """
    return session.execute(
        select(Teacher).where(Teacher.email == normalize_email(email))
    ).scalar_one_or_none()


def find_by_id(teacher_id: uuid.UUID, session: Session) -> Teacher | None:
    return session.get(Teacher, teacher_id)


def find_by_password_reset_token(token: str, session: Session) -> Teacher | None:
    if not token:
        return None
    return session.execute(
        select(Teacher).where(Teacher.password_reset_token == token)
    ).scalar_one_or_none()


def find_by_verification_token(token: str, session: Session) -> Teacher | None:
    if not token:
        return None
    return session.execute(
        select(Teacher).where(Teacher.email_verification_token == token)
    ).scalar_one_or_none()


# ── Passwords ──────────────────────────────────────────────────────────────

def verify_password(teacher: Teacher, candidate: str) -> bool:
    """Constant-time comparison against the stored bcrypt hash."""
    if not isinstance(candidate, str):
        return False
    try:
        return bcrypt.checkpw(
            candidate.encode("utf-8"),
            teacher.password_hash.encode("utf-8"),
        )
    except ValueError:
        # Stored value is not a bcrypt hash, or the candidate is over 72 bytes.
        return False


@functools.lru_cache(maxsize=None)
def _placeholder_hash(rounds: int) -> bytes:
    return bcrypt.hashpw(b"placeholder-password", bcrypt.gensalt(rounds=rounds))


def check_password_without_account(candidate: str) -> bool:
    """
    Runs one bcrypt comparison at the configured cost against a placeholder
    hash, so a login for an unknown email takes as long as a wrong password.
    Always returns False.
    """
    rounds = _config("BCRYPT_LOG_ROUNDS", 12)
    if isinstance(candidate, str):
        bcrypt.checkpw(
            candidate.encode("utf-8")[:PASSWORD_MAX_BYTES],
            _placeholder_hash(rounds),
        )
    return False


def set_password(teacher: Teacher, new_password: str, session: Session) -> Teacher:
    """
    Re-hashes and stores a new password.

    Raises:
      AppError(VALIDATION_ERROR, 422) — password shorter than the minimum.
    """
    _check_password_rules(new_password)
    teacher.password_hash = _hash_password(new_password)
    session.flush()
    return teacher


# ── Email verification ─────────────────────────────────────────────────────

def verify_email(teacher: Teacher, session: Session) -> Teacher:
    teacher.email_verified_at = _utcnow()
    teacher.email_verification_token = None
    session.flush()
    return teacher


def regenerate_verification_token(teacher: Teacher, session: Session) -> Teacher:
    teacher.email_verification_token = generate_verification_token()
    session.flush()
    return teacher


# ── Password reset ─────────────────────────────────────────────────────────

def generate_password_reset_token(teacher: Teacher, session: Session) -> Teacher:
    """
    Stores a fresh reset token and stamps the request time.
    Any earlier unconsumed token is overwritten and stops working.
    """
    teacher.password_reset_token = generate_reset_token()
    teacher.password_reset_requested_at = _utcnow()
    session.flush()
    return teacher


def is_password_reset_token_valid(teacher: Teacher, now: datetime | None = None) -> bool:
    """True only if a token is present and was requested inside the window."""
    if not teacher.password_reset_token or teacher.password_reset_requested_at is None:
        return False

    window = _config("PASSWORD_RESET_TOKEN_TTL", DEFAULT_RESET_TOKEN_TTL)
    now = as_utc(now) if now is not None else _utcnow()
    requested_at = as_utc(teacher.password_reset_requested_at)
    return now - requested_at < window


def clear_password_reset_token(teacher: Teacher, session: Session) -> Teacher:
    teacher.password_reset_token = None
    teacher.password_reset_requested_at = None
    session.flush()
    return teacher


# ── Activation ─────────────────────────────────────────────────────────────

def set_active(teacher: Teacher, active: bool, session: Session) -> Teacher:
    teacher.is_active = active
    session.flush()
    return teacher
