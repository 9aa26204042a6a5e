"""
services/refresh_token_store.py — Persistence and revocation of refresh tokens.

One RefreshToken row exists per issued refresh token. The raw token value is
never stored: lookups and inserts go through digest_token() (SHA-256), so a
leaked table does not expose usable tokens.

Concurrency:
  - "Active" is decided in SQL (revoked_at IS NULL AND expires_at > now),
    never from a stale in-memory row.
  - Revocation is a single conditional UPDATE ... WHERE revoked_at IS NULL,
    so it is atomic and a revoked row never becomes active again.
  - Nothing here holds in-process state; the database is the only shared
    resource.

Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import hashlib
import uuid
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.app.errors import AppError, ErrorCode
from backend.app.models.refresh_token import RefreshToken


def digest_token(raw_token: str) -> str:
    """SHA-256 hex digest of a raw token string."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def persist(
        teacher_id: uuid.UUID,
        token_value: str,
        jti: str,
        expires_at: datetime,
        session: Session,
) -> RefreshToken:
    """
    Stores a record for a freshly issued refresh token.

    Raises:
      AppError(CONFLICT, 409) — token value or jti already stored. This is
        practically unreachable with random jtis, but an existing row is
        never overwritten. The caller must not retry with the same jti.
    """
    record = RefreshToken(
        teacher_id=teacher_id,
        token_digest=digest_token(token_value),
        jti=jti,
        expires_at=expires_at,
    )
    session.add(record)
    try:
        session.flush()
    except IntegrityError:
        session.rollback()
        raise AppError(
            ErrorCode.CONFLICT,
            "A refresh token with this identifier already exists.",
            409,
        )
    return record


def find_by_token_value(token_value: str, session: Session) -> RefreshToken | None:
    """Returns the record for `token_value` whatever its state, or None."""
    return session.execute(
        select(RefreshToken).where(RefreshToken.token_digest == digest_token(token_value))
    ).scalar_one_or_none()


def find_active_by_token_value(token_value: str, session: Session) -> RefreshToken | None:
    """Returns the record only if it is neither revoked nor expired."""
    return session.execute(
        select(RefreshToken)
        .where(
            RefreshToken.token_digest == digest_token(token_value),
            RefreshToken.revoked_at.is_(None),
            RefreshToken.expires_at > _utcnow(),
        )
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def revoke(record: RefreshToken, session: Session) -> bool:
    """
    Marks `record` revoked. Idempotent: an already-revoked record is left
    untouched and no error is raised.

    Returns True if this call performed the revocation.
    """
    now = _utcnow()
    result = session.execute(
        update(RefreshToken)
        .where(
            RefreshToken.id == record.id,
            RefreshToken.revoked_at.is_(None),
        )
        .values(revoked_at=now)
        .execution_options(synchronize_session=False)
    )
    session.flush()
    session.refresh(record)
    return result.rowcount == 1


def revoke_all_for_principal(teacher_id: uuid.UUID, session: Session) -> int:
    """
    Revokes every unrevoked record owned by `teacher_id`.
    Used by logout-everywhere, password change, password reset and deactivation.

    Returns the number of records revoked.
    """
    result = session.execute(
        update(RefreshToken)
        .where(
            RefreshToken.teacher_id == teacher_id,
            RefreshToken.revoked_at.is_(None),
        )
        .values(revoked_at=_utcnow())
        .execution_options(synchronize_session=False)
    )
    session.flush()
    # Rows already loaded in this session must not keep a stale revoked_at.
    session.expire_all()
    return result.rowcount
