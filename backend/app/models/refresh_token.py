"""
models/refresh_token.py — RefreshToken table definition.

One row per issued refresh token. No business logic. No imports from
services or routes.

FK policy: teacher_id ON DELETE CASCADE — the token is owned by the teacher.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.extensions import db


class RefreshToken(db.Model):
    __tablename__ = "refresh_tokens"

    __table_args__ = (
        Index("idx_refresh_tokens_teacher", "teacher_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    teacher_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("teachers.id", ondelete="CASCADE"),
        nullable=False,
    )

    # SHA-256 hex digest of the raw refresh token, never the token itself.
    # refresh_token_store.digest_token() computes it before any read/write.
    token_digest: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
    )

    # Same value as the `jti` claim inside the signed token.
    jti: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    # NULL while the token is usable. Set once, never cleared.
    revoked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    teacher: Mapped["Teacher"] = relationship(  # noqa: F821
        "Teacher",
        back_populates="refresh_tokens",
    )

    @property
    def revoked(self) -> bool:
        return self.revoked_at is not None

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<RefreshToken id={self.id} "
            f"teacher_id={self.teacher_id} "
            f"revoked={self.revoked}>"
        )
