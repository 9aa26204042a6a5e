"""
models/teacher.py — Teacher (principal) table definition.

Columns and constraints only. No business logic. No imports from services
or routes. Field normalisation (lowercase email, token generation) happens
explicitly in services/credential_store.py, not in ORM event hooks.

Uniqueness of email and of both one-shot tokens is enforced by the database.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.extensions import db


class Teacher(db.Model):
    __tablename__ = "teachers"

    __table_args__ = (
        # Emails are stored lowercase so the unique constraint is case-insensitive.
        CheckConstraint(
            "email = LOWER(email)",
            name="ck_teachers_email_lowercase",
        ),
        CheckConstraint(
            "email LIKE '%@%'",
            name="ck_teachers_email_format",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
    )

    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Inactive teachers authenticate for nothing. Deactivation is the only
    # way an account is retired; rows are never hard-deleted.
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default="true",
    )

    email_verified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    email_verification_token: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        unique=True,
    )

    password_reset_token: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        unique=True,
    )
    password_reset_requested_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    refresh_tokens: Mapped[list["RefreshToken"]] = relationship(  # noqa: F821
        "RefreshToken",
        back_populates="teacher",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def email_verified(self) -> bool:
        return self.email_verified_at is not None

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Teacher id={self.id} email={self.email!r} active={self.is_active}>"
