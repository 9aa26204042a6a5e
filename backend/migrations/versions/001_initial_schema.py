"""Initial schema — teachers and refresh_tokens.

Revision: 001_initial_schema
Created:  2026-10-18

Append-only:
  This file must NEVER be edited after it has been applied to any database.
  If a schema change is required, create a NEW migration file.

Creation order:
  1. teachers
  2. refresh_tokens (FK → teachers, ON DELETE CASCADE)
  3. Indexes

Uniqueness of email, one-shot tokens, token digests and jtis is enforced
here by named unique constraints, not by application locks.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration
branch_labels: tuple | None = None
depends_on: tuple | None = None


def upgrade() -> None:

    # ── Step 1: teachers ───────────────────────────────────────────────────
    # Emails are stored lowercase, so a plain UNIQUE is case-insensitive.

    op.create_table(
        "teachers",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column(
            "is_active",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("TRUE"),
        ),
        sa.Column("email_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("email_verification_token", sa.String(64), nullable=True),
        sa.Column("password_reset_token", sa.String(64), nullable=True),
        sa.Column("password_reset_requested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_teachers"),
        sa.UniqueConstraint("email", name="uq_teachers_email"),
        sa.UniqueConstraint(
            "email_verification_token",
            name="uq_teachers_email_verification_token",
        ),
        sa.UniqueConstraint(
            "password_reset_token",
            name="uq_teachers_password_reset_token",
        ),
        sa.CheckConstraint(
            "email = LOWER(email)",
            name="ck_teachers_email_lowercase",
        ),
        sa.CheckConstraint(
            "email LIKE '%@%'",
            name="ck_teachers_email_format",
        ),
    )

    # ── Step 2: refresh_tokens ─────────────────────────────────────────────
    # revoked_at IS NULL = usable; set once on revocation, never cleared.

    op.create_table(
        "refresh_tokens",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "teacher_id",
            sa.Uuid(),
            sa.ForeignKey("teachers.id", ondelete="CASCADE", name="fk_refresh_tokens_teacher"),
            nullable=False,
        ),
        sa.Column("token_digest", sa.String(64), nullable=False),
        sa.Column("jti", sa.String(64), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_refresh_tokens"),
        sa.UniqueConstraint("token_digest", name="uq_refresh_tokens_digest"),
        sa.UniqueConstraint("jti", name="uq_refresh_tokens_jti"),
    )

    # ── Step 3: Indexes ────────────────────────────────────────────────────

    # refresh_tokens: bulk revocation by teacher.
    op.create_index(
        "idx_refresh_tokens_teacher",
        "refresh_tokens",
        ["teacher_id"],
    )
    # Partial index: only active rows are ever looked up for refresh.
    op.create_index(
        "idx_refresh_tokens_active",
        "refresh_tokens",
        ["teacher_id"],
        postgresql_where=sa.text("revoked_at IS NULL"),
    )


def downgrade() -> None:
    """
    Drop all objects created in upgrade(), in reverse dependency order.
    Provided for local development reset only.
    """
    op.drop_index("idx_refresh_tokens_active",  table_name="refresh_tokens")
    op.drop_index("idx_refresh_tokens_teacher", table_name="refresh_tokens")

    op.drop_table("refresh_tokens")
    op.drop_table("teachers")
