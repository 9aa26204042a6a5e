"""
middleware/auth_middleware.py — Bearer-token authentication decorator.

The @require_auth decorator:
  1. Reads the Authorization header (expected: "Bearer <token>")
  2. Decodes and verifies the access token through TokenCodec
  3. Loads the teacher and checks the active flag
  4. Attaches teacher_id and teacher to flask.g for the duration of the request
  5. Raises the appropriate 401 AppError if any step fails

This is the only place credentials are checked for a request. Resource
routes read g.teacher_id as their owning-teacher scope and never re-verify.

Error codes:
  TOKEN_MISSING  (401) — no Authorization header
  TOKEN_INVALID  (401) — malformed header, or any token decode failure
                         (bad signature, expired, refresh token, bad claims)
  UNAUTHORIZED   (401) — teacher not found or inactive
"""

from __future__ import annotations

import functools
from typing import Callable

from flask import g, request

from backend.app.errors import AppError, ErrorCode, token_invalid
from backend.app.extensions import db
from backend.app.models.teacher import Teacher
from backend.app.services import credential_store
from backend.app.services.token_codec import get_codec


def require_auth(f: Callable) -> Callable:
    """
    Route decorator that enforces bearer-token authentication.

    Usage:
        @students_bp.route("/")
        @require_auth
        def list_students():
            teacher_id = g.teacher_id  # always a UUID when this runs
            ...
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate_request()
        return f(*args, **kwargs)

    return decorated


def current_teacher() -> Teacher:
    """The teacher resolved by @require_auth for this request."""
    return g.teacher


def _authenticate_request() -> None:
    """
    Performs the full authentication sequence and sets flask.g.teacher_id.

    Raises AppError on any failure (never returns a response directly — the
    error propagates to the global Flask error handler).
    """
    auth_header = request.headers.get("Authorization", "")

    # ── Step 1: Require Authorization header ──────────────────────────────
    if not auth_header:
        raise AppError(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Provide a Bearer token in the Authorization header.",
            401,
        )

    # ── Step 2: Parse "Bearer <token>" format ─────────────────────────────
    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise token_invalid()

    # ── Step 3: Decode and verify the access token ────────────────────────
    claims = get_codec().decode(parts[1])

    # ── Step 4: Resolve the teacher ───────────────────────────────────────
    teacher = credential_store.find_by_id(claims.principal_id, db.session)
    if teacher is None or not teacher.is_active:
        raise AppError(
            ErrorCode.UNAUTHORIZED,
            "The account for this token is unavailable.",
            401,
        )

    # ── Step 5: Attach to flask.g ─────────────────────────────────────────
    g.teacher_id = teacher.id
    g.teacher = teacher
