"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - The app is created once per session using create_app("testing").
    TestingConfig uses in-memory SQLite unless TEST_DATABASE_URL points at
    a real database (e.g. PostgreSQL).
  - All tables are created once via db.create_all() at session start.
  - Between tests, all rows are deleted in FK-safe order and the mail
    outbox is emptied, so tests are isolated.

Helper functions (not fixtures) are provided for common operations:
  - register(client, ...)    → teacher dict
  - login(client, ...)       → token dict
  - auth_headers(token)      → {"Authorization": "Bearer <token>"}
  - last_mail(app, kind)     → most recent captured MailMessage of that kind

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test without fixture parameterization overhead.
"""

from __future__ import annotations

import pytest
from sqlalchemy import text

from backend.app import create_app
from backend.app.extensions import db as _db
from backend.app.services.mail_service import OUTBOX_KEY

DEFAULT_PASSWORD = "password123"


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    """
    Creates the Flask application in 'testing' mode once for the entire
    test session, creates all tables, and drops them at teardown.
    """
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """
    Deletes all rows after every test. refresh_tokens goes before teachers
    (CASCADE would handle it, but be explicit).
    """
    yield  # run the test

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test

        with _db.engine.connect() as conn:
            conn.execute(text("DELETE FROM refresh_tokens"))
            conn.execute(text("DELETE FROM teachers"))
            conn.commit()

    app.extensions[OUTBOX_KEY] = []


# ═══════════════════════════════════════════════════════════════════════════
# Client fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def register(
    client,
    email: str = "ada@example.com",
    password: str = DEFAULT_PASSWORD,
    first_name: str = "Ada",
    last_name: str = "Lovelace",
) -> dict:
    """Registers a teacher and returns the teacher dict from the response."""
    resp = client.post(
        "/api/v1/auth/register",
        json={
            "email": email,
            "password": password,
            "first_name": first_name,
            "last_name": last_name,
        },
    )
    assert resp.status_code == 201, f"register failed: {resp.get_json()}"
    return resp.get_json()["data"]


def login(client, email: str = "ada@example.com", password: str = DEFAULT_PASSWORD) -> dict:
    """
    Logs in and returns the token dict:
    {"access_token", "refresh_token", "expires_in", "refresh_expires_in", "token_type"}
    """
    resp = client.post(
        "/api/v1/auth/login",
        json={"email": email, "password": password},
    )
    assert resp.status_code == 200, f"login failed: {resp.get_json()}"
    return resp.get_json()["data"]


def auth_headers(token: str) -> dict:
    """Returns the Authorization header dict for use in test requests."""
    return {"Authorization": f"Bearer {token}"}


def last_mail(app, kind: str):
    """Most recent captured mail of `kind` ("email_verification" / "password_reset")."""
    messages = [m for m in app.extensions.get(OUTBOX_KEY, []) if m.meta.get("kind") == kind]
    assert messages, f"no {kind} mail captured"
    return messages[-1]
