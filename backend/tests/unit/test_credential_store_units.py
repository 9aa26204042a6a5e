"""
Unit tests for credential_store rules that need no database:
email normalisation, password checks and the password-reset window.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import bcrypt
import pytest

from backend.app.errors import AppError, ErrorCode
from backend.app.services import credential_store

REQUESTED_AT = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _teacher(**overrides) -> SimpleNamespace:
    fields = {
        "password_hash": bcrypt.hashpw(b"password123", bcrypt.gensalt(rounds=4)).decode(),
        "password_reset_token": "reset-token",
        "password_reset_requested_at": REQUESTED_AT,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


# ═══════════════════════════════════════════════════════════════════════════
# Normalisation
# ═══════════════════════════════════════════════════════════════════════════

def test_normalize_email_lowercases_and_strips():
    assert credential_store.normalize_email("  Teacher@Example.COM ") == "teacher@example.com"


def test_generated_tokens_are_unique_and_long():
    tokens = {credential_store.generate_verification_token() for _ in range(50)}
    assert len(tokens) == 50
    assert all(len(t) >= 40 for t in tokens)


# ═══════════════════════════════════════════════════════════════════════════
# Passwords
# ═══════════════════════════════════════════════════════════════════════════

def test_verify_password_accepts_correct_password():
    assert credential_store.verify_password(_teacher(), "password123") is True


def test_verify_password_rejects_wrong_password():
    assert credential_store.verify_password(_teacher(), "password124") is False


def test_verify_password_rejects_non_bcrypt_hash():
    assert credential_store.verify_password(_teacher(password_hash="plain"), "plain") is False


def test_verify_password_rejects_non_string_candidate():
    assert credential_store.verify_password(_teacher(), None) is False


def test_set_password_rejects_short_password():
    session = MagicMock()
    teacher = _teacher()
    original_hash = teacher.password_hash

    with pytest.raises(AppError) as exc_info:
        credential_store.set_password(teacher, "short", session)

    err = exc_info.value
    assert err.code == ErrorCode.VALIDATION_ERROR
    assert err.http_status == 422
    assert err.field == "password"
    assert teacher.password_hash == original_hash
    session.flush.assert_not_called()


@pytest.mark.parametrize("password", ["a" * 100, "é" * 60])
def test_set_password_rejects_password_over_72_bytes(password):
    session = MagicMock()
    teacher = _teacher()
    original_hash = teacher.password_hash

    with pytest.raises(AppError) as exc_info:
        credential_store.set_password(teacher, password, session)

    assert exc_info.value.code == ErrorCode.VALIDATION_ERROR
    assert exc_info.value.field == "password"
    assert teacher.password_hash == original_hash


def test_set_password_accepts_exactly_72_bytes():
    teacher = _teacher()
    password = "é" * 36

    credential_store.set_password(teacher, password, MagicMock())

    assert credential_store.verify_password(teacher, password) is True


def test_verify_password_over_72_bytes_is_false_not_an_error():
    assert credential_store.verify_password(_teacher(), "a" * 100) is False


@pytest.mark.parametrize("candidate", ["password123", "a" * 100, None])
def test_check_password_without_account_always_fails(candidate):
    with patch.object(credential_store.bcrypt, "checkpw", wraps=bcrypt.checkpw) as checkpw:
        assert credential_store.check_password_without_account(candidate) is False

    if candidate is not None:
        checkpw.assert_called_once()


def test_find_by_email_compares_stored_column_directly():
    session = MagicMock()
    credential_store.find_by_email(" Ada@Example.com ", session)

    statement = session.execute.call_args.args[0]
    sql = str(statement.compile(compile_kwargs={"literal_binds": True}))
    assert "lower(" not in sql.lower()
    assert "'ada@example.com'" in sql


def test_create_rejects_short_password_before_touching_db():
    session = MagicMock()

    with pytest.raises(AppError) as exc_info:
        credential_store.create("a@b.com", "1234567", "Ada", "Lovelace", session)

    assert exc_info.value.code == ErrorCode.VALIDATION_ERROR
    session.add.assert_not_called()


def test_create_rejects_existing_email_case_insensitively():
    session = MagicMock()
    session.execute.return_value.scalar_one_or_none.return_value = object()

    with pytest.raises(AppError) as exc_info:
        credential_store.create("A@B.com", "password123", "Ada", "Lovelace", session)

    err = exc_info.value
    assert err.code == ErrorCode.VALIDATION_ERROR
    assert err.field == "email"
    session.add.assert_not_called()


# ═══════════════════════════════════════════════════════════════════════════
# Password-reset window (2 hours)
# ═══════════════════════════════════════════════════════════════════════════

class TestPasswordResetWindow:

    def test_valid_at_one_hour_fifty_nine(self):
        now = REQUESTED_AT + timedelta(hours=1, minutes=59)
        assert credential_store.is_password_reset_token_valid(_teacher(), now=now) is True

    def test_invalid_at_two_hours_one(self):
        now = REQUESTED_AT + timedelta(hours=2, minutes=1)
        assert credential_store.is_password_reset_token_valid(_teacher(), now=now) is False

    def test_invalid_exactly_at_two_hours(self):
        now = REQUESTED_AT + timedelta(hours=2)
        assert credential_store.is_password_reset_token_valid(_teacher(), now=now) is False

    def test_invalid_without_token(self):
        teacher = _teacher(password_reset_token=None)
        assert credential_store.is_password_reset_token_valid(teacher, now=REQUESTED_AT) is False

    def test_invalid_without_request_time(self):
        teacher = _teacher(password_reset_requested_at=None)
        assert credential_store.is_password_reset_token_valid(teacher, now=REQUESTED_AT) is False

    def test_naive_timestamps_are_treated_as_utc(self):
        teacher = _teacher(password_reset_requested_at=REQUESTED_AT.replace(tzinfo=None))
        now = REQUESTED_AT + timedelta(minutes=30)
        assert credential_store.is_password_reset_token_valid(teacher, now=now) is True


def test_generate_password_reset_token_overwrites_previous():
    session = MagicMock()
    teacher = _teacher(password_reset_token="old-token", password_reset_requested_at=None)

    credential_store.generate_password_reset_token(teacher, session)

    assert teacher.password_reset_token not in (None, "old-token")
    assert teacher.password_reset_requested_at is not None
    session.flush.assert_called_once()


def test_clear_password_reset_token_clears_both_fields():
    session = MagicMock()
    teacher = _teacher()

    credential_store.clear_password_reset_token(teacher, session)

    assert teacher.password_reset_token is None
    assert teacher.password_reset_requested_at is None
