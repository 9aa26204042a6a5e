"""
tests/unit/test_token_codec.py — TokenCodec encode/verify.

What this file proves:
  - decode(encode(id)) recovers the principal id before expiry
  - tokens fail after expiry
  - any altered byte, a foreign signing key, or the wrong token type yields
    the same TOKEN_INVALID error (no verification oracle)

No database and no Flask application context.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from backend.app.errors import AppError, ErrorCode
from backend.app.services.token_codec import ACCESS, REFRESH, TokenCodec

SECRET = "unit-test-signing-secret-0123456789abcdef"
OTHER_SECRET = "another-signing-secret-0123456789abcdef"


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec(SECRET)


def _assert_token_invalid(fn, *args, **kwargs):
    with pytest.raises(AppError) as exc_info:
        fn(*args, **kwargs)
    err = exc_info.value
    assert err.code == ErrorCode.TOKEN_INVALID
    assert err.http_status == 401
    assert err.message == "The token is invalid or has expired."


def _alter(token: str, index: int) -> str:
    replacement = "A" if token[index] != "A" else "B"
    return token[:index] + replacement + token[index + 1:]


# ═══════════════════════════════════════════════════════════════════════════
# Round trip and expiry
# ═══════════════════════════════════════════════════════════════════════════

class TestRoundTrip:

    @pytest.mark.parametrize("ttl_seconds", [60, 3600, 2592000])
    def test_access_token_round_trip(self, codec, ttl_seconds):
        principal_id = uuid.uuid4()
        token = codec.encode_access(principal_id, timedelta(seconds=ttl_seconds))

        claims = codec.decode(token)

        assert claims.principal_id == principal_id
        assert claims.token_type == ACCESS
        assert claims.jti is None
        assert claims.expires_at - claims.issued_at == timedelta(seconds=ttl_seconds)

    def test_refresh_token_round_trip_carries_jti(self, codec):
        principal_id = uuid.uuid4()
        token, jti = codec.encode_refresh(principal_id, timedelta(days=30))

        claims = codec.decode_refresh(token)

        assert claims.principal_id == principal_id
        assert claims.token_type == REFRESH
        assert claims.jti == jti

    def test_refresh_tokens_get_distinct_jtis(self, codec):
        principal_id = uuid.uuid4()
        now = datetime.now(timezone.utc)
        first, jti1 = codec.encode_refresh(principal_id, timedelta(days=1), now=now)
        second, jti2 = codec.encode_refresh(principal_id, timedelta(days=1), now=now)
        assert jti1 != jti2
        assert first != second

    def test_access_claims_on_the_wire(self, codec):
        principal_id = uuid.uuid4()
        token = codec.encode_access(principal_id, timedelta(hours=1))
        payload = jwt.decode(token, SECRET, algorithms=["HS256"])
        assert set(payload) == {"principal_id", "iat", "exp", "type"}
        assert payload["principal_id"] == str(principal_id)
        assert payload["type"] == "access"

    def test_expired_access_token_fails(self, codec):
        issued = datetime.now(timezone.utc) - timedelta(hours=2)
        token = codec.encode_access(uuid.uuid4(), timedelta(hours=1), now=issued)
        _assert_token_invalid(codec.decode, token)

    def test_expired_refresh_token_fails(self, codec):
        issued = datetime.now(timezone.utc) - timedelta(days=31)
        token, _ = codec.encode_refresh(uuid.uuid4(), timedelta(days=30), now=issued)
        _assert_token_invalid(codec.decode_refresh, token)

    def test_token_issued_in_the_past_is_valid_until_expiry(self, codec):
        issued = datetime.now(timezone.utc) - timedelta(minutes=59)
        principal_id = uuid.uuid4()
        token = codec.encode_access(principal_id, timedelta(hours=1), now=issued)
        assert codec.decode(token).principal_id == principal_id


# ═══════════════════════════════════════════════════════════════════════════
# Tamper evidence
# ═══════════════════════════════════════════════════════════════════════════

class TestTamperEvidence:

    def test_altered_bytes_fail_uniformly(self, codec):
        token = codec.encode_access(uuid.uuid4(), timedelta(hours=1))
        header, payload, signature = token.split(".")
        header_end = len(header)
        payload_start = header_end + 1
        signature_start = payload_start + len(payload) + 1

        # Avoid the final char of each segment: its low bits may be padding.
        positions = [
            1,
            header_end // 2,
            payload_start,
            payload_start + len(payload) // 2,
            signature_start,
            signature_start + len(signature) // 2,
        ]
        for index in positions:
            _assert_token_invalid(codec.decode, _alter(token, index))

    def test_token_signed_with_other_secret_fails(self, codec):
        foreign = TokenCodec(OTHER_SECRET).encode_access(uuid.uuid4(), timedelta(hours=1))
        _assert_token_invalid(codec.decode, foreign)

    def test_resigned_payload_with_other_secret_fails(self, codec):
        token = codec.encode_access(uuid.uuid4(), timedelta(hours=1))
        payload = jwt.decode(token, SECRET, algorithms=["HS256"])
        resigned = jwt.encode(payload, OTHER_SECRET, algorithm="HS256")
        _assert_token_invalid(codec.decode, resigned)

    def test_unsigned_token_fails(self, codec):
        token = jwt.encode(
            {
                "principal_id": str(uuid.uuid4()),
                "iat": datetime.now(timezone.utc),
                "exp": datetime.now(timezone.utc) + timedelta(hours=1),
                "type": "access",
            },
            None,
            algorithm="none",
        )
        _assert_token_invalid(codec.decode, token)

    @pytest.mark.parametrize("garbage", ["", "not-a-token", "a.b.c", "...", None, 12345])
    def test_malformed_input_fails(self, codec, garbage):
        _assert_token_invalid(codec.decode, garbage)


# ═══════════════════════════════════════════════════════════════════════════
# Type discriminator and claims
# ═══════════════════════════════════════════════════════════════════════════

class TestTypeDiscriminator:

    def test_refresh_token_rejected_as_access(self, codec):
        token, _ = codec.encode_refresh(uuid.uuid4(), timedelta(days=1))
        _assert_token_invalid(codec.decode, token)

    def test_access_token_rejected_as_refresh(self, codec):
        token = codec.encode_access(uuid.uuid4(), timedelta(hours=1))
        _assert_token_invalid(codec.decode_refresh, token)

    def test_missing_type_claim_fails(self, codec):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"principal_id": str(uuid.uuid4()), "iat": now, "exp": now + timedelta(hours=1)},
            SECRET,
            algorithm="HS256",
        )
        _assert_token_invalid(codec.decode, token)

    def test_non_uuid_principal_fails(self, codec):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"principal_id": "42", "iat": now, "exp": now + timedelta(hours=1), "type": "access"},
            SECRET,
            algorithm="HS256",
        )
        _assert_token_invalid(codec.decode, token)

    def test_refresh_without_jti_fails(self, codec):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {
                "principal_id": str(uuid.uuid4()),
                "iat": now,
                "exp": now + timedelta(days=1),
                "type": "refresh",
            },
            SECRET,
            algorithm="HS256",
        )
        _assert_token_invalid(codec.decode_refresh, token)


def test_codec_requires_secret():
    with pytest.raises(ValueError):
        TokenCodec("")
