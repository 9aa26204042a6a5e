"""
services/token_codec.py — Signed, self-expiring token encode/verify.

Stateless and side-effect free: safe to call from any number of requests in
parallel. No database access here.

Token design:
  - Access token:  JWT (HS256 by default), claims
                   {principal_id, iat, exp, type: "access"}
  - Refresh token: same mechanism, claims
                   {principal_id, iat, exp, jti, type: "refresh"}

The `type` claim is checked on every decode, so a refresh token is never
accepted where an access token is expected and vice versa.

Every decode failure (bad signature, malformed input, expired, wrong type,
missing or malformed claims) raises the same TOKEN_INVALID AppError.
"""

from __future__ import annotations

import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

from backend.app.errors import token_invalid

ACCESS = "access"
REFRESH = "refresh"

_REQUIRED_CLAIMS = ["principal_id", "iat", "exp", "type"]


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of a decoded token."""

    principal_id: uuid.UUID
    issued_at: datetime
    expires_at: datetime
    token_type: str
    jti: str | None = None


class TokenCodec:

    def __init__(self, secret: str, algorithm: str = "HS256") -> None:
        if not secret:
            raise ValueError("A signing secret is required.")
        self._secret = secret
        self._algorithm = algorithm

    # ── Encoding ───────────────────────────────────────────────────────────

    def _encode(self, claims: dict) -> str:
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def _base_claims(
            self,
            principal_id: uuid.UUID,
            token_type: str,
            ttl: timedelta,
            now: datetime | None,
    ) -> dict:
        issued_at = now or datetime.now(timezone.utc)
        return {
            "principal_id": str(principal_id),
            "iat": issued_at,
            "exp": issued_at + ttl,
            "type": token_type,
        }

    def encode_access(
            self,
            principal_id: uuid.UUID,
            ttl: timedelta,
            now: datetime | None = None,
    ) -> str:
        """Returns a signed access token for `principal_id` valid for `ttl`."""
        return self._encode(self._base_claims(principal_id, ACCESS, ttl, now))

    def encode_refresh(
            self,
            principal_id: uuid.UUID,
            ttl: timedelta,
            now: datetime | None = None,
    ) -> tuple[str, str]:
        """
        Returns (token, jti) for a new refresh token.

        The jti is freshly generated on every call, so two refresh tokens
        minted in the same second are still distinct.
        """
        jti = secrets.token_hex(16)
        claims = self._base_claims(principal_id, REFRESH, ttl, now)
        claims["jti"] = jti
        return self._encode(claims), jti

    # ── Decoding ───────────────────────────────────────────────────────────

    def decode(self, token: str, expected_type: str = ACCESS) -> TokenClaims:
        """
        Verifies `token` and returns its claims.

        Raises:
          AppError(TOKEN_INVALID, 401) — for any failure whatsoever.
        """
        if not isinstance(token, str) or not token:
            raise token_invalid()

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": _REQUIRED_CLAIMS},
            )
        except jwt.InvalidTokenError:
            raise token_invalid()

        if payload.get("type") != expected_type:
            raise token_invalid()

        try:
            principal_id = uuid.UUID(str(payload["principal_id"]))
            issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
        except (TypeError, ValueError):
            raise token_invalid()

        jti = payload.get("jti")
        if expected_type == REFRESH and (not isinstance(jti, str) or not jti):
            raise token_invalid()

        return TokenClaims(
            principal_id=principal_id,
            issued_at=issued_at,
            expires_at=expires_at,
            token_type=expected_type,
            jti=jti,
        )

    def decode_refresh(self, token: str) -> TokenClaims:
        """As decode(), but only accepts refresh tokens."""
        return self.decode(token, expected_type=REFRESH)


def get_codec() -> TokenCodec:
    """Builds a codec from the current app's JWT_SECRET_KEY / JWT_ALGORITHM."""
    return TokenCodec(
        current_app.config["JWT_SECRET_KEY"],
        current_app.config.get("JWT_ALGORITHM", "HS256"),
    )
