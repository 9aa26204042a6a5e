"""
errors.py — AppError base class and error code registry.

Every error returned by the Homeschool Hub API uses a code defined here.
Do not raise strings or generic exceptions from service or route code.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose. They may be improved at any time.
  - Token failures collapse to TOKEN_INVALID. Never tell the caller which
    check (signature, expiry, type, revocation) failed.
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
            details: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field    # which request field caused the error
        self.details     = details  # per-field messages for form feedback

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        if self.details:
            payload["fields"] = self.details
        return {"success": False, "error": payload}

    def __repr__(self) -> str:
        return (
            f"AppError(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
# These are the string values sent in the API response.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Input Errors ───────────────────────────────────────────────────────
    VALIDATION_ERROR           = "VALIDATION_ERROR"       # 422
    INVALID_TOKEN              = "INVALID_TOKEN"          # 400: reset / verification token

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    CONFLICT                   = "CONFLICT"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    NOT_FOUND                  = "NOT_FOUND"

    # ── Auth Errors (401) ──────────────────────────────────────────────────
    INVALID_CREDENTIALS        = "INVALID_CREDENTIALS"    # wrong email or password
    UNAUTHORIZED               = "UNAUTHORIZED"           # inactive or vanished account
    TOKEN_MISSING              = "TOKEN_MISSING"          # no Authorization header
    TOKEN_INVALID              = "TOKEN_INVALID"          # malformed/expired/revoked/wrong type

    # ── System Errors (500) ────────────────────────────────────────────────
    INTERNAL_ERROR             = "INTERNAL_ERROR"


# ── Constructors for the recurring auth failures ───────────────────────────
# Messages are fixed so that callers cannot tell failure causes apart.

def invalid_credentials() -> AppError:
    return AppError(
        ErrorCode.INVALID_CREDENTIALS,
        "The email or password is incorrect.",
        401,
    )


def account_inactive() -> AppError:
    return AppError(
        ErrorCode.UNAUTHORIZED,
        "This account is not active.",
        401,
    )


def token_invalid() -> AppError:
    return AppError(
        ErrorCode.TOKEN_INVALID,
        "The token is invalid or has expired.",
        401,
    )


def invalid_one_shot_token() -> AppError:
    return AppError(
        ErrorCode.INVALID_TOKEN,
        "The token is invalid or has expired.",
        400,
    )


def validation_error(field: str, message: str) -> AppError:
    return AppError(
        ErrorCode.VALIDATION_ERROR,
        message,
        422,
        field=field,
        details={field: [message]},
    )
