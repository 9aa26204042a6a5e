"""
services/mail_service.py — Outgoing account mail (verification, password reset).

Delivery backend is chosen by MAIL_BACKEND:
  resend  — sends through the Resend API with RESEND_API_KEY (production)
  console — writes the message to the app logger (development)
  memory  — appends to app.extensions["mail_outbox"] (tests)
  null    — drops the message

validate_config() only accepts resend in production.
"""

from __future__ import annotations

from dataclasses import dataclass

import resend
from flask import current_app

from backend.app.models.teacher import Teacher

OUTBOX_KEY = "mail_outbox"


@dataclass(frozen=True)
class MailMessage:
    sender: str
    recipient: str
    subject: str
    body: str
    # Machine-readable payload (e.g. the token) for the memory backend.
    meta: dict


def send(message: MailMessage) -> None:
    backend = current_app.config.get("MAIL_BACKEND", "console")

    if backend == "resend":
        _send_with_resend(message)
    elif backend == "memory":
        current_app.extensions.setdefault(OUTBOX_KEY, []).append(message)
    elif backend == "console":
        current_app.logger.info(
            "Mail to %s: %s\n%s", message.recipient, message.subject, message.body
        )
    elif backend == "null":
        current_app.logger.debug("Mail to %s dropped (null backend)", message.recipient)
    else:
        raise ValueError(f"Unknown MAIL_BACKEND {backend!r}")


def _send_with_resend(message: MailMessage) -> None:
    resend.api_key = current_app.config["RESEND_API_KEY"]
    # Emails.send is synchronous and raises on an API error.
    result = resend.Emails.send({
        "from": message.sender,
        "to": [message.recipient],
        "subject": message.subject,
        "text": message.body,
    })
    current_app.logger.info(
        "Mail to %s sent through Resend (id %s)", message.recipient, result.get("id")
    )


def _build(teacher: Teacher, subject: str, body: str, **meta) -> MailMessage:
    return MailMessage(
        sender=current_app.config["MAIL_SENDER"],
        recipient=teacher.email,
        subject=subject,
        body=body,
        meta=meta,
    )


def send_verification_email(teacher: Teacher) -> None:
    token = teacher.email_verification_token
    link = f"{current_app.config['FRONTEND_URL']}/verify-email?token={token}"
    send(_build(
        teacher,
        "Confirm your Homeschool Hub email address",
        f"Hi {teacher.first_name},\n\n"
        f"Confirm your email address by opening this link:\n{link}\n",
        kind="email_verification",
        token=token,
    ))


def send_password_reset_email(teacher: Teacher) -> None:
    token = teacher.password_reset_token
    window = current_app.config["PASSWORD_RESET_TOKEN_TTL"]
    hours = int(window.total_seconds() // 3600)
    link = f"{current_app.config['FRONTEND_URL']}/reset-password?token={token}"
    send(_build(
        teacher,
        "Reset your Homeschool Hub password",
        f"Hi {teacher.first_name},\n\n"
        f"Someone asked to reset your password. The link below works for "
        f"{hours} hour(s):\n{link}\n\n"
        "If this was not you, ignore this message.\n",
        kind="password_reset",
        token=token,
    ))
