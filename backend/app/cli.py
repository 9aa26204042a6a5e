"""
cli.py — Operator commands, registered on the Flask CLI by the app factory.

  flask teachers deactivate EMAIL   # flag flip + revoke every refresh token
  flask teachers activate EMAIL
"""

from __future__ import annotations

import click
from flask.cli import AppGroup

from backend.app.extensions import db
from backend.app.services import account_service, credential_store

teachers_cli = AppGroup("teachers", help="Manage teacher accounts.")


def _load_teacher(email: str):
    teacher = credential_store.find_by_email(email, db.session)
    if teacher is None:
        raise click.ClickException(f"No teacher account for {email}.")
    return teacher


@teachers_cli.command("deactivate")
@click.argument("email")
def deactivate(email: str) -> None:
    """Deactivate an account and end all of its sessions."""
    teacher = _load_teacher(email)
    revoked = account_service.set_active(teacher, False, db.session)
    db.session.commit()
    click.echo(f"Deactivated {teacher.email}; revoked {revoked} refresh token(s).")


@teachers_cli.command("activate")
@click.argument("email")
def activate(email: str) -> None:
    """Re-activate an account."""
    teacher = _load_teacher(email)
    account_service.set_active(teacher, True, db.session)
    db.session.commit()
    click.echo(f"Activated {teacher.email}.")
