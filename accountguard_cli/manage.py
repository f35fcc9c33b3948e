"""`flask manage ...` commands for operating AccountGuard from a shell."""
from __future__ import annotations

import os

import click
from flask import current_app
from flask.cli import with_appcontext
from flask_migrate import upgrade

from accountguard_auth import totp
from accountguard_auth.services import AccountService
from accountguard_ext.db import db
from accountguard_models.user import User


@click.group(help="Account administration")
def manage_cli() -> None:
    """Entry point for the ``flask manage`` subcommands."""


@manage_cli.command("init-db", help="Apply database migrations")
@with_appcontext
def init_db() -> None:
    """Run pending migrations, or create the tables when no migrations exist."""
    migrations_dir = current_app.extensions["migrate"].directory
    if os.path.isdir(migrations_dir):
        upgrade()
        click.echo("Migrations applied.")
        return
    db.create_all()
    click.echo("Database tables created.")


@manage_cli.command("create-user", help="Create a user account")
@click.option("--email", prompt=True, help="Email address")
@click.option("--name", default=None, help="Full name")
@click.option("--password/--no-password", "with_password", default=True, help="Prompt for a password")
@with_appcontext
def create_user(email: str, name: str | None, with_password: bool) -> None:
    """Create a user; ``--no-password`` creates a provider-only account."""
    password = None
    if with_password:
        password = click.prompt("Password", hide_input=True, confirmation_prompt=True)
    try:
        user = AccountService.create_user(email, password=password, full_name=name)
    except ValueError as exc:
        click.secho(str(exc), fg="red")
        return
    click.secho(f"User created with id {user.id}", fg="green")


@manage_cli.command("list-users", help="Show accounts with their sign-in methods")
@with_appcontext
def list_users() -> None:
    """Display user accounts with their password and factor state."""
    users = db.session.scalars(db.select(User).order_by(User.id)).all()
    if not users:
        click.echo("No accounts yet.")
        return
    for user in users:
        password = "password" if user.has_password else "no password"
        factors = sum(1 for factor in user.mfa_factors if factor.is_verified)
        click.echo(f"{user.id}: {user.email} - {password}, {factors} factor(s)")


@manage_cli.command("enroll-totp", help="Register a verified TOTP factor for a user")
@click.option("--email", required=True, help="Email address of the user")
@click.option("--name", "friendly_name", default=None, help="Friendly name for the factor")
@with_appcontext
def enroll_totp(email: str, friendly_name: str | None) -> None:
    """Create a TOTP factor and print the provisioning URI for an authenticator app."""
    user = AccountService.get_by_email(email)
    if user is None:
        click.secho(f"No user with email {email}", fg="red")
        return
    factor = AccountService.enroll_totp(user, friendly_name)
    uri = totp.provisioning_uri(
        factor.secret,
        account=user.email,
        issuer=current_app.config.get("TOTP_ISSUER", "AccountGuard"),
    )
    click.secho(f"Factor {factor.id} enrolled.", fg="green")
    click.echo(uri)
