"""Pytest fixtures for the AccountGuard test suite.

This module provides fixtures for:
- An application built with ``TestConfig`` (in-memory SQLite, CSRF off, mail suppressed)
- Accounts with and without a password
- Logged-in test clients and signed device-session cookies
- Captured outgoing email
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import pytest

from accountguard_auth.devices import sign_device_session_id
from accountguard_auth.services import AccountService
from accountguard_ext import create_app
from accountguard_ext.db import db
from accountguard_ext.security import limiter
from accountguard_models.device_session import DeviceSession
from accountguard_models.identity import LinkedIdentity

PASSWORD = "OldPassw0rd"
NEW_PASSWORD = "NewPassw0rd"


@dataclass(frozen=True)
class Account:
    """Detached view of a user row, safe to use outside an app context."""

    id: int
    email: str
    password: str | None


@pytest.fixture()
def app():
    app = create_app("testing")
    limiter.reset()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def password_user(app) -> Account:
    """Account created with email and password."""
    with app.app_context():
        user = AccountService.create_user("alice@example.com", password=PASSWORD, full_name="Alice Doe")
        return Account(id=user.id, email=user.email, password=PASSWORD)


@pytest.fixture()
def oauth_user(app) -> Account:
    """Account created through Google, with no password yet."""
    with app.app_context():
        user = AccountService.create_user("bob@example.com", full_name="Bob Roe")
        db.session.add(LinkedIdentity(user_id=user.id, provider="google", provider_subject="google-bob", email=user.email))
        db.session.commit()
        return Account(id=user.id, email=user.email, password=None)


@pytest.fixture()
def login(client) -> Callable[[Account], None]:
    """Mark ``client`` as signed in for the given account."""

    def _login(account: Account) -> None:
        with client.session_transaction() as sess:
            sess["_user_id"] = str(account.id)
            sess["_fresh"] = True

    return _login


@pytest.fixture()
def device_session(app, client) -> Callable[..., str]:
    """Issue a device session for an account and attach its signed cookie to ``client``."""

    def _issue(account: Account, *, verified: bool = True) -> str:
        with app.app_context():
            record = DeviceSession.issue(
                account.id,
                device_name="Macintosh",
                browser="Firefox",
                os="Mac OS",
                ip_address="127.0.0.1",
                verified=verified,
            )
            client.set_cookie(app.config["DEVICE_SESSION_COOKIE_NAME"], sign_device_session_id(record.id))
            return record.id

    return _issue


@pytest.fixture()
def enroll_totp(app) -> Callable[[Account], tuple[str, str]]:
    """Enrol a verified TOTP factor; returns ``(factor_id, secret)``."""

    def _enroll(account: Account) -> tuple[str, str]:
        with app.app_context():
            user = AccountService.get_by_email(account.email)
            factor = AccountService.enroll_totp(user, "Authenticator")
            return factor.id, factor.secret

    return _enroll


@pytest.fixture()
def outbox(monkeypatch) -> list[dict]:
    """Record ``send_email`` calls instead of rendering and delivering them."""
    sent: list[dict] = []

    def _capture(**kwargs):
        sent.append(kwargs)

    monkeypatch.setattr("accountguard_auth.alerts.send_email", _capture)
    monkeypatch.setattr("accountguard_auth.routes.send_email", _capture)
    return sent
