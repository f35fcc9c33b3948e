"""Step-up verification: grace-period checks and available methods.

A device session is *verified* for ``VERIFICATION_GRACE_PERIOD_MINUTES`` after
its last successful step-up. While the window is open, sensitive account
actions proceed immediately. Once it lapses, the caller must present a second
factor (when the user has one) or a basic method (password / emailed code)
before the action is performed.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta

from flask import current_app

from accountguard_auth import totp
from accountguard_ext.db import db, utcnow
from accountguard_models.device_session import DeviceSession
from accountguard_models.mfa_factor import MfaFactor, STATUS_VERIFIED
from accountguard_models.user import User

METHOD_PASSWORD = "password"
METHOD_EMAIL = "email"


@dataclass
class VerificationMethods:
    has_2fa: bool
    factors: list[dict[str, str]] = field(default_factory=list)
    methods: list[str] = field(default_factory=list)

    def basic_methods(self) -> list[dict[str, str]]:
        """Basic methods shaped like factors; the method name doubles as the id."""
        return [{"type": method, "factorId": method} for method in self.methods]


def grace_period() -> timedelta:
    minutes = int(current_app.config.get("VERIFICATION_GRACE_PERIOD_MINUTES", 10))
    return timedelta(minutes=max(minutes, 0))


def load_device_session(user: User, device_session_id: str | None) -> DeviceSession | None:
    """Return the caller's live device session, ignoring other users' and revoked ones."""
    if not device_session_id:
        return None
    record = db.session.get(DeviceSession, device_session_id)
    if record is None or record.user_id != user.id or record.is_revoked:
        return None
    return record


def has_grace_period_expired(user: User, device_session_id: str | None) -> bool:
    record = load_device_session(user, device_session_id)
    if record is None:
        return True
    return record.grace_period_expired(grace_period())


def verified_factors(user: User) -> list[MfaFactor]:
    return (
        MfaFactor.query.filter_by(user_id=user.id, status=STATUS_VERIFIED)
        .order_by(MfaFactor.created_at.asc())
        .all()
    )


def get_user_verification_methods(user: User) -> VerificationMethods:
    factors = [factor.as_method() for factor in verified_factors(user)]
    methods: list[str] = []
    if user.has_password:
        methods.append(METHOD_PASSWORD)
    if user.email:
        methods.append(METHOD_EMAIL)
    return VerificationMethods(has_2fa=bool(factors), factors=factors, methods=methods)


def verify_factor_code(user: User, factor_id: str, code: str) -> bool:
    """Check a TOTP code against one of the user's verified factors."""
    factor = db.session.get(MfaFactor, factor_id)
    if factor is None or factor.user_id != user.id or not factor.is_verified:
        return False
    window = int(current_app.config.get("TOTP_VALID_WINDOW", 1))
    return totp.verify_totp(factor.secret, code, window=window)


def mark_device_verified(device_session: DeviceSession) -> DeviceSession:
    device_session.mark_verified(utcnow())
    db.session.add(device_session)
    db.session.commit()
    return device_session
