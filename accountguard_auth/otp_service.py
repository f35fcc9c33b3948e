"""Emailed one-time codes used as a basic step-up verification method.

A user holds at most one outstanding code per purpose. Codes are stored as
passlib hashes, expire after ``OTP_EXPIRY_MINUTES`` and are burned after
``OTP_MAX_ATTEMPTS`` wrong guesses. Every failure maps to an ``OtpError``
subclass whose ``message`` is safe to show to the caller.
"""
from __future__ import annotations

import secrets
from datetime import timedelta
from typing import Any, Tuple

from flask import current_app
from passlib.hash import pbkdf2_sha256

from accountguard_ext.db import db, utcnow
from accountguard_models.otp import OneTimePasscode
from accountguard_models.user import User

PURPOSE_STEP_UP = "step_up"
CODE_DIGITS = 6


class OtpError(Exception):
    message = "Invalid verification code"


class OtpNotFoundError(OtpError):
    message = "Verification code not found. Request a new one."


class OtpExpiredError(OtpError):
    message = "This code has expired. Request a new one."


class OtpAttemptsExceededError(OtpError):
    message = "Maximum attempts reached. Request a new verification code."


class OtpThrottleError(OtpError):
    message = "Please wait before requesting another code"


class OtpValidationError(OtpError):
    pass


def _setting(key: str, default: int) -> int:
    return max(int(current_app.config.get(key, default)), 1)


def _outstanding(user: User, purpose: str) -> OneTimePasscode | None:
    query = OneTimePasscode.query.filter_by(user_id=user.id, purpose=purpose)
    return query.order_by(OneTimePasscode.created_at.desc(), OneTimePasscode.id.desc()).first()


def _burn(record: OneTimePasscode) -> None:
    db.session.delete(record)
    db.session.commit()


def issue_otp(user: User, *, purpose: str = PURPOSE_STEP_UP, metadata: dict[str, Any] | None = None) -> Tuple[str, OneTimePasscode]:
    """Swap any outstanding code for a fresh one and return ``(raw_code, record)``.

    Asking again within ``RESEND_THROTTLE_SECONDS`` of the last code raises
    ``OtpThrottleError`` and leaves the existing code valid.
    """
    current = _outstanding(user, purpose)
    if current is not None:
        age = (utcnow() - current.created_at).total_seconds()
        if age < _setting("RESEND_THROTTLE_SECONDS", 60):
            raise OtpThrottleError(f"last code issued {int(age)}s ago")
        OneTimePasscode.query.filter_by(user_id=user.id, purpose=purpose).delete()

    raw = str(secrets.randbelow(10**CODE_DIGITS)).zfill(CODE_DIGITS)
    record = OneTimePasscode(
        user_id=user.id,
        purpose=purpose,
        code_hash=pbkdf2_sha256.hash(raw),
        expires_at=utcnow() + timedelta(minutes=_setting("OTP_EXPIRY_MINUTES", 10)),
        attempts_remaining=_setting("OTP_MAX_ATTEMPTS", 5),
        metadata_json=dict(metadata or {}),
    )
    db.session.add(record)
    db.session.commit()
    return raw, record


def _matches(candidate: str, code_hash: str) -> bool:
    try:
        return pbkdf2_sha256.verify(candidate, code_hash)
    except ValueError:
        return False


def verify_otp(user: User, *, candidate: str, purpose: str = PURPOSE_STEP_UP) -> dict[str, Any]:
    """Consume the outstanding code if ``candidate`` matches it.

    Returns the metadata stored when the code was issued.
    """
    record = _outstanding(user, purpose)
    if record is None:
        raise OtpNotFoundError(f"no {purpose} code for user {user.id}")
    if record.is_expired:
        _burn(record)
        raise OtpExpiredError(f"{purpose} code expired")

    if _matches(candidate or "", record.code_hash):
        metadata = dict(record.metadata_json or {})
        _burn(record)
        return metadata

    record.attempts_remaining -= 1
    if record.attempts_remaining <= 0:
        _burn(record)
        raise OtpAttemptsExceededError(f"{purpose} code exhausted")
    db.session.commit()
    raise OtpValidationError(f"{record.attempts_remaining} attempts left")
