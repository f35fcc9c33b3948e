"""Accounts that sign in with a password, a social provider or both."""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from flask_login import UserMixin
from passlib.context import CryptContext
from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from accountguard_ext.db import db, utcnow

if TYPE_CHECKING:  # pragma: no cover
    from accountguard_models.device_session import DeviceSession
    from accountguard_models.identity import LinkedIdentity
    from accountguard_models.mfa_factor import MfaFactor
    from accountguard_models.otp import OneTimePasscode

# Hashes written by older schemes are still accepted and flagged for upgrade.
passwords = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def _owned(target: str, **kwargs):
    return relationship(target, back_populates="user", cascade="all, delete-orphan", **kwargs)


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # Flipped once a password is first set; OAuth-only accounts start without one.
    has_password: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    active: Mapped[bool] = mapped_column("is_active", Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    device_sessions: Mapped[list["DeviceSession"]] = _owned("DeviceSession")
    mfa_factors: Mapped[list["MfaFactor"]] = _owned("MfaFactor", order_by="MfaFactor.created_at")
    identities: Mapped[list["LinkedIdentity"]] = _owned("LinkedIdentity")
    otps: Mapped[list["OneTimePasscode"]] = _owned("OneTimePasscode")

    @property
    def display_name(self) -> str:
        return self.full_name or self.email

    @property
    def is_active(self) -> bool:  # type: ignore[override]
        return bool(self.active)

    def get_id(self) -> str:  # type: ignore[override]
        return str(self.id)

    def set_password(self, password: str) -> None:
        """Store a hash of ``password``; callers update ``has_password`` themselves."""
        self.password_hash = passwords.hash(password)

    def verify_password(self, password: str) -> bool:
        if not (password and self.password_hash):
            return False
        try:
            return passwords.verify(password, self.password_hash)
        except ValueError:
            return False

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User {self.id} {self.email}>"
