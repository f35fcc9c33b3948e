"""Second-factor enrolments."""
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from accountguard_ext.db import db, utcnow

FACTOR_TOTP = "totp"
STATUS_VERIFIED = "verified"
STATUS_UNVERIFIED = "unverified"


class MfaFactor(db.Model):
    """A registered second-authentication method; only verified factors count as 2FA."""

    __tablename__ = "mfa_factors"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[int] = mapped_column(Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    factor_type: Mapped[str] = mapped_column(String(16), nullable=False, default=FACTOR_TOTP)
    friendly_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    secret: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_UNVERIFIED)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="mfa_factors")

    @property
    def is_verified(self) -> bool:
        return self.status == STATUS_VERIFIED

    def as_method(self) -> dict[str, str]:
        return {"factorId": self.id, "type": self.factor_type}
