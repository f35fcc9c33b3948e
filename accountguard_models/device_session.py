"""Per-device sessions carrying step-up verification state."""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from accountguard_ext.db import db, utcnow


class DeviceSession(db.Model):
    """A browser/device a user is signed in from.

    ``last_verified_at`` records the last successful step-up verification on
    this device. Sensitive actions skip re-verification while it is younger
    than the configured grace period.
    """

    __tablename__ = "device_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[int] = mapped_column(Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    device_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    browser: Mapped[str | None] = mapped_column(String(64), nullable=True)
    os: Mapped[str | None] = mapped_column(String(64), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    last_active_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    last_verified_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    user = relationship("User", back_populates="device_sessions")

    @classmethod
    def issue(
        cls,
        user_id: int,
        *,
        device_name: str | None = None,
        browser: str | None = None,
        os: str | None = None,
        ip_address: str | None = None,
        verified: bool = False,
    ) -> "DeviceSession":
        """Create and store a device session; sign-in counts as a verification when ``verified``."""
        now = utcnow()
        record = cls(
            user_id=user_id,
            device_name=device_name,
            browser=browser,
            os=os,
            ip_address=ip_address,
            created_at=now,
            last_active_at=now,
            last_verified_at=now if verified else None,
        )
        db.session.add(record)
        db.session.commit()
        return record

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def mark_verified(self, at: datetime | None = None) -> None:
        when = at or utcnow()
        self.last_verified_at = when
        self.last_active_at = when

    def grace_period_expired(self, window: timedelta, *, now: datetime | None = None) -> bool:
        if self.last_verified_at is None:
            return True
        return (now or utcnow()) - self.last_verified_at > window
