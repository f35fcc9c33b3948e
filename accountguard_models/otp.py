"""Emailed step-up codes awaiting confirmation."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from accountguard_ext.db import db, utcnow


class OneTimePasscode(db.Model):
    __tablename__ = "otps"
    __table_args__ = (Index("ix_otps_user_purpose", "user_id", "purpose"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    purpose: Mapped[str] = mapped_column(String(32), nullable=False)
    # passlib pbkdf2_sha256 hash; the raw code only ever lives in the email.
    code_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    attempts_remaining: Mapped[int] = mapped_column(Integer, nullable=False)
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column("metadata", db.JSON, nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="otps")

    @property
    def is_expired(self) -> bool:
        return self.expires_at < utcnow()

    def __repr__(self) -> str:  # pragma: no cover
        return f"<OneTimePasscode user={self.user_id} purpose={self.purpose}>"
