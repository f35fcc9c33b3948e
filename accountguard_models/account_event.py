"""Append-only log of security events on a user's account."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from flask import g, has_request_context
from pydantic_core import to_jsonable_python
from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from accountguard_ext.db import db, utcnow

PASSWORD_CHANGED = "PASSWORD_CHANGED"
SENSITIVE_ACTION_VERIFIED = "SENSITIVE_ACTION_VERIFIED"
SOCIAL_PROVIDER_CONNECTED = "SOCIAL_PROVIDER_CONNECTED"


class AccountEvent(db.Model):
    __tablename__ = "account_events"
    __table_args__ = (
        Index("ix_account_events_user_created", "user_id", "created_at"),
        Index("ix_account_events_type", "event_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    device_session_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    # Correlates the event with the access log line of the request that caused it.
    request_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column("metadata", db.JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    @classmethod
    def record(
        cls,
        *,
        user_id: int,
        event_type: str,
        device_session_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> "AccountEvent":
        """Insert and commit one event.

        ``metadata`` may hold datetimes, sets or pydantic models; anything
        the JSON column cannot store directly is converted first.
        """
        event = cls(
            user_id=user_id,
            event_type=event_type,
            device_session_id=device_session_id,
            request_id=g.get("request_id") if has_request_context() else None,
            metadata_json=None if metadata is None else to_jsonable_python(metadata, fallback=str),
        )
        db.session.add(event)
        db.session.commit()
        return event

    def __repr__(self) -> str:  # pragma: no cover
        return f"<AccountEvent {self.event_type} user={self.user_id}>"
