"""Best-effort account event logging."""
from __future__ import annotations

from typing import Any

from flask import request
from sqlalchemy.exc import SQLAlchemyError

from accountguard_auth.devices import device_metadata
from accountguard_ext.db import db
from accountguard_ext.logging import log_error
from accountguard_models.account_event import AccountEvent


def log_account_event(
    *,
    user_id: int,
    event_type: str,
    device_session_id: str | None = None,
    metadata: dict[str, Any] | None = None,
    include_device: bool = False,
) -> AccountEvent | None:
    """Record an event; storage failures are logged and swallowed."""
    payload = dict(metadata or {})
    if include_device:
        payload = {"device": device_metadata(request), **payload}
    try:
        return AccountEvent.record(
            user_id=user_id,
            event_type=event_type,
            device_session_id=device_session_id,
            metadata=payload,
        )
    except SQLAlchemyError:
        db.session.rollback()
        log_error(
            "failed to record account event",
            component="events",
            exc_info=True,
            user_id=user_id,
            context={"event_type": event_type},
        )
        return None
