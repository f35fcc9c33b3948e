"""Security alert emails sent after sensitive account changes."""
from __future__ import annotations

from flask import current_app, request

from accountguard_auth.devices import device_metadata
from accountguard_ext.db import utcnow
from accountguard_ext.email import EmailDeliveryError, send_email
from accountguard_ext.logging import log_error, log_info
from accountguard_models.user import User


def alert_enabled(group: str, trigger: str) -> bool:
    """True when ``EMAIL_ALERTS[group]`` is enabled and has ``trigger`` switched on."""
    settings = (current_app.config.get("EMAIL_ALERTS") or {}).get(group) or {}
    return bool(settings.get("enabled")) and bool(settings.get(trigger))


def send_email_alert(*, user: User, origin: str, title: str, message: str) -> bool:
    """Send a security alert; delivery failures are logged, never raised."""
    context = {
        "app_name": current_app.config.get("APP_NAME", "AccountGuard"),
        "name": user.display_name,
        "title": title,
        "message": message,
        "device": device_metadata(request),
        "occurred_at": utcnow().strftime("%Y-%m-%d %H:%M UTC"),
        "security_url": f"{origin.rstrip('/')}/account/security",
        "support_email": current_app.config.get("EMAIL_FROM"),
    }
    try:
        send_email(subject=title, recipients=[user.email], template="security_alert", context=context)
    except EmailDeliveryError:
        log_error("failed to send security alert", component="alerts", exc_info=True, user_id=user.id)
        return False
    log_info("security alert sent", component="alerts", user_id=user.id, context={"title": title})
    return True
