"""Security-related extensions such as CSRF, headers and rate limiting."""
from __future__ import annotations

from flask import Flask, current_app, request
from flask_limiter import Limiter
from flask_talisman import Talisman
from flask_wtf import CSRFProtect


def client_ip() -> str:
    """Best-effort client address, preferring the first ``X-Forwarded-For`` hop."""
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("X-Real-IP", "").strip()
    if real_ip:
        return real_ip
    return request.remote_addr or "unknown"


csrf = CSRFProtect()
limiter = Limiter(key_func=client_ip)
talisman = Talisman()


def init_app(app: Flask) -> None:
    """Register security extensions against the Flask application."""
    csrf.init_app(app)
    limiter.init_app(app)

    if app.config.get("SECURITY_HEADERS", True):
        talisman.init_app(
            app,
            content_security_policy=app.config.get("CONTENT_SECURITY_POLICY"),
            force_https=app.config.get("SESSION_COOKIE_SECURE", False),
            session_cookie_secure=app.config.get("SESSION_COOKIE_SECURE", False),
            referrer_policy="strict-origin-when-cross-origin",
        )


def auth_rate_limit(rate_name: str):
    """Per-IP limit decorator reading the rate string from ``RATES`` at request time."""
    return limiter.limit(lambda: current_app.config["RATES"][rate_name], key_func=client_ip)
