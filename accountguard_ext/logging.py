"""Structured logging for the account security endpoints.

Every record passes through :class:`RequestContextFilter`, which stamps it
with the request id, route, client IP and signed-in user. The formatter then
renders one JSON object per line (or a compact plain-text line for local
development) and masks any ``context`` key listed in ``REDACT_KEYS``.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable

from flask import Flask, current_app, g, has_request_context, request

SLOW_THRESHOLD_MS = 1000

# Record attributes copied into the payload when present.
_FIELDS = ("component", "request_id", "route", "method", "ip", "user_id", "status", "latency_ms")
_MASK = "***"


def _mask(data: Any, keys: frozenset[str]) -> Any:
    if isinstance(data, dict):
        return {k: _MASK if str(k).lower() in keys else _mask(v, keys) for k, v in data.items()}
    if isinstance(data, list):
        return [_mask(item, keys) for item in data]
    return data


class RequestContextFilter(logging.Filter):
    """Attach request-scoped fields to records emitted while handling a request."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not has_request_context():
            return True
        from accountguard_ext.security import client_ip

        record.request_id = getattr(g, "request_id", None)
        record.route = request.path
        record.method = request.method
        record.ip = client_ip()
        if getattr(record, "user_id", None) is None:
            record.user_id = _current_user_id()
        if getattr(record, "status", None) is None:
            record.status = getattr(g, "response_status_code", None)
        if getattr(record, "latency_ms", None) is None:
            record.latency_ms = getattr(g, "request_latency_ms", None)
        return True


def _current_user_id() -> str | None:
    # Only read a user Flask-Login has already loaded; logging must not query.
    user = g.get("_login_user")
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    return user.get_id()


class StructuredFormatter(logging.Formatter):
    """Render records as JSON lines or ``[LEVEL] msg key=value`` text."""

    def __init__(self, as_json: bool = True, redact_keys: Iterable[str] = ()) -> None:
        super().__init__()
        self.as_json = as_json
        self.redact_keys = frozenset(key.lower() for key in redact_keys)

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "msg": record.getMessage(),
        }
        for field in _FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value
        payload.setdefault("component", "app")

        context = getattr(record, "context", None)
        if context:
            payload["context"] = _mask(context, self.redact_keys)
        body = getattr(record, "request_body", None)
        if body is not None:
            payload["request_body"] = _mask(body, self.redact_keys)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        if self.as_json:
            return json.dumps(payload, ensure_ascii=True, default=str)
        return self._plain(payload)

    @staticmethod
    def _plain(payload: Dict[str, Any]) -> str:
        parts = [f"[{payload['level']}]", payload["msg"]]
        parts.extend(f"{key}={payload[key]}" for key in _FIELDS if key in payload and key != "request_id")
        if "context" in payload:
            parts.append(f"context={json.dumps(payload['context'], default=str)}")
        line = " ".join(parts)
        if "exception" in payload:
            line += "\n" + payload["exception"]
        return line


def configure_logging(app: Flask) -> None:
    """Route ``app.logger`` through a single structured stream handler."""
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    handler = logging.StreamHandler()
    handler.setFormatter(
        StructuredFormatter(
            as_json=str(app.config.get("LOG_FORMAT", "json")).lower() == "json",
            redact_keys=app.config.get("REDACT_KEYS", ()),
        )
    )
    handler.addFilter(RequestContextFilter())

    app.logger.handlers.clear()
    app.logger.addHandler(handler)
    app.logger.setLevel(level)
    app.logger.propagate = False


def _emit(level: int, message: str, component: str, extra: Dict[str, Any], exc_info: bool = False) -> None:
    if "context" in extra and not isinstance(extra["context"], dict):
        extra["context"] = {"value": extra["context"]}
    extra["component"] = component
    current_app.logger.log(level, message, exc_info=exc_info, extra=extra)


def log_info(message: str, *, component: str = "app", **extra: Any) -> None:
    _emit(logging.INFO, message, component, extra)


def log_warn(message: str, *, component: str = "app", **extra: Any) -> None:
    _emit(logging.WARNING, message, component, extra)


def log_error(message: str, *, component: str = "app", exc_info: bool = False, **extra: Any) -> None:
    _emit(logging.ERROR, message, component, extra, exc_info=exc_info)
