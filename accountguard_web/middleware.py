"""Request hooks: correlation ids, timing and a one-line access log."""
from __future__ import annotations

import time
import uuid
from typing import Any

from flask import Flask, Response, current_app, g, request

from accountguard_ext.logging import SLOW_THRESHOLD_MS, log_info, log_warn

_BODY_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
_MAX_LIST_ITEMS = 50


def init_app(app: Flask) -> None:
    app.before_request(_start_request)
    app.after_request(_finish_request)
    app.teardown_request(_teardown_request)


def _start_request() -> None:
    # Honour an upstream proxy's id so log lines can be joined across hops.
    g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    g.request_started_at = time.perf_counter()


def _finish_request(response: Response) -> Response:
    started = g.pop("request_started_at", None)
    if started is not None:
        elapsed = time.perf_counter() - started
        g.request_latency_ms = int(elapsed * 1000)
        response.headers["X-Response-Time"] = f"{elapsed:.4f}s"
    response.headers.setdefault("X-Request-ID", g.get("request_id", ""))
    g.response_status_code = response.status_code

    extra: dict[str, Any] = {"status": response.status_code}
    if request.method in _BODY_METHODS:
        extra["request_body"] = request_body_sample()
    if g.get("request_latency_ms", 0) > SLOW_THRESHOLD_MS:
        log_warn("slow request", component="middleware", **extra)
    log_info("request completed", component="middleware", **extra)
    return response


def _teardown_request(exc: BaseException | None) -> None:
    if exc is not None:
        log_warn("request teardown due to exception", component="middleware", context={"error": str(exc)})


def request_body_sample() -> Any:
    """Loggable view of the request body; secret keys are masked by the formatter."""
    max_chars = int(current_app.config.get("REQUEST_BODY_LOG_MAX", 2048))
    if request.mimetype and request.mimetype.startswith("multipart/"):
        return "<multipart omitted>"
    if request.is_json:
        payload = request.get_json(silent=True)
        if isinstance(payload, list):
            return payload[:_MAX_LIST_ITEMS]
        return payload
    if request.mimetype == "application/x-www-form-urlencoded":
        return request.form.to_dict()
    raw = request.get_data(cache=True, as_text=True)
    if not raw:
        return None
    return raw if len(raw) <= max_chars else raw[:max_chars] + "..."
