"""Typed application errors and the handlers that turn them into responses.

API callers (``/api/...`` or JSON requests) always get
``{"error": <message>, "code": <CODE>}``; browser pages get the rendered
``errors/error.html`` template. Messages are written for end users; internal
details only go to the log, or into ``detail`` when the app runs in debug.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict

from flask import Flask, Response, current_app, g, jsonify, render_template, request
from werkzeug.exceptions import HTTPException

GENERIC_ERROR_MESSAGE = "An unexpected error occurred"
RATE_LIMIT_MESSAGE = "Too many requests. Please try again later."

_STATUS_MESSAGES = {
    400: "Invalid input",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not found",
    405: "Method not allowed",
    429: RATE_LIMIT_MESSAGE,
}


@dataclass(eq=False)
class AppError(Exception):
    """Base error carrying a caller-facing message and an HTTP status."""

    user_msg: str
    code: str = "APP_ERROR"
    http_status: int = 500
    detail: str | None = None

    def __str__(self) -> str:
        return self.user_msg

    def payload(self, *, include_detail: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = {"error": self.user_msg, "code": self.code}
        if include_detail and self.detail:
            data["detail"] = self.detail
        return data


# Subclasses are dataclasses too so their field defaults replace the base ones.
@dataclass(eq=False)
class ValidationError(AppError):
    code: str = "VALIDATION"
    http_status: int = 400


@dataclass(eq=False)
class AuthError(AppError):
    code: str = "AUTH"
    http_status: int = 401


@dataclass(eq=False)
class RateLimitError(AppError):
    code: str = "RATE_LIMIT"
    http_status: int = 429


@dataclass(eq=False)
class NotFoundError(AppError):
    code: str = "NOT_FOUND"
    http_status: int = 404


@dataclass(eq=False)
class BackendError(AppError):
    code: str = "BACKEND"
    http_status: int = 500


def init_app(app: Flask) -> None:
    """Attach global error handlers to the Flask application."""
    app.register_error_handler(AppError, error_response)
    app.register_error_handler(HTTPException, _from_http_exception)
    app.register_error_handler(Exception, _from_unexpected)


def _from_http_exception(exc: HTTPException) -> Response:
    status = exc.code or 500
    if status == 429:
        from accountguard_ext.logging import log_warn

        # The filter adds the client IP to every record.
        log_warn("rate limit exceeded", component="security", context={"limit": str(exc.description)})
    return error_response(
        AppError(
            user_msg=_STATUS_MESSAGES.get(status, exc.name),
            code=exc.name.upper().replace(" ", "_"),
            http_status=status,
            detail=exc.description if isinstance(exc.description, str) else None,
        )
    )


def _from_unexpected(exc: Exception) -> Response:
    current_app.logger.error("Unhandled exception", exc_info=exc, extra={"component": "errors"})
    return error_response(
        AppError(
            user_msg=GENERIC_ERROR_MESSAGE,
            code="INTERNAL",
            detail=repr(exc),
        )
    )


def _wants_json() -> bool:
    if request.path.startswith("/api") or request.is_json:
        return True
    return request.accept_mimetypes.best == "application/json"


def error_response(error: AppError) -> Response:
    """Render ``error`` as JSON or HTML and add correlation/backoff headers."""
    body = error.payload(include_detail=current_app.debug)
    if _wants_json():
        response = jsonify(body)
    else:
        response = current_app.make_response(render_template("errors/error.html", status=error.http_status, error=body))
    response.status_code = error.http_status

    request_id = g.get("request_id")
    if request_id:
        response.headers["X-Request-ID"] = request_id
    if error.http_status == 429:
        response.headers.setdefault("Retry-After", str(_retry_after_seconds()))
    return response


def _retry_after_seconds() -> int:
    try:
        return max(1, math.ceil(float(current_app.config.get("RETRY_AFTER_SECS", 60))))
    except (TypeError, ValueError):
        return 60
