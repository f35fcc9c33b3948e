"""Device-session cookie handling and user-agent summaries."""
from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from typing import Any

from flask import Request, Response, current_app
from itsdangerous import BadSignature, SignatureExpired, TimestampSigner

from accountguard_ext.security import client_ip

UNKNOWN_DEVICE = "Unknown Device"
_SIGNER_SALT = "device-session"


@dataclass(frozen=True)
class DeviceInfo:
    device_name: str
    browser: str | None
    os: str | None


# Ordered: the first match wins, so more specific tokens come first.
_BROWSERS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("Edge", re.compile(r"Edg(?:e|A|iOS)?/")),
    ("Opera", re.compile(r"(?:OPR|Opera)/")),
    ("Samsung Internet", re.compile(r"SamsungBrowser/")),
    ("Firefox", re.compile(r"(?:Firefox|FxiOS)/")),
    ("Chrome", re.compile(r"(?:Chrome|CriOS)/")),
    ("Safari", re.compile(r"Version/[\d.]+.*Safari/")),
)

_OPERATING_SYSTEMS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("iOS", re.compile(r"iPhone|iPad|iPod")),
    ("Android", re.compile(r"Android")),
    ("Chrome OS", re.compile(r"CrOS")),
    ("Windows", re.compile(r"Windows")),
    ("Mac OS", re.compile(r"Mac OS X|Macintosh")),
    ("Linux", re.compile(r"Linux")),
)

_APPLE_DEVICE = re.compile(r"\((iPhone|iPad|iPod|Macintosh)")
_ANDROID_MODEL = re.compile(r"Android[^;)]*;\s*(?:[a-z]{2}[-_][A-Za-z]{2};\s*)?([^;)]+?)(?:\s+Build/[^;)]*)?\)")


def parse_user_agent(user_agent: str | None) -> DeviceInfo:
    """Summarise a ``User-Agent`` header into device, browser and OS names."""
    ua = user_agent or ""
    browser = next((name for name, pattern in _BROWSERS if pattern.search(ua)), None)
    os_name = next((name for name, pattern in _OPERATING_SYSTEMS if pattern.search(ua)), None)

    device = None
    apple = _APPLE_DEVICE.search(ua)
    if apple:
        device = apple.group(1)
    else:
        android = _ANDROID_MODEL.search(ua)
        if android:
            model = android.group(1).strip()
            # Chrome's reduced UA reports a literal "K" instead of the model.
            if model and model != "K":
                device = model
    return DeviceInfo(device_name=device or UNKNOWN_DEVICE, browser=browser, os=os_name)


def device_metadata(request: Request) -> dict[str, Any]:
    """Device block attached to account events and alert emails."""
    info = parse_user_agent(request.headers.get("User-Agent"))
    data = asdict(info)
    data["ip_address"] = client_ip()
    return data


def _signer() -> TimestampSigner:
    return TimestampSigner(current_app.config["SECRET_KEY"], salt=_SIGNER_SALT)


def sign_device_session_id(device_session_id: str) -> str:
    return _signer().sign(device_session_id).decode("utf-8")


def get_device_session_id(request: Request) -> str | None:
    """Read and verify the device session id from its signed cookie."""
    cookie_name = current_app.config.get("DEVICE_SESSION_COOKIE_NAME", "device_session_id")
    raw = request.cookies.get(cookie_name)
    if not raw:
        return None
    max_age = int(current_app.config.get("DEVICE_SESSION_MAX_AGE_DAYS", 30)) * 86400
    try:
        value = _signer().unsign(raw, max_age=max_age)
    except SignatureExpired:
        current_app.logger.info("Device session cookie expired", extra={"component": "devices"})
        return None
    except BadSignature:
        current_app.logger.warning("Device session cookie failed signature check", extra={"component": "devices"})
        return None
    return value.decode("utf-8") or None


def set_device_session_cookie(response: Response, device_session_id: str) -> Response:
    response.set_cookie(
        current_app.config.get("DEVICE_SESSION_COOKIE_NAME", "device_session_id"),
        sign_device_session_id(device_session_id),
        max_age=int(current_app.config.get("DEVICE_SESSION_MAX_AGE_DAYS", 30)) * 86400,
        httponly=True,
        secure=bool(current_app.config.get("SESSION_COOKIE_SECURE")),
        samesite="Lax",
    )
    return response
