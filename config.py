"""Environment-specific settings, read from the process environment or `.env`."""
from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Iterable

from dotenv import load_dotenv

_TRUTHY = frozenset({"1", "true", "t", "yes", "y", "on"})

# Real environment variables win over the .env file.
load_dotenv(dotenv_path=Path(__file__).resolve().parent / ".env", override=False)


def _flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


def _int(name: str, default: int) -> int:
    return int(os.getenv(name) or default)


def _csv(name: str, default: Iterable[str]) -> list[str]:
    """Comma separated list from the environment, blanks dropped."""
    items = [part.strip() for part in os.getenv(name, "").split(",")]
    return [item for item in items if item] or list(default)


def _provider(name: str, **defaults: Any) -> Dict[str, Any]:
    """Build OAuth client settings for a provider from ``<NAME>_*`` variables."""
    prefix = name.upper()
    settings = dict(defaults)
    settings["client_id"] = os.getenv(f"{prefix}_CLIENT_ID", "")
    settings["client_secret"] = os.getenv(f"{prefix}_CLIENT_SECRET", "")
    return settings


class BaseConfig:
    APP_NAME = os.getenv("APP_NAME", "AccountGuard")
    VERSION = "0.1.0"

    SECRET_KEY = os.getenv("SECRET_KEY", "please-change-me")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///accountguard.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    SESSION_COOKIE_NAME = "accountguard_session"
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = _flag("SECURE_COOKIES")
    REMEMBER_COOKIE_HTTPONLY = True
    REMEMBER_COOKIE_DURATION = timedelta(days=30)
    REMEMBER_COOKIE_SECURE = SESSION_COOKIE_SECURE
    REMEMBER_COOKIE_SAMESITE = SESSION_COOKIE_SAMESITE
    SESSION_PROTECTION = "strong"

    WTF_CSRF_TIME_LIMIT = 3600

    RATELIMIT_ENABLED = _flag("RATELIMIT_ENABLED", True)
    RATELIMIT_HEADERS_ENABLED = True
    RATELIMIT_DEFAULT = os.getenv("RATE_LIMIT_DEFAULT", "100 per minute")
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")

    # Flask-Limiter limits applied per route, keyed by client IP.
    RATES = {
        "AUTH": os.getenv("RATE_LIMIT_AUTH", "10 per minute"),
        "VERIFY": os.getenv("RATE_LIMIT_VERIFY", "12 per minute"),
        "OTP_SEND": os.getenv("RATE_LIMIT_OTP_SEND", "5 per minute"),
    }

    SECURITY_HEADERS = _flag("SECURITY_HEADERS", True)
    CONTENT_SECURITY_POLICY: Dict[str, str] = {
        "default-src": "'self'",
        "style-src": "'self' 'unsafe-inline'",
        "script-src": "'self'",
        "img-src": "'self' data:",
        "object-src": "'none'",
        "frame-ancestors": "'self'",
    }

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT = os.getenv("LOG_FORMAT", "json").lower()
    REQUEST_BODY_LOG_MAX = _int("REQUEST_BODY_LOG_MAX", 2048)
    REDACT_KEYS = _csv("REDACT_KEYS", ["password", "currentPassword", "newPassword", "code", "Authorization"])
    JSON_SORT_KEYS = False
    PREFERRED_URL_SCHEME = "https" if SESSION_COOKIE_SECURE else "http"

    # Step-up verification.
    VERIFICATION_GRACE_PERIOD_MINUTES = _int("VERIFICATION_GRACE_PERIOD_MINUTES", 10)
    DEVICE_SESSION_COOKIE_NAME = os.getenv("DEVICE_SESSION_COOKIE_NAME", "device_session_id")
    DEVICE_SESSION_MAX_AGE_DAYS = _int("DEVICE_SESSION_MAX_AGE_DAYS", 30)
    TOTP_ISSUER = os.getenv("TOTP_ISSUER", APP_NAME)
    TOTP_VALID_WINDOW = _int("TOTP_VALID_WINDOW", 1)

    PASSWORD_MIN_LENGTH = _int("PASSWORD_MIN_LENGTH", 8)

    EMAIL_ALERTS: Dict[str, Dict[str, bool]] = {
        "password": {
            "enabled": _flag("EMAIL_ALERTS_PASSWORD", True),
            "alert_on_change": _flag("EMAIL_ALERTS_PASSWORD_CHANGE", True),
        },
        "social_providers": {
            "enabled": _flag("EMAIL_ALERTS_SOCIAL", True),
            "alert_on_connect": _flag("EMAIL_ALERTS_SOCIAL_CONNECT", True),
        },
    }

    SOCIAL_PROVIDERS: Dict[str, Dict[str, Any]] = {
        "google": _provider(
            "google",
            server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
            client_kwargs={"scope": "openid email profile"},
            subject_key="sub",
        ),
        "github": _provider(
            "github",
            authorize_url="https://github.com/login/oauth/authorize",
            access_token_url="https://github.com/login/oauth/access_token",
            api_base_url="https://api.github.com/",
            userinfo_endpoint="https://api.github.com/user",
            client_kwargs={"scope": "read:user user:email"},
            subject_key="id",
        ),
    }

    MAIL_SUPPRESS_SEND = _flag("MAIL_SUPPRESS_SEND")
    SMTP_HOST = os.getenv("SMTP_HOST", "localhost")
    SMTP_PORT = _int("SMTP_PORT", 587)
    SMTP_USE_TLS = _flag("SMTP_USE_TLS", True)
    SMTP_USE_SSL = _flag("SMTP_USE_SSL")
    SMTP_USER = os.getenv("SMTP_USER", "")
    SMTP_PASS = os.getenv("SMTP_PASS", "")
    EMAIL_FROM = os.getenv("EMAIL_FROM", "")

    OTP_EXPIRY_MINUTES = _int("OTP_EXPIRY_MINUTES", 10)
    OTP_MAX_ATTEMPTS = _int("OTP_MAX_ATTEMPTS", 5)
    RESEND_THROTTLE_SECONDS = _int("RESEND_THROTTLE_SECONDS", 60)


class DevConfig(BaseConfig):
    """Local runs: debug mode, plain-text logs."""

    DEBUG = True
    ENV = "development"
    TEMPLATES_AUTO_RELOAD = True
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
    LOG_FORMAT = os.getenv("LOG_FORMAT", "plain").lower()


class ProdConfig(BaseConfig):
    """Served over HTTPS behind a proxy."""

    DEBUG = False
    ENV = "production"
    SESSION_COOKIE_SECURE = True
    REMEMBER_COOKIE_SECURE = True
    PREFERRED_URL_SCHEME = "https"
    RATELIMIT_DEFAULT = os.getenv("RATE_LIMIT_DEFAULT", "60 per minute")


class TestConfig(BaseConfig):
    """Isolated settings for the pytest suite."""

    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS: Dict[str, Any] = {}
    WTF_CSRF_ENABLED = False
    SESSION_PROTECTION = None
    SECURITY_HEADERS = False
    LOG_LEVEL = "WARNING"
    LOG_FORMAT = "plain"
    MAIL_SUPPRESS_SEND = True
    EMAIL_FROM = "security@accountguard.test"
    SERVER_NAME = "localhost"

    SOCIAL_PROVIDERS: Dict[str, Dict[str, Any]] = {
        "google": {
            "client_id": "google-client",
            "client_secret": "google-secret",
            "authorize_url": "https://accounts.example.com/o/oauth2/auth",
            "access_token_url": "https://accounts.example.com/o/oauth2/token",
            "userinfo_endpoint": "https://accounts.example.com/userinfo",
            "client_kwargs": {"scope": "openid email profile"},
            "subject_key": "sub",
        },
        "github": {
            "client_id": "github-client",
            "client_secret": "github-secret",
            "authorize_url": "https://github.example.com/login/oauth/authorize",
            "access_token_url": "https://github.example.com/login/oauth/access_token",
            "userinfo_endpoint": "https://api.github.example.com/user",
            "client_kwargs": {"scope": "read:user user:email"},
            "subject_key": "id",
        },
    }
