"""Authlib OAuth client registry for social identity providers."""
from __future__ import annotations

from typing import Any, Dict

from authlib.integrations.flask_client import OAuth
from flask import Flask, current_app

EXTENSION_KEY = "accountguard.oauth"

# Settings consumed locally rather than forwarded to Authlib.
_LOCAL_KEYS = {"subject_key"}


def init_app(app: Flask) -> OAuth:
    """Build a registry for this app and register every provider with a client id."""
    registry = OAuth(app)
    for name, settings in (app.config.get("SOCIAL_PROVIDERS") or {}).items():
        if not settings.get("client_id"):
            app.logger.debug("OAuth provider %s has no client id; skipping", name)
            continue
        kwargs = {key: value for key, value in settings.items() if key not in _LOCAL_KEYS}
        registry.register(name=name, **kwargs)
    app.extensions[EXTENSION_KEY] = registry
    return registry


def provider_names() -> list[str]:
    """Names of providers enabled in the current configuration."""
    return sorted(current_app.config.get("SOCIAL_PROVIDERS") or {})


def provider_settings(name: str) -> Dict[str, Any]:
    return dict((current_app.config.get("SOCIAL_PROVIDERS") or {}).get(name) or {})


def get_client(name: str):
    """Return the registered Authlib client for ``name`` or ``None``."""
    registry: OAuth | None = current_app.extensions.get(EXTENSION_KEY)
    if registry is None:
        return None
    return registry.create_client(name)
