"""JSON API blueprint for account security actions."""
from __future__ import annotations

from flask import Blueprint

auth_api_bp = Blueprint("accountguard_auth", __name__)

from accountguard_auth import routes  # noqa: E402,F401
