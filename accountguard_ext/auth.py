"""Authentication helpers and Flask-Login integration."""
from __future__ import annotations

from flask import Flask, request
from flask_login import LoginManager

from accountguard_ext.errors import AuthError
from accountguard_ext.logging import log_warn

login_manager = LoginManager()
login_manager.session_protection = "strong"


def init_app(app: Flask) -> None:
    """Configure Flask-Login for the application."""
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id: str):  # type: ignore[override]
        from accountguard_ext.db import db
        from accountguard_models.user import User

        try:
            return db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None

    @login_manager.unauthorized_handler
    def unauthorized():
        log_warn("unauthorized access attempt", component="auth", context={"route": request.path})
        raise AuthError(user_msg="Unauthorized")
