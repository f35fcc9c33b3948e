"""Server-rendered account pages and their template helpers."""
from __future__ import annotations

from flask import Blueprint, Flask

web_bp = Blueprint(
    "accountguard_web",
    __name__,
    template_folder="templates",
)


def init_app(app: Flask) -> None:
    """Expose markup helpers to every template."""
    from accountguard_web.widgets import back_button

    app.jinja_env.globals["back_button"] = back_button


# Import views after blueprint creation to avoid circular imports.
from accountguard_web import routes  # noqa: E402,F401
