"""Database helpers including SQLAlchemy and Flask-Migrate wiring."""
from __future__ import annotations

from datetime import datetime, timezone

from flask import Flask
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

# Extensions are created unbound and attached inside the application factory.
db = SQLAlchemy()
migrate = Migrate()


def utcnow() -> datetime:
    """Naive UTC timestamp, the format every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def init_app(app: Flask) -> None:
    """Bind SQLAlchemy and Flask-Migrate to the provided application."""
    db.init_app(app)
    migrate.init_app(app, db)
