"""Application factory wiring the account security extensions together."""
from __future__ import annotations

import os
from importlib import import_module
from typing import Type, Union

from flask import Flask

from config import BaseConfig, DevConfig, ProdConfig, TestConfig
from accountguard_ext import auth as auth_ext
from accountguard_ext import db as db_ext
from accountguard_ext import errors as errors_ext
from accountguard_ext import logging as logging_ext
from accountguard_ext import oauth as oauth_ext
from accountguard_ext import security as security_ext

ConfigSource = Union[str, Type[BaseConfig], None]

CONFIG_BY_NAME: dict[str, Type[BaseConfig]] = {
    "development": DevConfig,
    "production": ProdConfig,
    "testing": TestConfig,
}
_ALIASES = {"dev": "development", "prod": "production", "test": "testing"}


def resolve_config(source: ConfigSource) -> Type[BaseConfig]:
    """Map an environment name, dotted path or class to a config class.

    ``None`` falls back to ``FLASK_ENV`` and then to development settings.
    """
    if source is None:
        name = os.getenv("FLASK_ENV", "development").lower()
        return CONFIG_BY_NAME.get(_ALIASES.get(name, name), DevConfig)
    if not isinstance(source, str):
        return source
    name = _ALIASES.get(source.lower(), source.lower())
    if name in CONFIG_BY_NAME:
        return CONFIG_BY_NAME[name]
    module_path, _, attr = source.rpartition(".")
    if not module_path:
        raise KeyError(f"Unknown config identifier: {source}")
    return getattr(import_module(module_path), attr)


def create_app(config_object: ConfigSource = None, *, create_db: bool = True) -> Flask:
    """Build the application for the web server, the CLI or the test suite."""
    app = Flask(__name__, template_folder=None, static_folder=None)
    app.config.from_object(resolve_config(config_object))

    logging_ext.configure_logging(app)
    errors_ext.init_app(app)

    # Request ids must exist before the limiter can reject a request.
    from accountguard_web.middleware import init_app as middleware_init

    middleware_init(app)

    db_ext.init_app(app)
    security_ext.init_app(app)
    auth_ext.init_app(app)
    oauth_ext.init_app(app)

    from accountguard_auth import auth_api_bp
    from accountguard_cli.manage import manage_cli
    from accountguard_web import init_app as web_init, web_bp

    app.register_blueprint(web_bp)
    app.register_blueprint(auth_api_bp, url_prefix="/api/auth")
    web_init(app)
    app.cli.add_command(manage_cli, "manage")

    if create_db:
        import accountguard_models  # noqa: F401  # register tables

        with app.app_context():
            db_ext.db.create_all()

    app.logger.debug("Application created", extra={"component": "factory", "context": {"config": app.config.get("ENV")}})
    return app
