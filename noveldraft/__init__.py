from __future__ import annotations

import logging
from pathlib import Path

from flask import Flask

from .cli import register_cli
from .config import Config
from .db_utils import ensure_database_schema
from .extensions import csrf, db, login_manager, migrate
from .services import init_generation


BASE_DIR = Path(__file__).resolve().parent.parent


def create_app(config_class: type[Config] = Config) -> Flask:
    app = Flask(
        __name__,
        instance_relative_config=True,
        static_folder=str(BASE_DIR / "static"),
        static_url_path="/static",
    )
    app.config.from_object(config_class)

    configure_logging(app)
    # Fails fast on invalid generation settings.
    init_generation(app)

    register_extensions(app)
    register_blueprints(app)
    register_cli(app)

    with app.app_context():
        ensure_database_schema()

    return app


def configure_logging(app: Flask) -> None:
    level = str(app.config.get("LOG_LEVEL") or "INFO").upper()
    logging.getLogger(__name__).setLevel(level)
    app.logger.setLevel(level)


def register_extensions(app: Flask) -> None:
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    login_manager.login_view = "auth.login"
    login_manager.login_message_category = "info"
    csrf.init_app(app)


def register_blueprints(app: Flask) -> None:
    from .auth import bp as auth_bp
    from .main import bp as main_bp
    from .novels import bp as novels_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(main_bp)
    app.register_blueprint(novels_bp)
