# agriledger/__init__.py
from flask import Flask

from .config import Config
from .extensions import db, migrate, events


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    events.init_app(app)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.items import items_bp
    from .routes.returns import returns_bp
    from .routes.assets import assets_bp
    from .routes.requests import requests_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(items_bp)
    app.register_blueprint(returns_bp)
    app.register_blueprint(assets_bp)
    app.register_blueprint(requests_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
