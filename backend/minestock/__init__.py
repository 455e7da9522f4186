# backend/minestock/__init__.py
from flask import Flask

from .config import Config
from .extensions import db, migrate



def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    # Overrides must land before db.init_app: engines are created there
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.inventory import resources_bp, suppliers_bp
    from .routes.reorders import reorders_bp, deliveries_bp
    from .routes.reports import reports_bp
    from .routes.audit import audit_bp
    from .routes.holidays import holidays_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(resources_bp)
    app.register_blueprint(suppliers_bp)
    app.register_blueprint(reorders_bp)
    app.register_blueprint(deliveries_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(audit_bp)
    app.register_blueprint(holidays_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
