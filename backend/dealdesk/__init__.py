# backend/dealdesk/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate, storage


def create_app(config_overrides: dict | None = None) -> Flask:
    """
    Application factory.

    ``config_overrides`` is applied before the extensions bind, which is how
    tests point the app at an in-memory database and a temporary storage root.
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    storage.init_app(app)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.partners import partners_bp
    from .routes.customers import customers_bp
    from .routes.pricing import pricing_bp
    from .routes.catalog import catalog_bp
    from .routes.opportunities import opportunities_bp
    from .routes.offers import offers_bp  # Offer lifecycle, review requests, contract creation
    from .routes.reviews import reviews_bp  # Deal review inbox, decisions, resends
    from .routes.contracts import contracts_bp
    from .routes.projects import projects_bp
    from .routes.uploads import uploads_bp  # Attachment upload/download/deletion marks

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(partners_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(pricing_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(opportunities_bp)
    app.register_blueprint(offers_bp)
    app.register_blueprint(reviews_bp)
    app.register_blueprint(contracts_bp)
    app.register_blueprint(projects_bp)
    app.register_blueprint(uploads_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config["CORS_ALLOWED_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
