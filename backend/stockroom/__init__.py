# backend/stockroom/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def create_app(config_object=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.warehouses import warehouses_bp
    from .routes.categories import categories_bp, subcategories_bp
    from .routes.feature_definitions import feature_definitions_bp
    from .routes.products import products_bp
    from .routes.inventory import inventory_bp
    from .routes.stock_movements import stock_movements_bp
    from .routes.search import search_bp
    from .routes.preferences import user_bp
    from .routes.clients import clients_bp
    from .routes.companies import companies_bp
    from .routes.services import services_bp, service_categories_bp
    from .routes.quotes import quotes_bp, public_quotes_bp
    from .routes.category_templates import category_templates_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(warehouses_bp)
    app.register_blueprint(categories_bp)
    app.register_blueprint(subcategories_bp)
    app.register_blueprint(feature_definitions_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(stock_movements_bp)
    app.register_blueprint(search_bp)
    app.register_blueprint(user_bp)
    app.register_blueprint(clients_bp)
    app.register_blueprint(companies_bp)
    app.register_blueprint(services_bp)
    app.register_blueprint(service_categories_bp)
    app.register_blueprint(quotes_bp)
    app.register_blueprint(public_quotes_bp)
    app.register_blueprint(category_templates_bp)

    allowed_origins = set(app.config.get("CORS_ALLOWED_ORIGINS") or [])

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
