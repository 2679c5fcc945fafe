"""Application factory for SportsFest."""

from __future__ import annotations

import os

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from sportsfest.blueprints.admin import admin_bp
from sportsfest.blueprints.api import api_bp
from sportsfest.blueprints.auth import auth_bp
from sportsfest.blueprints.common.tenant import init_tenant
from sportsfest.blueprints.teams import teams_bp
from sportsfest.config import Config
from sportsfest.extensions import (
    db,
    migrate,
    login_manager,
    csrf,
    limiter,
)
from sportsfest.models import User
from sportsfest.security.config import (
    configure_security_headers,
    configure_secure_session,
    validate_input_length
)


def _json_error(error: HTTPException):
    return jsonify({'error': error.description or error.name}), error.code


def register_error_handlers(app: Flask) -> None:
    """Render HTTP errors as JSON bodies."""
    for code in (400, 401, 403, 404, 405, 413, 429):
        app.register_error_handler(code, _json_error)

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        app.logger.error(f"Unhandled server error: {error}")
        return jsonify({'error': 'Internal server error'}), 500


def create_app(config_class=Config):
    """Create Flask application."""
    app = Flask(__name__, template_folder="templates")
    app.config.from_object(config_class)

    # Initialize Flask extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)
    init_tenant(app)

    # Configure security
    configure_security_headers(app)
    configure_secure_session(app)
    validate_input_length(app)

    @login_manager.user_loader
    def load_user(user_id: str):
        return db.session.get(User, user_id)

    @login_manager.unauthorized_handler
    def handle_unauthorized():
        return jsonify({'error': 'Authentication required'}), 401

    # Ensure models are registered for migrations
    import sportsfest.models  # noqa: F401

    if os.getenv("FLASK_ENV") == "development":
        app.config["TEMPLATES_AUTO_RELOAD"] = True
        app.jinja_env.auto_reload = True

    # Register blueprints
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(teams_bp, url_prefix='/teams')
    app.register_blueprint(admin_bp, url_prefix='/admin')
    app.register_blueprint(api_bp, url_prefix='/api/v1')

    register_error_handlers(app)

    # Register CLI commands
    from sportsfest.commands import register_commands
    register_commands(app)

    return app


__all__ = ['create_app']
