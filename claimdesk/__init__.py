# claimdesk/__init__.py
from __future__ import annotations

import logging

from flask import Flask, jsonify

from .errors import ClaimDeskError
from .extensions import db, limiter, login_manager, migrate
from .settings import Config


def create_app(config_object=None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object or Config)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # ======================
    # Initialize Extensions
    # ======================
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    limiter.init_app(app)

    # ======================
    # Import Models (CRITICAL)
    # ======================
    from . import models  # noqa: F401

    # ======================
    # Register Blueprints
    # ======================
    from .routes import api
    from .auth import auth
    from .admin import admin_bp

    app.register_blueprint(api)
    app.register_blueprint(auth)
    app.register_blueprint(admin_bp)

    # ======================
    # Domain error handler
    # ======================
    @app.errorhandler(ClaimDeskError)
    def claimdesk_error(e: ClaimDeskError):
        if e.status_code >= 500:
            app.logger.warning("%s: %s", type(e).__name__, e.message)
        return jsonify(e.to_dict()), e.status_code

    # ======================
    # Rate limit error handler
    # ======================
    @app.errorhandler(429)
    def ratelimit_handler(e):
        return jsonify({"success": False, "error": "Too many requests. Please try again later.", "kind": "rate_limited"}), 429

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"success": False, "error": "Not found.", "kind": "not_found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"success": False, "error": "Method not allowed.", "kind": "method_not_allowed"}), 405

    return app
