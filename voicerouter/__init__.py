# voicerouter/__init__.py
# -*- coding: utf-8 -*-
"""Main application package setup."""

import os
import logging
from flask import Flask, jsonify, request

# Import configurations and extensions
from .config import config # Import config dictionary
from .extensions import db, migrate, cache


def create_app(config_name=None):
    """
    Create and configure an instance of the Flask application using the App Factory pattern.

    Args:
        config_name (str, optional): The name of the configuration to use ('development', 'testing', 'production').
                                     Defaults to FLASK_ENV environment variable or 'default'.

    Returns:
        Flask: The configured Flask application instance.
    """

    # Determine configuration name
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'default')
        if config_name not in config:
            logging.getLogger(__name__).warning(f"Invalid FLASK_ENV '{config_name}', defaulting to 'development'.")
            config_name = 'development'

    if config_name not in config:
        raise ValueError(f"Invalid configuration name: {config_name}")

    app = Flask(__name__)

    # Load configuration from config object
    app.config.from_object(config[config_name])
    config[config_name].init_app(app) # Allow config to perform extra init steps

    # Configure logging level
    log_level_name = app.config.get('LOG_LEVEL', 'INFO' if not app.debug else 'DEBUG').upper()
    log_level = getattr(logging, log_level_name, logging.INFO)
    app.logger.setLevel(log_level)
    for handler in app.logger.handlers:
        handler.setLevel(log_level)
    app.logger.info(f"App created with configuration '{config_name}', log level {log_level_name}")

    # Initialize Flask extensions
    db.init_app(app)
    migrate.init_app(app, db)
    cache.init_app(app) # Redis from REDIS_URL, database locks as fallback

    # Drop cached extension/business-hours snapshots whenever those rows change
    from .database.listeners import register_cache_listeners
    register_cache_listeners()

    # --- Register Blueprints ---
    # Carrier voice webhooks
    from .api.routes.voice_routing import voice_routing_bp
    app.register_blueprint(voice_routing_bp, url_prefix='/api/voice')

    # --- Basic Routes & Health Check ---
    @app.route('/health')
    def health_check():
        return {"status": "ok", "message": "Application is running."}, 200

    # --- Global HTTP Error Handlers ---
    # Voice endpoints always answer with XML themselves; these cover everything else.

    @app.errorhandler(400)
    def bad_request_error(error):
        app.logger.warning(f"Bad Request (400): {error.description}")
        return jsonify(message=error.description or "Bad request."), 400

    @app.errorhandler(404)
    def not_found_error(error):
        app.logger.info(f"Not Found (404): {error.description} (Path: {request.path})")
        return jsonify(message=error.description or "Resource not found."), 404

    @app.errorhandler(405)
    def method_not_allowed_error(error):
        app.logger.info(f"Method Not Allowed (405): {request.method} {request.path}")
        return jsonify(message=error.description or "Method not allowed."), 405

    @app.errorhandler(500)
    def internal_error(error):
        original_exception = getattr(error, "original_exception", error)
        app.logger.error(f"Internal Server Error (500): {error.description}", exc_info=original_exception)
        db.session.rollback()
        return jsonify(message=error.description or "Internal server error."), 500

    # --- Shell Context Processor ---
    @app.shell_context_processor
    def make_shell_context():
        from .database import models
        return {'db': db, 'models': models, 'cache': cache}

    return app
