"""
Flask Application Factory

This module creates and configures the Flask application.
"""
import time

from flask import Flask, g, jsonify, request
from sqlalchemy import event

from .config import Config, get_config
from .extensions import db
from .api import sync_status_bp
from .utils.logger import setup_logger, get_logger


def create_app(config_class=None):
    """Create and configure Flask application.

    Args:
        config_class: Configuration class to use. If None, auto-detect from environment.

    Returns:
        Configured Flask application instance
    """
    if config_class is None:
        config_class = get_config()

    app = Flask(__name__)
    app.config.from_object(config_class)

    # Ensure data directories exist
    if not app.config.get('TESTING'):
        Config.init_paths()

    setup_logger(
        log_level=app.config.get('LOG_LEVEL', 'INFO'),
        log_file=app.config.get('LOG_FILE')
    )

    logger = get_logger('app')

    db.init_app(app)

    with app.app_context():
        _configure_sqlite(app)
        db.create_all()

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_request_hooks(app)
    _register_health_check(app)
    _register_cli(app)

    db_uri = app.config.get('SQLALCHEMY_DATABASE_URI', '')
    logger.info(f"Application initialized, database: {db_uri}")

    return app


def _configure_sqlite(app):
    """WAL journal and busy timeout so CLI jobs and web requests can share the file."""
    if db.engine.dialect.name != 'sqlite':
        return

    busy_timeout_ms = int(app.config.get('SQLITE_BUSY_TIMEOUT', 30) * 1000)

    @event.listens_for(db.engine, 'connect')
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA journal_mode=WAL')
        cursor.execute(f'PRAGMA busy_timeout={busy_timeout_ms}')
        cursor.close()


def _register_blueprints(app):
    app.register_blueprint(sync_status_bp, url_prefix='/api')


def _register_error_handlers(app):
    """Register global error handlers."""
    from .services.sync.errors import SyncDisabledError, SyncError
    from .utils.responses import ApiResponse

    @app.errorhandler(400)
    def bad_request(error):
        msg = str(error.description) if hasattr(error, 'description') else 'Bad request'
        return ApiResponse.error(msg, 400, 'BAD_REQUEST')

    @app.errorhandler(404)
    def not_found(error):
        msg = str(error.description) if hasattr(error, 'description') else 'Resource not found'
        return ApiResponse.not_found(msg)

    @app.errorhandler(405)
    def method_not_allowed(error):
        return ApiResponse.error('Method not allowed', 405, 'METHOD_NOT_ALLOWED')

    @app.errorhandler(SyncDisabledError)
    def sync_disabled(error):
        return ApiResponse.error(str(error), 503, 'SYNC_DISABLED')

    @app.errorhandler(SyncError)
    def sync_error(error):
        get_logger('error').warning(f"Sync error: {error}")
        return ApiResponse.error(str(error), 502, 'SYNC_ERROR')

    @app.errorhandler(500)
    def internal_error(error):
        logger = get_logger('error')
        logger.exception(error)
        return ApiResponse.server_error('Internal server error')


def _register_request_hooks(app):
    """Register request timing hooks."""

    @app.before_request
    def before_request():
        g.start_time = time.time()

    @app.after_request
    def after_request(response):
        if hasattr(g, 'start_time'):
            duration = (time.time() - g.start_time) * 1000
            if duration > 1000:  # Log slow requests
                logger = get_logger('slow_request')
                logger.warning(f"Slow request: {request.method} {request.path} took {duration:.2f}ms")
        return response


def _register_health_check(app):
    """Register health check endpoint."""

    @app.route('/api/health')
    def health_check():
        return jsonify({
            'status': 'healthy',
            'service': 'discsync'
        })


def _register_cli(app):
    from .cli import register_commands
    register_commands(app)
