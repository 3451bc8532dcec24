# __init__.py
"""
Application factory for the event check-in backend.
This module creates and configures the Flask application using the application factory pattern.
"""

import os
import logging
from logging.handlers import RotatingFileHandler

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from dotenv import load_dotenv

from event_checkin.config import get_config
from event_checkin.extensions import (
    init_extensions, start_database_health_monitor, check_database_health, get_connection_stats,
    csrf, db, ticket_mailer
)
from event_checkin.utils.time_format import to_iso, utcnow


def setup_logging(app):
    """
    Configure structured logging for the application.

    Args:
        app: Flask application instance
    """
    log_format = logging.Formatter(
        '%(asctime)s %(levelname)s %(name)s %(threadName)s : %(message)s'
    )
    level = logging.DEBUG if app.debug else logging.INFO

    handlers = []

    # Tests rely on propagation to the root logger (pytest caplog)
    if not app.testing:
        log_dir = app.config.get('LOG_FOLDER') or os.path.join(app.root_path, 'logs')
        os.makedirs(log_dir, exist_ok=True)

        file_handler = RotatingFileHandler(
            os.path.join(log_dir, 'app.log'),
            maxBytes=1024 * 1024 * 10,  # 10MB
            backupCount=5
        )
        file_handler.setFormatter(log_format)
        file_handler.setLevel(logging.INFO)
        handlers.append(file_handler)

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(log_format)
        console_handler.setLevel(level)
        handlers.append(console_handler)

    app.logger.setLevel(level)
    for handler in handlers:
        app.logger.addHandler(handler)

    # Service loggers share the application handlers
    for name in ('attendee_service', 'check_in', 'ticket_mailer', 'ticket_service', 'station'):
        service_logger = logging.getLogger(name)
        service_logger.setLevel(level)
        if not service_logger.handlers:
            for handler in handlers:
                service_logger.addHandler(handler)

    # Forcefully suppress SQLAlchemy logs
    sa_logger = logging.getLogger('sqlalchemy.engine')
    sa_logger.setLevel(logging.WARNING)
    sa_logger.propagate = False


def register_blueprints(app):
    """
    Register all application blueprints.

    Args:
        app: Flask application instance
    """
    try:
        # Import blueprints here to avoid circular imports
        from .controllers.api import api_bp
        from .controllers.check_in import check_in_bp
        from .controllers.registration import registration_bp
        from .controllers.dashboard import dashboard_bp

        # JSON endpoints are called by stations and scripts, not HTML forms
        for blueprint in (api_bp, check_in_bp, registration_bp):
            csrf.exempt(blueprint)

        app.register_blueprint(api_bp, url_prefix='/api')
        app.register_blueprint(check_in_bp, url_prefix='/check-in')
        app.register_blueprint(registration_bp, url_prefix='/register')
        app.register_blueprint(dashboard_bp, url_prefix='/dashboard')

        app.logger.info("All blueprints registered successfully")

    except ImportError as e:
        app.logger.error(f"Failed to import blueprint: {str(e)}")
        raise


def register_error_handlers(app):
    """
    Register global error handlers.

    Args:
        app: Flask application instance
    """

    @app.errorhandler(404)
    def handle_404(e):
        return jsonify({
            'success': False,
            'message': 'Resource not found',
            'error_code': 'not_found'
        }), 404

    @app.errorhandler(403)
    def handle_403(e):
        return jsonify({
            'success': False,
            'message': 'Access forbidden',
            'error_code': 'forbidden'
        }), 403

    @app.errorhandler(405)
    def handle_405(e):
        return jsonify({
            'success': False,
            'message': 'Method not allowed',
            'error_code': 'method_not_allowed'
        }), 405

    @app.errorhandler(500)
    def handle_500(e):
        app.logger.error(f"Internal server error: {str(e)}")
        return jsonify({
            'success': False,
            'message': 'Internal server error',
            'error_code': 'server_error'
        }), 500

    @app.errorhandler(Exception)
    def handle_exception(e):
        if isinstance(e, HTTPException):
            return jsonify({
                'success': False,
                'message': e.description,
                'error_code': e.name.lower().replace(' ', '_')
            }), e.code

        app.logger.error(f"Unhandled exception: {str(e)}", exc_info=True)
        return jsonify({
            'success': False,
            'message': str(e) if app.debug else 'Internal server error',
            'error_code': 'server_error'
        }), 500


def register_shell_context(app):
    """
    Register shell context for flask shell command.

    Args:
        app: Flask application instance
    """

    @app.shell_context_processor
    def make_shell_context():
        from event_checkin.models import Attendee
        from event_checkin.services.attendee_service import AttendeeService
        return {
            'db': db,
            'Attendee': Attendee,
            'AttendeeService': AttendeeService,
            'ticket_mailer': ticket_mailer
        }


def register_health_checks(app):
    """
    Register health check endpoints.

    Args:
        app: Flask application instance
    """

    @app.route('/health')
    def health_check():
        """Basic health check endpoint."""
        return jsonify({
            'status': 'ok',
            'timestamp': to_iso(utcnow()),
            'version': app.config.get('VERSION', '1.0.0')
        })

    @app.route('/health/email')
    def email_health_check():
        """Email service health check endpoint."""
        config_issues = ticket_mailer.validate_config(app)
        stats = ticket_mailer.get_queue_stats()

        status = 'healthy' if not config_issues and stats['worker_running'] else 'degraded'

        return jsonify({
            'status': status,
            'config_issues': config_issues,
            'worker_thread': 'running' if stats['worker_running'] else 'stopped',
            'queue_size': stats['queue_size'],
            'status_counts': stats['status_counts'],
            'timestamp': to_iso(utcnow())
        })

    @app.route('/health/database')
    def database_health_check():
        """Database health check endpoint."""
        healthy, message = check_database_health()
        stats = get_connection_stats()

        if healthy:
            from event_checkin.models import Attendee
            stats['attendee_count'] = db.session.query(Attendee).count()

        return jsonify({
            'status': 'healthy' if healthy else 'unhealthy',
            'message': message,
            'stats': stats,
            'timestamp': to_iso(utcnow())
        }), 200 if healthy else 503


def create_app(config_name=None, config_overrides=None):
    """
    Application factory function.

    Args:
        config_name (str): Configuration name ('development', 'production', 'testing')
        config_overrides (dict): settings applied after the named configuration

    Returns:
        Flask: Configured Flask application instance
    """
    # Load environment variables
    load_dotenv()

    app = Flask(__name__)

    config_name = config_name or os.environ.get('FLASK_CONFIG', 'development')
    app.config.from_object(get_config(config_name))
    if config_overrides:
        app.config.update(config_overrides)

    # Setup logging first
    setup_logging(app)
    app.logger.info(f"Starting application with config: {config_name}")

    init_extensions(app)

    start_database_health_monitor(app, interval=app.config.get('DB_HEALTH_CHECK_INTERVAL', 300))

    register_blueprints(app)
    register_error_handlers(app)
    register_shell_context(app)
    register_health_checks(app)

    from .cli import register_cli_commands
    register_cli_commands(app)

    if app.config.get('AUTO_CREATE_TABLES'):
        with app.app_context():
            db.create_all()

    app.logger.info("Application factory completed successfully")

    return app
