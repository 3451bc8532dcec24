# app.py
"""
Main application entry point.
This module creates the Flask application instance and handles application startup.
"""

import os

from event_checkin import create_app
from event_checkin.extensions import ticket_mailer


def create_application():
    """
    Create and configure the Flask application.

    Returns:
        Flask: Configured application instance
    """
    config_name = os.environ.get('FLASK_CONFIG', 'development')

    app = create_app(config_name)

    if config_name == 'production':
        setup_production_features(app)

    return app


def setup_production_features(app):
    """
    Setup production-specific features.

    Args:
        app: Flask application instance
    """
    # Gunicorn forks after import; make sure this worker has a mail thread
    if not ticket_mailer.get_queue_stats()['worker_running']:
        ticket_mailer.start_worker()
        app.logger.info("Ticket mail worker restarted for production")

    for directory in (app.config.get('UPLOAD_FOLDER'), app.config.get('TICKET_FOLDER')):
        if directory:
            os.makedirs(directory, exist_ok=True)

    app.logger.info("Production features configured")


# Create the application instance
app = create_application()


@app.context_processor
def inject_global_vars():
    """Inject global variables into all templates."""
    return {
        'event_name': app.config.get('EVENT_NAME'),
        'contact_email': app.config.get('CONTACT_EMAIL'),
    }


# Development server configuration
if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    debug = app.config.get('DEBUG', False)

    app.logger.info(f"Starting development server on port {port}, debug={debug}")

    app.run(
        host='0.0.0.0',
        port=port,
        debug=debug,
        threaded=True
    )
