# extensions.py
"""
Flask extensions initialization.
Extensions are created here unbound and attached to the app in the application
factory, which keeps models and services free of circular imports.
"""

import logging
import threading
import time

from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf.csrf import CSRFProtect
from sqlalchemy import text

from event_checkin.utils.ticket_mailer import TicketMailer

# Initialize extensions without app binding
db = SQLAlchemy()
migrate = Migrate()
csrf = CSRFProtect()
ticket_mailer = TicketMailer()

# Connection monitoring
connection_stats = {
    'total_checks': 0,
    'failed_checks': 0,
    'last_check': 0,
    'healthy': True
}
connection_lock = threading.Lock()

logger = logging.getLogger(__name__)


def get_connection_stats():
    """
    Get current database connection statistics.

    Returns:
        dict: Connection statistics
    """
    with connection_lock:
        return connection_stats.copy()


def check_database_health():
    """
    Check if the database connection is healthy.
    Requires an active Flask application context.

    Returns:
        tuple: (bool, str) indicating health status and message
    """
    try:
        with db.engine.connect() as connection:
            connection.execute(text("SELECT 1")).fetchone()

        with connection_lock:
            connection_stats['total_checks'] += 1
            connection_stats['healthy'] = True
            connection_stats['last_check'] = time.time()

        return True, "Database connection is healthy"

    except Exception as e:
        logger.error(f"Database health check failed: {e}")

        with connection_lock:
            connection_stats['total_checks'] += 1
            connection_stats['failed_checks'] += 1
            connection_stats['healthy'] = False
            connection_stats['last_check'] = time.time()

        return False, f"Database connection failed: {str(e)}"


def init_extensions(app):
    """
    Initialize all extensions in dependency order.

    Args:
        app: Flask application instance
    """
    # Database first (required by other extensions)
    db.init_app(app)
    migrate.init_app(app, db)

    # CSRF protection for form posts; JSON blueprints are exempted at registration
    csrf.init_app(app)

    ticket_mailer.init_app(app)

    app.logger.info("Extensions initialized successfully in correct order")


def start_database_health_monitor(app, interval=300):
    """
    Start a background thread to monitor database health.

    Args:
        app: Flask application instance
        interval (int): Health check interval in seconds
    """

    def monitor():
        while True:
            try:
                with app.app_context():
                    healthy, message = check_database_health()
                    if not healthy:
                        logger.warning(f"Database health monitor: {message}")
            except Exception as e:
                logger.error(f"Database health monitor error: {e}")
            time.sleep(interval)

    # Only start in production or if explicitly enabled
    if not app.debug and not app.testing or app.config.get('ENABLE_DB_HEALTH_MONITOR', False):
        monitor_thread = threading.Thread(target=monitor, daemon=True, name="DbHealthMonitor")
        monitor_thread.start()
        logger.info("Started database health monitor thread")
