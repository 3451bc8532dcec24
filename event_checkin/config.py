import os
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name, default='false'):
    return os.environ.get(name, default).lower() == 'true'


class Config:
    """Base configuration class with all settings as static attributes."""

    # Core configuration
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key'
    DEBUG = _env_flag('FLASK_DEBUG')
    VERSION = '1.0.0'

    PERMANENT_SESSION_LIFETIME = timedelta(hours=2)
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    # Database configuration
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///event_checkin.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # SQLAlchemy engine options
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_recycle": 3600,  # Recycle connections after 1 hour
        "pool_pre_ping": True,  # Check connection health before use
    }

    # Health monitoring
    DB_HEALTH_CHECK_INTERVAL = 300  # 5 minutes

    # Directory configuration
    BASE_DIR = os.path.dirname(os.path.abspath(__file__))
    UPLOAD_FOLDER = os.path.join(BASE_DIR, 'uploads')
    TICKET_FOLDER = os.path.join(BASE_DIR, 'static', 'tickets')
    LOG_FOLDER = os.path.join(BASE_DIR, 'logs')

    # File upload configuration
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16MB
    ALLOWED_EXTENSIONS = {'csv', 'xlsx', 'xls'}  # For attendee imports

    # Event settings
    EVENT_NAME = os.environ.get('EVENT_NAME', 'HM Night Event')
    CONTACT_EMAIL = os.environ.get('CONTACT_EMAIL', 'organizers@example.com')
    BARCODE_LENGTH = 12

    # Shared key for station write routes; unset leaves the API open
    API_KEY = os.environ.get('API_KEY')

    # Check-in station settings
    CHECKIN_API_URL = os.environ.get('CHECKIN_API_URL', 'http://127.0.0.1:5000')
    REMOTE_TIMEOUT_SECONDS = float(os.environ.get('REMOTE_TIMEOUT_SECONDS', 5))
    SCAN_DEBOUNCE_SECONDS = float(os.environ.get('SCAN_DEBOUNCE_SECONDS', 2.0))
    ROLLBACK_ON_FAILURE = _env_flag('ROLLBACK_ON_FAILURE', 'true')

    # Email configuration
    MAIL_SERVER = os.environ.get('MAIL_SERVER', 'smtp.gmail.com')
    MAIL_PORT = int(os.environ.get('MAIL_PORT', 587))
    MAIL_USE_TLS = _env_flag('MAIL_USE_TLS', 'true')
    MAIL_USE_SSL = _env_flag('MAIL_USE_SSL')
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME')
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD')
    MAIL_DEFAULT_SENDER = os.environ.get('MAIL_DEFAULT_SENDER', 'HM Night Event <tickets@example.com>')
    MAIL_SUPPRESS_SEND = _env_flag('MAIL_SUPPRESS_SEND')
    MAIL_MAX_ATTEMPTS = 3

    @staticmethod
    def allowed_file(filename):
        """Check if file extension is allowed for attendee imports."""
        if not filename or '.' not in filename:
            return False

        ext = filename.rsplit('.', 1)[1].lower()
        return ext in Config.ALLOWED_EXTENSIONS


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    SQLALCHEMY_ECHO = _env_flag('SQL_DEBUG')


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    SESSION_COOKIE_SECURE = True

    def __init__(self):
        # Ensure secret key and database are set in production
        if not os.environ.get('SECRET_KEY'):
            raise ValueError("SECRET_KEY environment variable must be set in production")
        if not os.environ.get('DATABASE_URL'):
            raise ValueError("DATABASE_URL environment variable must be set in production")

        self.SECRET_KEY = os.environ['SECRET_KEY']
        self.SQLALCHEMY_DATABASE_URI = os.environ['DATABASE_URL']


class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    WTF_CSRF_ENABLED = False
    API_KEY = None

    MAIL_SUPPRESS_SEND = True
    MAIL_USERNAME = 'tests@example.com'
    MAIL_PASSWORD = 'not-a-real-password'
    START_EMAIL_WORKER = False


# Configuration dictionary
config_by_name = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig
}


def get_config(config_name=None):
    """Get a configuration instance by name (defaults to FLASK_CONFIG)."""
    config_name = config_name or os.environ.get('FLASK_CONFIG', 'development')
    return config_by_name[config_name]()
