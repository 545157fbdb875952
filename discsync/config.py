"""
Application configuration

Values are read from environment variables; a local .env file is loaded first.
"""
import os

from dotenv import load_dotenv

load_dotenv()

# Project root (the directory containing the discsync package)
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _env_flag(name: str, default: str = '0') -> bool:
    return os.environ.get(name, default).strip() == '1'


def _resolve_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(BASE_DIR, path)


class Config:
    """Base configuration"""

    # ==================== Database ====================
    DATABASE_URL = os.environ.get('DATABASE_URL')
    if DATABASE_URL:
        SQLALCHEMY_DATABASE_URI = DATABASE_URL
    else:
        SQLALCHEMY_DATABASE_URI = f'sqlite:///{os.path.join(BASE_DIR, "var", "app.db")}'

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Seconds a writer waits on a locked SQLite database before giving up
    SQLITE_BUSY_TIMEOUT = float(os.environ.get('SQLITE_BUSY_TIMEOUT', '30'))
    SQLALCHEMY_ENGINE_OPTIONS = {
        'connect_args': {'timeout': SQLITE_BUSY_TIMEOUT},
    } if SQLALCHEMY_DATABASE_URI.startswith('sqlite') else {}

    # ==================== Discogs account ====================
    DISCOGS_USERNAME = os.environ.get('DISCOGS_USERNAME')
    DISCOGS_TOKEN = os.environ.get('DISCOGS_TOKEN')
    DISCOGS_API_BASE = os.environ.get('DISCOGS_API_BASE', 'https://api.discogs.com/')
    USER_AGENT = os.environ.get('USER_AGENT', 'DiscSync/0.1 (+https://github.com/discsync)')

    # ==================== Request pipeline ====================
    REQUEST_TIMEOUT = float(os.environ.get('REQUEST_TIMEOUT', '30'))
    RETRY_MAX_ATTEMPTS = int(os.environ.get('RETRY_MAX_ATTEMPTS', '5'))

    # ==================== Images ====================
    # Stored as-is in images.local_path; resolved against BASE_DIR when relative
    IMG_DIR = os.environ.get('IMG_DIR', 'public/images')
    IMAGE_DAILY_CAP = int(os.environ.get('IMAGE_DAILY_CAP', '1000'))
    IMAGE_MIN_INTERVAL = float(os.environ.get('IMAGE_MIN_INTERVAL', '1.0'))

    # ==================== Sync ====================
    IMPORT_PAGE_SIZE = int(os.environ.get('IMPORT_PAGE_SIZE', '100'))
    REFRESH_MAX_PAGES = int(os.environ.get('REFRESH_MAX_PAGES', '10'))
    PUSH_BATCH_SIZE = int(os.environ.get('PUSH_BATCH_SIZE', '50'))
    PUSH_MAX_ATTEMPTS = int(os.environ.get('PUSH_MAX_ATTEMPTS', '5'))
    # Discogs notes are only pushed when explicitly enabled
    PUSH_NOTES = _env_flag('PUSH_NOTES')

    # ==================== Logging ====================
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_FILE = os.environ.get('LOG_FILE')

    @staticmethod
    def init_paths():
        """Create the data directories used by the default configuration."""
        for path in [os.path.join(BASE_DIR, 'var'), _resolve_path(Config.IMG_DIR)]:
            if not os.path.exists(path):
                os.makedirs(path)

    @staticmethod
    def resolve_path(path: str) -> str:
        """Resolve a stored (possibly relative) path against the project root."""
        return _resolve_path(path)


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    LOG_LEVEL = 'DEBUG'


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    LOG_LEVEL = 'WARNING'

    @classmethod
    def validate(cls):
        """Report missing settings required for syncing."""
        errors = []

        if not os.environ.get('DISCOGS_USERNAME'):
            errors.append('DISCOGS_USERNAME is not set')

        if not os.environ.get('DISCOGS_TOKEN'):
            errors.append('DISCOGS_TOKEN is not set (remote calls will be rejected)')

        if errors:
            print("Production configuration warnings:")
            for error in errors:
                print(f"  - {error}")
        return errors


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    DISCOGS_USERNAME = 'tester'
    DISCOGS_TOKEN = 'test-token'
    LOG_LEVEL = 'WARNING'
    PUSH_NOTES = False


# Config lookup by environment name
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}


def get_config():
    """Return the config class selected by FLASK_ENV."""
    env = os.environ.get('FLASK_ENV', 'development')
    return config.get(env, config['default'])
