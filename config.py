import os

from dotenv import load_dotenv

basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(basedir, ".env"))


def _env_flag(name, default):
    return os.environ.get(name, default).lower() in ["true", "on", "1"]


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "fantasy-corps-scoring")

    # Database configuration - built from environment at initialization
    def __init__(self):
        """Initialize configuration with dynamic database URI"""
        self.SQLALCHEMY_DATABASE_URI = self._build_database_uri()

    def _build_database_uri(self):
        """Build database URI from environment variables"""
        database_url = os.environ.get("DATABASE_URL")

        if database_url:
            return database_url

        db_type = os.environ.get("DB_TYPE", "sqlite")

        if db_type.lower() == "postgresql":
            db_host = os.environ.get("DB_HOST") or "localhost"
            db_port = os.environ.get("DB_PORT") or "5432"
            db_name = os.environ.get("DB_NAME") or "fantasy_corps_db"
            db_user = os.environ.get("DB_USER") or "corps_user"
            db_password = os.environ.get("DB_PASSWORD") or "corps_password"

            return f"postgresql+psycopg://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"
        else:
            # Default to SQLite for development
            return "sqlite:///" + os.path.join(basedir, "fantasy_corps.db")

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Caching configuration (read API)
    CACHE_TYPE = os.environ.get("CACHE_TYPE", "SimpleCache")
    CACHE_DEFAULT_TIMEOUT = int(
        os.environ.get("CACHE_DEFAULT_TIMEOUT", 300)
    )  # 5 minutes
    CACHE_REDIS_URL = os.environ.get("CACHE_REDIS_URL")
    CACHE_KEY_PREFIX = "fantasy_corps:"

    # Scheduler configuration
    SCHEDULER_ENABLED = _env_flag("SCHEDULER_ENABLED", "True")

    # Daily scoring run
    SCORING_TIMEZONE = os.environ.get("SCORING_TIMEZONE", "America/New_York")
    SCORING_RUN_HOUR = int(os.environ.get("SCORING_RUN_HOUR", 2))
    SCORING_BATCH_SIZE = int(os.environ.get("SCORING_BATCH_SIZE", 400))
    SCORING_PROFILE_READ_LIMIT = int(
        os.environ.get("SCORING_PROFILE_READ_LIMIT", 5000)
    )
    SCORING_MAX_WORKERS = int(os.environ.get("SCORING_MAX_WORKERS", 8))
    SCORING_RUN_TIMEOUT_SECONDS = float(
        os.environ.get("SCORING_RUN_TIMEOUT_SECONDS", 540)
    )
    # Unset in production so jitter differs between runs
    SCORING_RANDOM_SEED = (
        int(os.environ["SCORING_RANDOM_SEED"])
        if os.environ.get("SCORING_RANDOM_SEED")
        else None
    )

    # Logging configuration
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_TO_CONSOLE = _env_flag("LOG_TO_CONSOLE", "True")
    LOG_TO_FILE = _env_flag("LOG_TO_FILE", "True")
    LOG_DIR = os.environ.get("LOG_DIR", "logs")
    SLOW_FUNCTION_THRESHOLD = float(os.environ.get("SLOW_FUNCTION_THRESHOLD", "5.0"))

    # Environment detection
    FLASK_ENV = os.environ.get("FLASK_ENV", "development")
    DEBUG = FLASK_ENV == "development"
    TESTING = False


class DevelopmentConfig(Config):
    """Development configuration with helpful defaults"""

    DEBUG = True
    SQLALCHEMY_ECHO = _env_flag("SQLALCHEMY_ECHO", "False")


class ProductionConfig(Config):
    """Production configuration"""

    DEBUG = False

    def __init__(self):
        super().__init__()

        if self.CACHE_REDIS_URL and self.CACHE_TYPE == "SimpleCache":
            self.CACHE_TYPE = "RedisCache"


class TestingConfig(Config):
    """Testing configuration"""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SCHEDULER_ENABLED = False
    LOG_TO_FILE = False
    LOG_TO_CONSOLE = False
    CACHE_TYPE = "NullCache"
    SCORING_MAX_WORKERS = 2
    SCORING_RANDOM_SEED = 1234

    def _build_database_uri(self):
        return "sqlite:///:memory:"


# Configuration mapping
config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}
