"""
Logging configuration for the fantasy corps scoring engine
Provides console, rotating file and scoring-run logs tagged with the season/day being processed
"""

import contextlib
import logging
import logging.handlers
import os
import threading
from logging import Filter

_run_context = threading.local()

SCORING_LOGGERS = [
    "fantasy_corps.services.daily_processor",
    "fantasy_corps.services.bracket_service",
    "fantasy_corps.services.matchup_resolver",
    "fantasy_corps.services.persistence",
    "fantasy_corps.services.scheduler_service",
    "fantasy_corps.utils.regression",
]


class RunContextFilter(Filter):
    """Add the season and scored day of the current run to log records"""

    def filter(self, record):
        record.season = getattr(_run_context, "season", "-")
        record.day = getattr(_run_context, "day", "-")
        return True


@contextlib.contextmanager
def run_context(season, day):
    """Tag every record logged on this thread with a season and day"""
    previous = (getattr(_run_context, "season", "-"), getattr(_run_context, "day", "-"))
    _run_context.season = season
    _run_context.day = day
    try:
        yield
    finally:
        _run_context.season, _run_context.day = previous


def bind_run_context(season, day):
    """Set the run context on a worker thread"""
    _run_context.season = season
    _run_context.day = day


class ColoredFormatter(logging.Formatter):
    """Colored formatter for console output"""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",  # Reset
    }

    def format(self, record):
        log_color = self.COLORS.get(record.levelname, self.COLORS["RESET"])
        reset_color = self.COLORS["RESET"]

        # Format a copy so file handlers keep the plain level name
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{log_color}{record.levelname}{reset_color}"

        return super().format(record)


def _rotating_handler(path, level, formatter, max_bytes, backup_count):
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(RunContextFilter())
    return handler


def setup_logging(app):
    """
    Setup logging for the Flask application and the scoring pipeline

    Args:
        app: Flask application instance
    """

    # Determine log level from config
    log_level = getattr(logging, app.config.get("LOG_LEVEL", "INFO").upper())

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Console handler with colors (for development)
    if app.config.get("LOG_TO_CONSOLE", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)

        if app.debug:
            console_formatter = ColoredFormatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s "
                "[season=%(season)s day=%(day)s] [%(filename)s:%(lineno)d]",
                datefmt="%H:%M:%S",
            )
        else:
            console_formatter = logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )

        console_handler.setFormatter(console_formatter)
        console_handler.addFilter(RunContextFilter())
        root_logger.addHandler(console_handler)

    if app.config.get("LOG_TO_FILE", True):
        log_dir = app.config.get("LOG_DIR", "logs")
        os.makedirs(log_dir, exist_ok=True)

        # Application log
        root_logger.addHandler(
            _rotating_handler(
                os.path.join(log_dir, "fantasy_corps.log"),
                log_level,
                logging.Formatter(
                    "%(asctime)s [%(levelname)s] %(name)s: %(message)s "
                    "[season=%(season)s day=%(day)s]",
                    datefmt="%Y-%m-%d %H:%M:%S",
                ),
                10 * 1024 * 1024,  # 10MB
                5,
            )
        )

        # Error log file for errors and above
        root_logger.addHandler(
            _rotating_handler(
                os.path.join(log_dir, "errors.log"),
                logging.ERROR,
                logging.Formatter(
                    "%(asctime)s [%(levelname)s] %(name)s: %(message)s "
                    "[%(pathname)s:%(lineno)d] [season=%(season)s day=%(day)s]",
                    datefmt="%Y-%m-%d %H:%M:%S",
                ),
                5 * 1024 * 1024,  # 5MB
                3,
            )
        )

        # Scoring run log, attached only to the pipeline loggers
        scoring_handler = _rotating_handler(
            os.path.join(log_dir, "scoring.log"),
            logging.INFO,
            logging.Formatter(
                "%(asctime)s [%(levelname)s] [season=%(season)s day=%(day)s] "
                "%(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            ),
            5 * 1024 * 1024,  # 5MB
            3,
        )
        for name in SCORING_LOGGERS:
            scoring_logger = logging.getLogger(name)
            for handler in scoring_logger.handlers[:]:
                scoring_logger.removeHandler(handler)
            scoring_logger.addHandler(scoring_handler)

    # Configure third-party loggers
    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    # Set APScheduler logging to WARNING to reduce verbosity (change to INFO for debugging)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    app.logger.info(f"Logging configured - Level: {logging.getLevelName(log_level)}")


def get_logger(name):
    """
    Get a logger instance with the specified name

    Args:
        name: Logger name (usually __name__)

    Returns:
        logging.Logger: Configured logger instance
    """
    return logging.getLogger(name)
