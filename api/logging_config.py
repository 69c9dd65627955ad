"""
Logging setup for Meet Attendant.

One app logger ("meet_attendant") writes to a colored console, a rotating
log file and a separate errors file. The core/ and browser/ logger trees
are attached to the same handlers once the app starts.
"""

import os
import sys
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_DIR = Path(os.getenv("LOG_DIR", Path(__file__).parent.parent / "logs"))
LOG_DIR.mkdir(parents=True, exist_ok=True)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

APP_LOGGER = "meet_attendant"
PACKAGE_LOGGERS = ("core", "browser")

DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
CONSOLE_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(message)s'
FILE_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(funcName)s:%(lineno)d | %(message)s'
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


class ColoredFormatter(logging.Formatter):
    """Console formatter that colors the level name."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record):
        color = self.COLORS.get(record.levelname, self.RESET)
        # Work on a copy: the file handlers see the same record
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(colored)


def _file_handler(filename: str, level: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(LOG_DIR / filename, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(name: str = APP_LOGGER) -> logging.Logger:
    """
    Configure `name` with console, log-file and error-file handlers.

    Calling it again for the same name returns the logger untouched.
    """
    app_logger = logging.getLogger(name)
    if app_logger.handlers:
        return app_logger

    app_logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.DEBUG)
    console.setFormatter(ColoredFormatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))

    app_logger.addHandler(console)
    app_logger.addHandler(_file_handler(f"{name}.log", logging.DEBUG))
    app_logger.addHandler(_file_handler(f"{name}_errors.log", logging.ERROR))
    return app_logger


def setup_package_logging():
    """Route the core/ and browser/ module loggers through the app handlers."""
    app_logger = setup_logging()
    for name in PACKAGE_LOGGERS:
        package_logger = logging.getLogger(name)
        if package_logger.handlers:
            continue
        package_logger.setLevel(app_logger.level)
        for handler in app_logger.handlers:
            package_logger.addHandler(handler)


logger = setup_logging()


def log_request(method: str, path: str, status_code: int = None, duration_ms: float = None):
    if duration_ms is None:
        logger.info(f"HTTP {method} {path}")
    else:
        logger.info(f"HTTP {method} {path} -> {status_code} ({duration_ms:.2f}ms)")


def log_job_event(job_id: str, event: str, error: str = None):
    """Job lifecycle line; failures go to the errors file as well."""
    if error:
        logger.error(f"Job {job_id} {event}: {error}")
    else:
        logger.info(f"Job {job_id} -> {event}")
