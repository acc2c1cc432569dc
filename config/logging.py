"""
Logging for the SuburbMates directory services.

One "suburbmates" logger carries the handlers; components log through
child loggers ("suburbmates.api", ...) so their records share the same
console and file output.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from config.settings import settings

ROOT_LOGGER_NAME = "suburbmates"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def log_dir() -> Path:
    path = Path(settings.LOG_DIR)
    if not path.is_absolute():
        path = settings.project_root / path
    path.mkdir(parents=True, exist_ok=True)
    return path


def setup_logging(
    name: str = ROOT_LOGGER_NAME,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Set up logging configuration.

    Args:
        name: Logger name
        log_file: File name under LOG_DIR (defaults to "<name>.log").
            Ignored when LOG_TO_FILE is off.

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if settings.LOG_TO_FILE:
        file_handler = logging.FileHandler(log_dir() / (log_file or f"{name}.log"))
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(component: str) -> logging.Logger:
    """Child of the shared logger for one component."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{component}")


# Default logger
logger = setup_logging()
