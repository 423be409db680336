"""Logging setup for qualify runs.

Everything logs under the ``credit_screener`` namespace. Log records go to
stderr so the console report on stdout stays clean.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from .error_handling import ConfigurationError

ROOT_LOGGER_NAME = "credit_screener"

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEBUG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(lineno)d - %(message)s'

# HTTP client loggers that drown out provider warnings below DEBUG
NOISY_LOGGERS = ("urllib3", "requests")


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
) -> logging.Logger:
    """Configure the screener's root logger.

    Calling it again replaces the previous handlers.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_file: Optional file that receives the same records (appended)
        log_format: Custom format; DEBUG runs default to including module:line

    Returns:
        The ``credit_screener`` logger

    Raises:
        ConfigurationError: If log_level is not a known level name

    Example:
        >>> logger = setup_logging(log_level="DEBUG", log_file="logs/qualify.log")
        >>> logger.info("Qualifying %d tickers", 12)
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ConfigurationError(f"Unknown log level: {log_level}")

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if log_format is None:
        log_format = DEBUG_FORMAT if level <= logging.DEBUG else DEFAULT_FORMAT
    formatter = logging.Formatter(log_format, datefmt='%Y-%m-%d %H:%M:%S')

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode='a')
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if level <= logging.DEBUG else logging.WARNING)

    logger.propagate = False
    return logger
