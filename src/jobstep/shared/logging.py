"""Centralized logging utilities."""

import logging
import sys
from typing import Optional
from pathlib import Path

ROOT_LOGGER = 'jobstep'


def setup_logger(
    name: str,
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    format_string: Optional[str] = None
) -> logging.Logger:
    """
    Set up a logger with console and optional file output.

    Args:
        name: Logger name
        level: Logging level
        log_file: Optional file to write logs to
        format_string: Custom format string

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    if format_string is None:
        format_string = '[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s'

    formatter = logging.Formatter(format_string, datefmt='%H:%M:%S')

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger

def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the ``jobstep`` hierarchy.

    Names outside the hierarchy (e.g. class names) are nested under it. The
    ``jobstep`` logger gets a default console handler the first time it is
    needed; hosts reconfigure it with ``setup_logger('jobstep', ...)``.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + '.'):
        name = f"{ROOT_LOGGER}.{name}"
    if not logging.getLogger(ROOT_LOGGER).handlers:
        setup_logger(ROOT_LOGGER)
    return logging.getLogger(name)


def level_for_debug(debug_level: int) -> int:
    """Map a job-step debug level (0-5) to a logging level."""
    if debug_level >= 3:
        return logging.DEBUG
    return logging.INFO
