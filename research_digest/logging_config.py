"""
Centralized logging configuration for the research pipeline.

Every component logs through a child of the ``research_digest`` logger.
Only that package logger owns handlers, so the CLI can retarget all of
them at once. Console output goes to stderr, leaving stdout for the digest.

Usage:
    from research_digest.logging_config import get_logger
    logger = get_logger("research_digest.orchestrator")

    logger.info("Message")
    logger.error("Error message", exc_info=True)
"""

import logging
import sys
from datetime import datetime
from typing import Optional, Union

PACKAGE_LOGGER = "research_digest"


class ServiceFormatter(logging.Formatter):
    """Formatter with timestamps, levels, and component context."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S')
        base_msg = f"[{timestamp}] [{record.levelname}] [{record.name}] {record.getMessage()}"

        if record.exc_info:
            exc_text = self.formatException(record.exc_info)
            base_msg = f"{base_msg}\n{exc_text}"

        return base_msg


def parse_level(level: Union[int, str]) -> int:
    """Turn a level name such as "debug" into its numeric value."""
    if isinstance(level, int):
        return level
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level}")
    return numeric


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    (Re)configure the package logger.

    Existing handlers are closed and replaced, so calling this again with a
    new level or file takes effect for every component logger.

    Args:
        level: Numeric level or level name (default: INFO)
        log_file: Optional file path that receives a copy of every record

    Returns:
        The package logger
    """
    numeric = parse_level(level)
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(numeric)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric)
    console_handler.setFormatter(ServiceFormatter())
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(numeric)
        file_handler.setFormatter(ServiceFormatter())
        logger.addHandler(file_handler)

    logger.propagate = False

    return logger


def configure_logging(settings) -> logging.Logger:
    """Apply ``log_level`` and ``log_file`` from the application settings."""
    return setup_logging(settings.log_level, settings.log_file or None)


def get_logger(component: str) -> logging.Logger:
    """
    Get a component logger, installing default package handlers on first use.

    Args:
        component: Logger name under ``research_digest``

    Returns:
        Logger instance
    """
    if not logging.getLogger(PACKAGE_LOGGER).handlers:
        setup_logging()
    return logging.getLogger(component)
