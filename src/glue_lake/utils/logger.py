"""
Logging for glue-lake.

Every module logs through a child of the ``glue_lake`` logger, which owns the
only handler: JSON lines when ENVIRONMENT=prod, plain lines otherwise.
"""

import logging
import sys
from typing import Optional
from pythonjsonlogger import jsonlogger

from ..config import config

PACKAGE_LOGGER = "glue_lake"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _formatter(environment: str) -> logging.Formatter:
    if environment == "prod":
        return jsonlogger.JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s",
            datefmt=DATE_FORMAT,
        )
    return logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt=DATE_FORMAT,
    )


def configure_logging(level: Optional[str] = None, environment: Optional[str] = None) -> logging.Logger:
    """
    (Re)configure the package logger.

    Args:
        level: Level name such as 'DEBUG'; defaults to LOG_LEVEL.
        environment: 'prod' switches to JSON output; defaults to ENVIRONMENT.

    Returns:
        The package logger.

    Raises:
        ValueError: If level is not a logging level name.
    """
    level_name = (level or config.log_level).upper()
    log_level = logging.getLevelName(level_name)
    if not isinstance(log_level, int):
        if level is not None:
            raise ValueError(f"Unknown log level: {level!r}")
        log_level = logging.INFO

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_formatter(environment or config.environment))
    package_logger.addHandler(handler)
    package_logger.setLevel(log_level)
    package_logger.propagate = False

    return package_logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger under the package namespace.

    Args:
        name: Module name; names outside ``glue_lake`` are nested under it.

    Returns:
        Logger sharing the package handler.
    """
    if not logging.getLogger(PACKAGE_LOGGER).handlers:
        configure_logging()

    if not name or name == PACKAGE_LOGGER:
        return logging.getLogger(PACKAGE_LOGGER)
    if not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)
