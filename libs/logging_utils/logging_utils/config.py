"""Logging configuration module for all retail services."""

import sys
from typing import Optional

from loguru import logger as loguru_logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_service_logger(
    service_name: str,
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    serialize: bool = False,
) -> loguru_logger:
    """Configure the process-wide logger for a service with standardized settings.

    Call this once at service startup. Modules that only need a logger should
    use ``get_logger`` or ``get_kafka_logger`` instead, which do not touch the
    configured sinks.

    Args:
        service_name: Name of the service (e.g., 'order-service')
        log_level: Logging level (default: INFO)
        log_file: Optional path to log file
        serialize: Emit JSON lines instead of the colourised console format

    Returns:
        logger: Configured loguru logger instance
    """
    # Remove any existing handlers
    loguru_logger.remove()

    if serialize:
        loguru_logger.add(sys.stderr, level=log_level, serialize=True, enqueue=True)
    else:
        loguru_logger.add(
            sys.stderr,
            level=log_level,
            format=CONSOLE_FORMAT,
            colorize=True,
            enqueue=True,
            backtrace=True,
            diagnose=True,
        )

    # Add file handler if specified
    if log_file:
        loguru_logger.add(
            log_file,
            level=log_level,
            format=FILE_FORMAT,
            serialize=serialize,
            rotation="10 MB",
            retention="1 week",
            compression="gz",
        )

    return get_logger(service_name)


def get_logger(service_name: str) -> loguru_logger:
    """Get a logger bound to the service name.

    Args:
        service_name: Name of the service

    Returns:
        logger: Logger carrying ``service`` in its extra context
    """
    return loguru_logger.bind(service=service_name)


def get_kafka_logger(service_name: str) -> loguru_logger:
    """Get a logger specifically bound for Kafka operations.

    Args:
        service_name: Name of the service

    Returns:
        logger: Logger configured with Kafka context
    """
    return get_logger(f"{service_name}.kafka")
