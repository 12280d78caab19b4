"""Logging utilities for the retail order services."""

from .config import get_kafka_logger, get_logger, setup_service_logger

__all__ = [
    "setup_service_logger",
    "get_logger",
    "get_kafka_logger",
]
