"""Stock and order notification sink service."""

__version__ = "0.1.0"
