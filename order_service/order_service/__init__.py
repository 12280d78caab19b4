"""Order intake and status service."""

__version__ = "0.1.0"
