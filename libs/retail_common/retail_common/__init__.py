"""Shared building blocks for the retail order pipeline services."""

__version__ = "0.1.0"
