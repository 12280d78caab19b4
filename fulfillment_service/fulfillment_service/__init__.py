"""Order fulfillment consumer service."""

__version__ = "0.1.0"
