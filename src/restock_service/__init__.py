"""Back-in-stock notification service."""

__version__ = "1.0.0"
