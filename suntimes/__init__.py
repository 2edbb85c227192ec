"""Sunrise/sunset times per location and day, cached in a local database."""

__version__ = "0.1.0"
