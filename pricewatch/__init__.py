"""Autonomous product price monitoring."""

__version__ = "0.4.0"
