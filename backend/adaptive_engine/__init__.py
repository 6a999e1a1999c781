"""Periodic learning analytics and adaptation engine."""

__version__ = "0.1.0"
