"""Logging package."""
from .setup import setup_logging, resolve_level

__all__ = ["setup_logging", "resolve_level"]
