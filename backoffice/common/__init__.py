"""Common utilities for the back office."""

from .logger import setup_logger, configure_from_settings

__all__ = ["configure_from_settings", "setup_logger"]
