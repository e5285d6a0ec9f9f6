"""API routers for the back office."""

from . import permissions

__all__ = ["permissions"]
