"""Skycast weather caching and forecast aggregation service."""

from .version import __version__

__all__ = ['__version__']
