"""Configuration management package."""

from .config_loader import Config, ConfigError, DEFAULT_CONFIG

__all__ = [
    'Config',
    'ConfigError',
    'DEFAULT_CONFIG',
]
