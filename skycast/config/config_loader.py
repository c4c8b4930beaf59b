"""Configuration loader and validator for Skycast."""

import copy
import os
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, Optional


logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Configuration error exception."""
    pass


def _as_bool(value: str) -> bool:
    return value.lower() in ('true', '1', 'yes', 'on')


# Environment variable to config key mapping
# All environment variables must use the SKYCAST_ prefix
ENV_VAR_MAPPING = {
    # Weather API settings
    'SKYCAST_OPENWEATHERMAP_API_KEY': ('weather_api', 'api_key', str),
    'SKYCAST_WEATHER_API_URL': ('weather_api', 'api_url', str),
    'SKYCAST_GEO_API_URL': ('weather_api', 'geo_url', str),
    'SKYCAST_WEATHER_TIMEOUT_SECONDS': ('weather_api', 'timeout_seconds', float),
    'SKYCAST_SEARCH_LIMIT': ('weather_api', 'search_limit', int),

    # Cache settings
    'SKYCAST_CACHE_TTL_SECONDS': ('cache', 'ttl_seconds', float),
    'SKYCAST_CACHE_BACKEND': ('cache', 'backend', str),
    'SKYCAST_CACHE_PATH': ('cache', 'path', str),
    'SKYCAST_CACHE_COALESCE_IN_FLIGHT': ('cache', 'coalesce_in_flight', _as_bool),

    # Logging settings
    'SKYCAST_LOG_LEVEL': ('logging', 'level', str),
    'SKYCAST_LOG_DIR': ('logging', 'log_dir', str),
}

DEFAULT_CONFIG = {
    'weather_api': {
        'api_key': '',
        'api_url': 'https://api.openweathermap.org/data/2.5',
        'geo_url': 'https://api.openweathermap.org/geo/1.0',
        'units': 'metric',
        'timeout_seconds': 30,
        'search_limit': 5,
    },
    'cache': {
        'ttl_seconds': 60,
        'backend': 'json',
        'path': 'state/weather_cache.json',
        'coalesce_in_flight': False,
    },
    'logging': {
        'level': 'INFO',
        'max_file_size_mb': 10,
        'backup_count': 5,
        'log_dir': 'logs',
    },
}

CACHE_BACKENDS = ('json', 'sqlite', 'none')
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


def get_env_var(env_var: str, convert_type: type) -> Optional[Any]:
    """
    Get environment variable and convert to specified type.

    Args:
        env_var: Environment variable name
        convert_type: Type conversion function (int, float, str, or callable)

    Returns:
        Converted value or None if not set
    """
    value = os.environ.get(env_var)
    if value is None:
        return None

    try:
        return convert_type(value)
    except (ValueError, TypeError) as e:
        logger.warning(f"Failed to convert environment variable {env_var}={value}: {e}")
        return None


def apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Args:
        config: Configuration dictionary

    Returns:
        Config with overrides applied
    """
    logger.debug("Checking for environment variable overrides...")

    for env_var, mapping_tuple in ENV_VAR_MAPPING.items():
        value = get_env_var(env_var, mapping_tuple[-1])
        if value is None:
            continue

        *sections, final_key = mapping_tuple[:-1]
        current = config
        for section in sections:
            current = current.setdefault(section, {})
        current[final_key] = value

        path = '.'.join(mapping_tuple[:-1])
        # Never log secrets
        shown = '***' if 'api_key' in path else value
        logger.info(f"Environment variable override: {env_var} -> {path} = {shown}")

    return config


def merge_defaults(defaults: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``overrides`` on top of a copy of ``defaults``."""
    merged = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_defaults(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config:
    """Configuration for the application."""

    def __init__(self, config_path: str = None):
        """
        Initialize configuration from YAML file with environment variable overrides.

        Args:
            config_path: Path to the configuration file (defaults to SKYCAST_CONFIG_PATH env var or "config.yaml")
        """
        if config_path is None:
            config_path = os.environ.get('SKYCAST_CONFIG_PATH', 'config.yaml')

        logger.info(f"Loading configuration from: {config_path}")
        self.config_path = Path(config_path)
        file_config = self._load_config()

        self._config = apply_env_overrides(merge_defaults(DEFAULT_CONFIG, file_config))

        self._validate_config()
        logger.info("Configuration loaded and validated successfully")

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file, or an empty config if the file doesn't exist."""
        if not self.config_path.exists():
            logger.warning(f"Configuration file not found: {self.config_path}")
            logger.info("Using defaults and environment variables for configuration")
            return {}

        try:
            logger.debug(f"Reading configuration file: {self.config_path}")
            with open(self.config_path, 'r') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML configuration file: {e}")
            raise ConfigError(f"Error parsing configuration file: {e}")
        except OSError as e:
            logger.error(f"Error reading configuration file: {type(e).__name__}: {e}")
            raise ConfigError(f"Error loading configuration: {e}")

        if config is None:
            logger.warning("Configuration file is empty, using defaults")
            return {}

        if not isinstance(config, dict):
            logger.error(f"Configuration must be a dictionary, got: {type(config)}")
            raise ConfigError(f"Invalid configuration format: expected dictionary, got {type(config)}")

        logger.debug(f"Configuration sections: {list(config.keys())}")
        return config

    def _validate_config(self):
        """Validate configuration values."""
        logger.info("Validating configuration...")

        for section in DEFAULT_CONFIG:
            if not isinstance(self._config.get(section), dict):
                logger.error(f"Section '{section}' must be a dictionary")
                raise ConfigError(f"Configuration section '{section}' must be a dictionary")

        weather_api = self._config['weather_api']
        if not weather_api.get('api_key'):
            logger.error("OpenWeatherMap API key is required but not provided")
            raise ConfigError(
                "OpenWeatherMap API key is required. "
                "Add weather_api.api_key to config or set SKYCAST_OPENWEATHERMAP_API_KEY"
            )

        # Cached samples are always Celsius; conversion happens at display time
        units = str(weather_api.get('units', 'metric')).lower()
        if units != 'metric':
            logger.error(f"Unsupported weather_api.units: {units}")
            raise ConfigError(
                f"weather_api.units must be 'metric', got: {units}. "
                "Use the --unit option to show Fahrenheit"
            )
        weather_api['units'] = units

        for field in ('timeout_seconds', 'search_limit'):
            try:
                value = float(weather_api[field])
            except (ValueError, TypeError) as e:
                raise ConfigError(f"weather_api.{field} must be a valid number: {e}")
            if value <= 0:
                raise ConfigError(f"weather_api.{field} must be positive, got: {value}")

        cache = self._config['cache']
        try:
            ttl = float(cache['ttl_seconds'])
        except (ValueError, TypeError) as e:
            raise ConfigError(f"cache.ttl_seconds must be a valid number: {e}")
        if ttl <= 0:
            logger.error(f"Invalid cache TTL: {ttl}")
            raise ConfigError(f"cache.ttl_seconds must be positive, got: {ttl}")

        backend = str(cache['backend']).lower()
        if backend not in CACHE_BACKENDS:
            logger.error(f"Unknown cache backend: {backend}")
            raise ConfigError(
                f"Unknown cache backend: {backend}. Supported backends: {', '.join(CACHE_BACKENDS)}"
            )
        cache['backend'] = backend

        level = str(self._config['logging']['level']).upper()
        if level not in LOG_LEVELS:
            raise ConfigError(f"Invalid log level: {level}. Must be one of {', '.join(LOG_LEVELS)}")
        self._config['logging']['level'] = level

        logger.debug(f"Cache configuration: backend={backend}, ttl={ttl}s")

    @property
    def weather_api(self) -> Dict[str, Any]:
        """Get weather API configuration."""
        return self._config['weather_api']

    @property
    def cache(self) -> Dict[str, Any]:
        """Get cache configuration."""
        return self._config['cache']

    @property
    def cache_ttl_ms(self) -> int:
        return int(float(self._config['cache']['ttl_seconds']) * 1000)

    @property
    def logging_config(self) -> Dict[str, Any]:
        """Get logging configuration."""
        return self._config['logging']

    def to_dict(self) -> Dict[str, Any]:
        """Get a copy of the full configuration."""
        return copy.deepcopy(self._config)
