"""Weather service factory - wires client, cache tiers and service from configuration."""

import logging
from typing import Dict, Any, Optional

from skycast.cache.cache_tier_manager import CacheTierManager, Clock, DEFAULT_TTL_MS
from skycast.cache.durable_store import DurableStore, JsonFileDurableStore, SqliteDurableStore
from skycast.config.config_loader import ConfigError
from skycast.weather.weather_openweathermap import OpenWeatherMapClient
from skycast.weather.weather_service import WeatherService


logger = logging.getLogger(__name__)


class WeatherServiceFactory:
    """Factory for creating weather service instances based on configuration."""

    @staticmethod
    def create_durable_store(cache_config: Dict[str, Any]) -> Optional[DurableStore]:
        """
        Create the durable cache tier named by ``cache.backend``.

        Returns:
            A durable store, or None when the backend is "none"
        """
        backend = str(cache_config.get('backend', 'json')).lower()
        path = cache_config.get('path')

        if backend == 'json':
            logger.info(f"Using JSON file durable cache at {path or 'default path'}")
            return JsonFileDurableStore(path) if path else JsonFileDurableStore()
        if backend == 'sqlite':
            logger.info(f"Using SQLite durable cache at {path or 'default path'}")
            return SqliteDurableStore(path) if path else SqliteDurableStore()
        if backend == 'none':
            logger.info("Durable cache disabled, using local cache only")
            return None

        logger.error(f"Unknown cache backend: {backend}")
        raise ConfigError(
            f"Unknown cache backend: {backend}. "
            f"Supported backends: 'json', 'sqlite', 'none'"
        )

    @staticmethod
    def create_weather_service(config: Dict[str, Any], clock: Optional[Clock] = None) -> WeatherService:
        """
        Create a weather service from a configuration dictionary.

        Args:
            config: Configuration dictionary with weather_api and cache sections
            clock: Optional epoch-millisecond clock for the cache tier manager

        Returns:
            WeatherService backed by a two-tier cache
        """
        weather_api = config.get('weather_api', {})
        cache_config = config.get('cache', {})

        client = OpenWeatherMapClient(
            api_key=weather_api.get('api_key'),
            api_url=weather_api.get('api_url'),
            geo_url=weather_api.get('geo_url'),
            timeout_seconds=weather_api.get('timeout_seconds', 30),
            search_limit=weather_api.get('search_limit', 5),
        )

        ttl_seconds = cache_config.get('ttl_seconds')
        ttl_ms = int(float(ttl_seconds) * 1000) if ttl_seconds is not None else DEFAULT_TTL_MS

        cache = CacheTierManager(
            durable_store=WeatherServiceFactory.create_durable_store(cache_config),
            ttl_ms=ttl_ms,
            clock=clock,
            coalesce_in_flight=bool(cache_config.get('coalesce_in_flight', False)),
        )

        logger.info(f"Created weather service (ttl={ttl_ms}ms)")
        return WeatherService(client=client, cache=cache, ttl_ms=ttl_ms)
