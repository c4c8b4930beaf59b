"""Cached weather lookups for current conditions, forecasts and city search."""

import logging
from typing import List, Optional

from skycast.cache.cache_tier_manager import CacheTierManager, DEFAULT_TTL_MS
from skycast.weather.forecast_aggregator import (
    aggregate_daily,
    hourly_window,
    HOURLY_WINDOW,
    MAX_DAILY_SUMMARIES,
)
from skycast.weather.models import WeatherSample, DailySummary, CityMatch
from skycast.weather.weather_openweathermap import OpenWeatherMapClient


logger = logging.getLogger(__name__)

MIN_SEARCH_LENGTH = 2


def current_cache_key(city: str) -> str:
    return f"current_{city}"


def forecast_cache_key(city: str) -> str:
    return f"forecast_{city}"


class WeatherService:
    """
    Read-only weather lookups backed by the two-tier cache.

    Current weather and the raw forecast are cached under distinct key
    prefixes. Hourly and daily views are derived from the cached forecast
    on every call; daily summaries are never cached themselves.
    """

    def __init__(
        self,
        client: OpenWeatherMapClient,
        cache: CacheTierManager,
        ttl_ms: int = DEFAULT_TTL_MS,
        min_search_length: int = MIN_SEARCH_LENGTH
    ):
        """
        Initialize weather service.

        Args:
            client: Upstream weather client
            cache: Cache tier manager shared by all lookups
            ttl_ms: Freshness window for cached lookups
            min_search_length: Shortest query that reaches the geocoding API
        """
        self.client = client
        self.cache = cache
        self.ttl_ms = ttl_ms
        self.min_search_length = min_search_length

    @staticmethod
    def _check_city(city: str) -> str:
        if not isinstance(city, str) or not city.strip():
            raise ValueError(f"City must be a non-empty string, got: {city!r}")
        return city

    async def get_current_weather(self, city: str) -> WeatherSample:
        """Current conditions for a city."""
        city = self._check_city(city)

        async def fetch():
            sample = await self.client.fetch_current(city)
            return sample.to_dict()

        payload = await self.cache.get(current_cache_key(city), fetch, self.ttl_ms)
        return WeatherSample.from_dict(payload)

    async def get_forecast(self, city: str) -> List[WeatherSample]:
        """Full 3-hour forecast sequence for a city, in upstream order."""
        city = self._check_city(city)

        async def fetch():
            samples = await self.client.fetch_forecast(city)
            return [sample.to_dict() for sample in samples]

        payload = await self.cache.get(forecast_cache_key(city), fetch, self.ttl_ms)
        return [WeatherSample.from_dict(item) for item in payload]

    async def get_hourly_forecast(self, city: str,
                                  limit: Optional[int] = HOURLY_WINDOW) -> List[WeatherSample]:
        """The forecast truncated to a display window."""
        return hourly_window(await self.get_forecast(city), limit)

    async def get_daily_forecast(self, city: str,
                                 max_days: int = MAX_DAILY_SUMMARIES) -> List[DailySummary]:
        """Daily summaries derived from the cached forecast."""
        summaries = aggregate_daily(await self.get_forecast(city), max_days)
        logger.info(f"Built {len(summaries)} daily summaries for {city!r}")
        return summaries

    async def search_cities(self, query: str) -> List[CityMatch]:
        """
        Find places matching ``query``.

        Queries shorter than the minimum length return an empty list
        without contacting the geocoding API.
        """
        query = (query or '').strip()
        if len(query) < self.min_search_length:
            logger.debug(f"Search query {query!r} below minimum length {self.min_search_length}")
            return []
        return await self.client.search_cities(query)
