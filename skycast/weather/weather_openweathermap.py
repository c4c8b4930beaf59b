"""Weather client for the OpenWeatherMap current, forecast and geocoding APIs."""

import aiohttp
import asyncio
from typing import Any, Dict, List, Optional
import logging

from skycast.weather.models import WeatherSample, CityMatch


logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Upstream weather provider returned an error or an unusable payload."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


def parse_current_weather(data: Dict[str, Any]) -> WeatherSample:
    """
    Normalize a current-weather response into a WeatherSample.

    Raises:
        FetchError: If required fields are missing or malformed
    """
    try:
        main = data['main']
        wind = data['wind']
        weather = data['weather'][0]
        coord = data.get('coord') or {}
        return WeatherSample(
            name=data['name'],
            country=data['sys']['country'],
            temp=main['temp'],
            feels_like=main['feels_like'],
            temp_min=main['temp_min'],
            temp_max=main['temp_max'],
            humidity=main['humidity'],
            pressure=main['pressure'],
            wind_speed=wind['speed'],
            wind_deg=wind['deg'],
            condition=weather['main'],
            icon=weather['icon'],
            description=weather['description'],
            dt=data['dt'],
            lat=coord.get('lat'),
            lon=coord.get('lon'),
        )
    except (KeyError, IndexError, TypeError) as e:
        logger.error(f"Malformed current weather payload: {type(e).__name__}: {e}")
        raise FetchError(f"Malformed current weather payload: missing {e}")


def parse_forecast(data: Dict[str, Any]) -> List[WeatherSample]:
    """
    Normalize a 5-day/3-hour forecast response into a list of samples.

    The response's ``city`` block supplies name, country and coordinates
    for every entry. Entry order is preserved.

    Raises:
        FetchError: If the list or any entry is malformed
    """
    if not isinstance(data, dict) or 'list' not in data:
        logger.error("No forecast list in OpenWeatherMap response")
        raise FetchError("Invalid forecast response: missing 'list'")

    entries = data['list']
    if not isinstance(entries, list):
        logger.error(f"Forecast list has type {type(entries).__name__}")
        raise FetchError("Invalid forecast response: 'list' is not a list")

    city = data.get('city') or {}
    if not isinstance(city, dict):
        logger.error(f"Forecast city block has type {type(city).__name__}")
        raise FetchError("Invalid forecast response: 'city' is not an object")
    coord = city.get('coord') or {}
    if not isinstance(coord, dict):
        raise FetchError("Invalid forecast response: 'city.coord' is not an object")
    samples = []

    for index, item in enumerate(entries):
        try:
            main = item['main']
            wind = item['wind']
            weather = item['weather'][0]
            rain = item.get('rain') or {}
            samples.append(WeatherSample(
                name=city.get('name', ''),
                country=city.get('country', ''),
                temp=main['temp'],
                feels_like=main['feels_like'],
                temp_min=main['temp_min'],
                temp_max=main['temp_max'],
                humidity=main['humidity'],
                pressure=main['pressure'],
                wind_speed=wind['speed'],
                wind_deg=wind['deg'],
                condition=weather['main'],
                icon=weather['icon'],
                description=weather['description'],
                dt=item['dt'],
                pop=item.get('pop'),
                rain=rain.get('3h'),
                lat=coord.get('lat'),
                lon=coord.get('lon'),
                date=item['dt_txt'],
            ))
        except (KeyError, IndexError, TypeError) as e:
            logger.error(f"Malformed forecast entry at index {index}: {type(e).__name__}: {e}")
            raise FetchError(f"Malformed forecast entry at index {index}: missing {e}")

    logger.debug(f"Parsed {len(samples)} forecast entries")
    return samples


def parse_city_matches(data: Any) -> List[CityMatch]:
    """Normalize a geocoding response into a list of city matches."""
    if not isinstance(data, list):
        raise FetchError("Invalid geocoding response: expected a list")
    try:
        return [
            CityMatch(
                name=item['name'],
                country=item['country'],
                lat=item['lat'],
                lon=item['lon'],
                state=item.get('state'),
            )
            for item in data
        ]
    except (KeyError, TypeError) as e:
        logger.error(f"Malformed geocoding entry: {type(e).__name__}: {e}")
        raise FetchError(f"Malformed geocoding entry: missing {e}")


class OpenWeatherMapClient:
    """Fetches current weather, forecasts and city matches from OpenWeatherMap."""

    DEFAULT_API_URL = "https://api.openweathermap.org/data/2.5"
    DEFAULT_GEO_URL = "https://api.openweathermap.org/geo/1.0"
    # Samples are cached in Celsius; other units are display-only
    UNITS = "metric"

    def __init__(self, api_key: str, api_url: str = None, geo_url: str = None,
                 timeout_seconds: float = 30, search_limit: int = 5):
        """
        Initialize OpenWeatherMap client.

        Args:
            api_key: OpenWeatherMap API key
            api_url: Optional custom data API URL (defaults to official API)
            geo_url: Optional custom geocoding API URL
            timeout_seconds: Total HTTP timeout per request
            search_limit: Maximum number of city matches per search
        """
        if not api_key:
            raise FetchError("API key is required for OpenWeatherMap")

        self.api_key = api_key
        self.api_url = (api_url or self.DEFAULT_API_URL).rstrip('/')
        self.geo_url = (geo_url or self.DEFAULT_GEO_URL).rstrip('/')
        self.units = self.UNITS
        self.timeout_seconds = timeout_seconds
        self.search_limit = search_limit

    async def _get_json(self, endpoint: str, params: Dict[str, Any]) -> Any:
        """
        Perform a GET request and decode the JSON body.

        Raises:
            FetchError: On non-200 status, transport failure or timeout
        """
        logger.debug(f"API request URL: {endpoint}")
        logger.debug(f"API request parameters (without key): {params}")
        params = dict(params, appid=self.api_key)

        try:
            async with aiohttp.ClientSession() as session:
                timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
                async with session.get(endpoint, params=params, timeout=timeout) as response:
                    logger.debug(f"Received HTTP response with status: {response.status}")

                    if response.status != 200:
                        error_text = await response.text()
                        logger.error(f"API request failed with status {response.status}")
                        logger.error(f"Error response body: {error_text}")
                        raise FetchError(
                            f"API request failed with status {response.status}: {error_text}",
                            status=response.status,
                        )

                    return await response.json()

        except aiohttp.ClientError as e:
            logger.error(f"HTTP client error while fetching weather data: {type(e).__name__}: {e}")
            raise FetchError(f"Failed to fetch weather data: {e}")
        except asyncio.TimeoutError:
            logger.error(f"Timeout while connecting to OpenWeatherMap API: {endpoint}")
            raise FetchError(f"Weather API request timed out after {self.timeout_seconds} seconds")
        except ValueError as e:
            logger.error(f"Invalid JSON from OpenWeatherMap API: {e}")
            raise FetchError(f"Malformed response body: {e}")

    async def fetch_current(self, city: str) -> WeatherSample:
        """Fetch current conditions for a city."""
        logger.info(f"Fetching current weather for {city!r} from OpenWeatherMap")
        data = await self._get_json(
            f"{self.api_url}/weather",
            {'q': city, 'units': self.units},
        )
        sample = parse_current_weather(data)
        logger.info(f"Current conditions for {sample.name}: {sample.temp}°C, {sample.condition}")
        return sample

    async def fetch_forecast(self, city: str) -> List[WeatherSample]:
        """Fetch the 5-day/3-hour forecast for a city."""
        logger.info(f"Fetching forecast for {city!r} from OpenWeatherMap")
        data = await self._get_json(
            f"{self.api_url}/forecast",
            {'q': city, 'units': self.units},
        )
        samples = parse_forecast(data)
        logger.info(f"Retrieved {len(samples)} forecast entries for {city!r}")
        return samples

    async def search_cities(self, query: str) -> List[CityMatch]:
        """Look up places matching a free-text query."""
        logger.info(f"Searching cities matching {query!r}")
        data = await self._get_json(
            f"{self.geo_url}/direct",
            {'q': query, 'limit': self.search_limit},
        )
        matches = parse_city_matches(data)
        logger.debug(f"Found {len(matches)} matches for {query!r}")
        return matches
