"""Weather services package."""

from .models import WeatherSample, DailySummary, CityMatch
from .temperature import TemperatureUnit, convert_temperature, temperature_symbol
from .forecast_aggregator import aggregate_daily, hourly_window
from .weather_openweathermap import OpenWeatherMapClient, FetchError
from .weather_service import WeatherService
from .weather_factory import WeatherServiceFactory

__all__ = [
    'WeatherSample',
    'DailySummary',
    'CityMatch',
    'TemperatureUnit',
    'convert_temperature',
    'temperature_symbol',
    'aggregate_daily',
    'hourly_window',
    'OpenWeatherMapClient',
    'FetchError',
    'WeatherService',
    'WeatherServiceFactory',
]
