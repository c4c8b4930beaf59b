"""Read-time temperature conversion for display."""

import dataclasses
from enum import Enum
from typing import Union

from skycast.weather.models import WeatherSample


class TemperatureUnit(Enum):
    """Display units. Stored data is always Celsius."""
    CELSIUS = "celsius"
    FAHRENHEIT = "fahrenheit"


UnitLike = Union[TemperatureUnit, str]


def _resolve_unit(unit: UnitLike) -> TemperatureUnit:
    if isinstance(unit, TemperatureUnit):
        return unit
    try:
        return TemperatureUnit(str(unit).lower())
    except ValueError:
        raise ValueError(
            f"Unknown temperature unit: {unit!r}. "
            f"Supported units: 'celsius', 'fahrenheit'"
        )


def convert_temperature(temp: float, unit: UnitLike) -> float:
    """
    Convert a Celsius temperature to the requested display unit.

    Args:
        temp: Temperature in Celsius
        unit: Target unit (enum member or its string value)

    Returns:
        Temperature in the target unit
    """
    if _resolve_unit(unit) is TemperatureUnit.FAHRENHEIT:
        return (temp * 9 / 5) + 32
    return temp


def temperature_symbol(unit: UnitLike) -> str:
    """Return the display symbol for a unit."""
    return '°C' if _resolve_unit(unit) is TemperatureUnit.CELSIUS else '°F'


def format_temperature(temp: float, unit: UnitLike) -> str:
    """Format a Celsius temperature as a rounded string in the display unit."""
    return f"{round(convert_temperature(temp, unit))}{temperature_symbol(unit)}"


def convert_sample(sample: WeatherSample, unit: UnitLike) -> WeatherSample:
    """
    Return a copy of ``sample`` with its temperature fields in ``unit``.

    The original sample is left untouched.
    """
    return dataclasses.replace(
        sample,
        temp=convert_temperature(sample.temp, unit),
        feels_like=convert_temperature(sample.feels_like, unit),
        temp_min=convert_temperature(sample.temp_min, unit),
        temp_max=convert_temperature(sample.temp_max, unit),
    )
