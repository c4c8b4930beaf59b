"""Weather domain models shared by the client, cache and aggregator."""

from dataclasses import dataclass, asdict, fields
from typing import Dict, Any, Optional


@dataclass(frozen=True)
class WeatherSample:
    """
    One point-in-time weather observation or forecast entry for a city.

    Temperatures are always Celsius. Conversion for display happens in
    ``skycast.weather.temperature`` and never touches stored samples.
    """
    name: str
    country: str
    temp: float
    feels_like: float
    temp_min: float
    temp_max: float
    humidity: float  # percent
    pressure: float  # hPa
    wind_speed: float  # m/s
    wind_deg: float
    condition: str  # e.g. "Clouds", "Rain"
    icon: str
    description: str
    dt: int  # UNIX timestamp (UTC)

    pop: Optional[float] = None  # precipitation probability 0-1
    rain: Optional[float] = None  # mm over the sample interval
    lat: Optional[float] = None
    lon: Optional[float] = None
    date: Optional[str] = None  # "YYYY-MM-DD HH:MM:SS" for forecast entries

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WeatherSample':
        """Create from dictionary, ignoring keys the model does not know."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass(frozen=True)
class DailySummary:
    """
    Aggregate of every sample falling on one calendar date.

    ``sample`` is the day's representative (middle) sample with ``temp``,
    ``temp_min`` and ``temp_max`` replaced by the day's mean, minimum and
    maximum. The representative temperature is not guaranteed to lie
    between the min and max.
    """
    date: str  # YYYY-MM-DD
    sample: WeatherSample

    @property
    def temp(self) -> float:
        return self.sample.temp

    @property
    def temp_min(self) -> float:
        return self.sample.temp_min

    @property
    def temp_max(self) -> float:
        return self.sample.temp_max

    def to_dict(self) -> Dict[str, Any]:
        """Flatten into the sample's dictionary form tagged with the date."""
        data = self.sample.to_dict()
        data['date'] = self.date
        return data


@dataclass(frozen=True)
class CityMatch:
    """A place returned by city search."""
    name: str
    country: str
    lat: float
    lon: float
    state: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @property
    def label(self) -> str:
        parts = [self.name]
        if self.state:
            parts.append(self.state)
        parts.append(self.country)
        return ", ".join(parts)
