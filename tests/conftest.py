"""Pytest fixtures and helpers for testing the weather cache and aggregation."""

import pytest
from typing import Any, Dict, List, Optional

from skycast.cache.cache_tier_manager import CacheTierManager
from skycast.cache.durable_store import DurableStore, DurableRecord, DurableTierError
from skycast.weather.models import WeatherSample


# ============================================================================
# Test doubles
# ============================================================================

class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, now_ms: int = 1_700_000_000_000):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


class InMemoryDurableStore(DurableStore):
    """Durable tier held in a dict, recording every call."""

    def __init__(self):
        self.records: Dict[str, DurableRecord] = {}
        self.reads: List[str] = []
        self.writes: List[str] = []
        self.fail_reads = False
        self.fail_writes = False

    async def read(self, key: str, now_ms: int) -> Optional[DurableRecord]:
        self.reads.append(key)
        if self.fail_reads:
            raise DurableTierError("read failed")
        record = self.records.get(key)
        if record is None or record.expires_at <= now_ms:
            return None
        return record

    async def upsert(self, key: str, value: Any, cached_at: int, expires_at: int) -> None:
        self.writes.append(key)
        if self.fail_writes:
            raise DurableTierError("write failed")
        self.records[key] = DurableRecord(value=value, cached_at=cached_at, expires_at=expires_at)


def make_sample(temp: float = 10.0, date: Optional[str] = "2024-06-15 12:00:00",
                dt: int = 1718452800, **overrides) -> WeatherSample:
    """Build a WeatherSample with plausible defaults."""
    fields = dict(
        name="Paris",
        country="FR",
        temp=temp,
        feels_like=temp - 1,
        temp_min=temp,
        temp_max=temp,
        humidity=65,
        pressure=1015,
        wind_speed=3.5,
        wind_deg=220,
        condition="Clouds",
        icon="04d",
        description="broken clouds",
        dt=dt,
        pop=0.1,
        rain=None,
        lat=48.8534,
        lon=2.3488,
        date=date,
    )
    fields.update(overrides)
    return WeatherSample(**fields)


def make_forecast_entry(dt: int, dt_txt: str, temp: float, temp_min: float = None,
                        temp_max: float = None, rain_3h: float = None,
                        description: str = "light rain") -> Dict[str, Any]:
    """Build one raw OpenWeatherMap 3-hour forecast entry."""
    entry = {
        'dt': dt,
        'main': {
            'temp': temp,
            'feels_like': temp - 1,
            'temp_min': temp if temp_min is None else temp_min,
            'temp_max': temp if temp_max is None else temp_max,
            'pressure': 1012,
            'humidity': 80,
        },
        'weather': [{'id': 500, 'main': 'Rain', 'description': description, 'icon': '10d'}],
        'wind': {'speed': 4.1, 'deg': 250},
        'pop': 0.4,
        'dt_txt': dt_txt,
    }
    if rain_3h is not None:
        entry['rain'] = {'3h': rain_3h}
    return entry


def make_forecast_payload(days: int = 5, per_day: int = 8, temp: float = 10.0,
                          start_dt: int = 1718409600, city: str = "Paris") -> Dict[str, Any]:
    """Build a raw forecast response with ``per_day`` 3-hour entries per day from 2024-06-15."""
    entries = []
    for day in range(days):
        for slot in range(per_day):
            dt = start_dt + (day * 24 + slot * 3) * 3600
            dt_txt = f"2024-06-{15 + day:02d} {slot * 3:02d}:00:00"
            entries.append(make_forecast_entry(dt, dt_txt, temp))
    return {
        'cod': '200',
        'cnt': len(entries),
        'list': entries,
        'city': {'name': city, 'country': 'FR', 'coord': {'lat': 48.8534, 'lon': 2.3488}},
    }


CURRENT_WEATHER_PAYLOAD = {
    'coord': {'lon': 2.3488, 'lat': 48.8534},
    'weather': [{'id': 803, 'main': 'Clouds', 'description': 'broken clouds', 'icon': '04d'}],
    'main': {
        'temp': 18.4,
        'feels_like': 17.9,
        'temp_min': 16.2,
        'temp_max': 19.8,
        'pressure': 1016,
        'humidity': 64,
    },
    'wind': {'speed': 4.6, 'deg': 240},
    'dt': 1718452800,
    'sys': {'country': 'FR'},
    'name': 'Paris',
    'cod': 200,
}


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def clock():
    """A fake clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def durable_store():
    """An in-memory durable tier."""
    return InMemoryDurableStore()


@pytest.fixture
def cache_manager(durable_store, clock):
    """A cache tier manager with a 60 second TTL, fake clock and in-memory durable tier."""
    return CacheTierManager(durable_store=durable_store, ttl_ms=60_000, clock=clock)


@pytest.fixture
def current_payload():
    """A raw OpenWeatherMap current weather response for Paris."""
    return CURRENT_WEATHER_PAYLOAD


@pytest.fixture
def forecast_payload():
    """A raw 5-day forecast response with 8 entries per day."""
    return make_forecast_payload()
