"""Hourly and daily views over a flat 3-hour forecast sequence."""

import dataclasses
import logging
import re
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from skycast.weather.models import WeatherSample, DailySummary


logger = logging.getLogger(__name__)

MAX_DAILY_SUMMARIES = 7
HOURLY_WINDOW = 24

_TIME_SEPARATOR = re.compile(r"[ T]")


def day_key(sample: WeatherSample) -> str:
    """
    Return the calendar date a sample belongs to.

    Uses the date portion of ``sample.date``; samples without a date
    string fall back to the UTC date of their timestamp.
    """
    if sample.date:
        return _TIME_SEPARATOR.split(sample.date, 1)[0]
    return datetime.fromtimestamp(sample.dt, tz=timezone.utc).strftime('%Y-%m-%d')


def hourly_window(samples: Sequence[WeatherSample],
                  limit: Optional[int] = HOURLY_WINDOW) -> List[WeatherSample]:
    """Return the first ``limit`` samples unchanged (all of them if ``limit`` is None)."""
    if limit is None:
        return list(samples)
    return list(samples[:max(limit, 0)])


def aggregate_daily(samples: Sequence[WeatherSample],
                    max_days: int = MAX_DAILY_SUMMARIES) -> List[DailySummary]:
    """
    Collapse forecast samples into one summary per calendar date.

    Groups keep the order in which their dates first appear; input that
    arrives out of chronological order is not sorted. For each group the
    middle sample (index ``len // 2``) is the representative, with
    ``temp`` set to the group mean, ``temp_min`` to the lowest
    ``temp_min`` and ``temp_max`` to the highest ``temp_max``.

    Args:
        samples: Forecast samples in arrival order
        max_days: Maximum number of summaries to return

    Returns:
        Up to ``max_days`` summaries, never padded
    """
    groups: Dict[str, List[WeatherSample]] = {}
    for sample in samples:
        groups.setdefault(day_key(sample), []).append(sample)

    summaries = []
    for date, items in list(groups.items())[:max(max_days, 0)]:
        representative = items[len(items) // 2]
        summary_sample = dataclasses.replace(
            representative,
            temp=sum(item.temp for item in items) / len(items),
            temp_min=min(item.temp_min for item in items),
            temp_max=max(item.temp_max for item in items),
            date=date,
        )
        summaries.append(DailySummary(date=date, sample=summary_sample))

    logger.debug(f"Aggregated {len(samples)} samples into {len(summaries)} daily summaries")
    return summaries
