"""Time and duration helpers for the mowing schedule."""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Iterable

from .const import CLEAN_AVG_EPSILON, CLEAN_AVG_SPREAD, SUNRISE, SUNSET, WEEKDAYS
from .types import AstroClock

_LOGGER = logging.getLogger(__name__)

MINUTES_PER_DAY = 1440


def parse_time_of_day(value: str) -> int:
    """Convert 'H:MM' (or 'H') to minutes since midnight."""
    parts = str(value).strip().split(":")
    minutes = int(parts[0]) * 60
    if len(parts) > 1:
        minutes += int(parts[1])
    return minutes


def minutes_since_midnight(spec: str | None, day: date, astro: AstroClock | None = None) -> int | None:
    """
    Resolve a time spec for the given day.
    Astro events landing on a neighbouring calendar day are shifted by a full
    day so that ordering against the other values of `day` stays correct.
    """
    if spec is None:
        return None

    if spec in (SUNRISE, SUNSET):
        event = astro(spec, day) if astro else None
        if event is None:
            _LOGGER.warning("No %s time available for %s", spec, day)
            return None
        offset = (event.date() - day).days * MINUTES_PER_DAY
        return event.hour * 60 + event.minute + offset

    return parse_time_of_day(spec)


def clean_average(samples: Iterable[float]) -> float | None:
    """
    Outlier-resistant mean.
    Drops samples further than 40% of the spread from the plain mean.
    """
    values = [float(v) for v in samples if v is not None]
    if not values:
        return None

    average = sum(values) / len(values)
    spread = max(values) - min(values)
    limit = spread * CLEAN_AVG_SPREAD + CLEAN_AVG_EPSILON

    kept = [v for v in values if abs(v - average) < limit]
    if not kept:
        return average  # fallback on low-quality values

    return sum(kept) / len(kept)


def format_minutes_seconds(seconds: float) -> str:
    """Format as M:SS."""
    minutes = int(seconds // 60)
    rest = int(seconds - minutes * 60)
    return f"{minutes}:{rest:02d}"


def weekday_key(day: date) -> str:
    return WEEKDAYS[day.weekday()]


def local_midnight(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def at_minute(now: datetime, minutes: float) -> datetime:
    """Absolute timestamp `minutes` after today's midnight (may be on a later day)."""
    return local_midnight(now) + timedelta(minutes=minutes)


def minute_of_day(now: datetime) -> int:
    return now.hour * 60 + now.minute
