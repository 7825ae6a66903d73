"""Persisted charge / mow cycle history for duration estimation."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from .const import (
    ATTR_CHARGE_HISTORY,
    ATTR_MOW_HISTORY,
    ATTR_MOWING_TIME_DAY,
    CHARGE_HISTORY_SIZE,
    MAX_MOWING_INCREMENT,
    MOW_HISTORY_UNSTOPPED,
)

_LOGGER = logging.getLogger(__name__)


def parse_timestamp(value: Any) -> datetime | None:
    """Read an ISO string, or epoch milliseconds as written by older versions."""
    if value in (None, 0, ""):
        return None
    if isinstance(value, datetime):
        return value
    try:
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        return datetime.fromisoformat(str(value))
    except (ValueError, OverflowError, OSError):
        _LOGGER.warning("Ignoring unreadable timestamp %r", value)
        return None


def format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def decode_blob(raw: Any, expected: type | tuple[type, ...]) -> Any:
    """
    Accept a stored value either as native JSON data or as a JSON string.
    Returns None if it is missing or malformed.
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            _LOGGER.warning("Malformed stored value, starting empty: %.60s", raw)
            return None
    if not isinstance(raw, expected):
        return None
    return raw


@dataclass
class ChargeCycleSample:
    duration: float  # seconds
    percentage: float  # percentage points gained

    @property
    def seconds_per_percent(self) -> float | None:
        if self.percentage <= 0:
            return None
        return self.duration / self.percentage

    def to_dict(self) -> dict:
        return {"duration": self.duration, "percentage": self.percentage}


@dataclass
class MowCycleSample:
    duration: float  # seconds
    end_soc: float
    stopped: bool = False

    @property
    def seconds_per_percent(self) -> float | None:
        used = 100 - self.end_soc
        if used <= 0:
            return None
        return self.duration / used

    def to_dict(self) -> dict:
        return {"duration": self.duration, "soc": self.end_soc, "stopped": self.stopped}


class MowingTimeToday:
    """Accumulated mowing minutes for the current calendar day."""

    def __init__(self, day: str | None = None, minutes: float = 0.0, last_change: datetime | None = None) -> None:
        self.day = day
        self.minutes = minutes
        self.last_change = last_change

    @classmethod
    def from_storage(cls, raw: Any) -> MowingTimeToday:
        data = decode_blob(raw, dict)
        if not data or not data.get("date"):
            return cls()
        try:
            minutes = float(data.get("minutes", data.get("time", 0)) or 0)
        except (TypeError, ValueError):
            minutes = 0.0
        return cls(
            day=str(data["date"]),
            minutes=minutes,
            last_change=parse_timestamp(data.get("last_change", data.get("lastchange"))),
        )

    def roll_over(self, now: datetime) -> bool:
        """Start a new day if the date changed. Returns True on reset."""
        key = now.date().isoformat()
        if self.day == key:
            return False
        _LOGGER.debug("New mowing day %s (previous %s had %.1f min)", key, self.day, self.minutes)
        self.day = key
        self.minutes = 0.0
        self.last_change = now
        return True

    def accumulate(self, now: datetime, mowing: bool) -> None:
        """Add the time since the last observation if the mower was mowing."""
        self.roll_over(now)
        if mowing and self.last_change is not None:
            elapsed = (now - self.last_change).total_seconds()
            if elapsed > 0:
                self.minutes += min(elapsed, MAX_MOWING_INCREMENT) / 60.0
        self.last_change = now

    def to_dict(self) -> dict:
        return {
            "date": self.day,
            "minutes": self.minutes,
            "last_change": format_timestamp(self.last_change),
        }


class HistoryStore:
    """Bounded charge and mow cycle samples plus today's mowing time."""

    def __init__(
        self,
        charge: list[ChargeCycleSample] | None = None,
        mow: list[MowCycleSample] | None = None,
        mowing_today: MowingTimeToday | None = None,
    ) -> None:
        self.charge: list[ChargeCycleSample] = charge or []
        self.mow: list[MowCycleSample] = mow or []
        self.mowing_today = mowing_today or MowingTimeToday()

    @classmethod
    def from_storage(cls, data: dict | None) -> HistoryStore:
        """Load all history blobs, substituting empty values for broken ones."""
        data = data or {}
        store = cls(
            charge=cls._load_charge(data.get(ATTR_CHARGE_HISTORY)),
            mow=cls._load_mow(data.get(ATTR_MOW_HISTORY)),
            mowing_today=MowingTimeToday.from_storage(data.get(ATTR_MOWING_TIME_DAY)),
        )
        _LOGGER.debug("History loaded: %d charge, %d mow samples", len(store.charge), len(store.mow))
        return store

    @staticmethod
    def _load_charge(raw: Any) -> list[ChargeCycleSample]:
        items = decode_blob(raw, list) or []
        samples = []
        for item in items:
            try:
                samples.append(ChargeCycleSample(
                    duration=float(item.get("duration", item.get("time"))),
                    percentage=float(item["percentage"]),
                ))
            except (AttributeError, KeyError, TypeError, ValueError):
                _LOGGER.debug("Skipping broken charge sample %r", item)
        return samples[-CHARGE_HISTORY_SIZE:]

    @staticmethod
    def _load_mow(raw: Any) -> list[MowCycleSample]:
        data = decode_blob(raw, (list, dict))
        if not data:
            return []

        # Older format stored two parallel arrays without the stopped flag
        if isinstance(data, dict):
            times = data.get("mowingTimes") or []
            socs = data.get("mowingEndSoC") or []
            _LOGGER.info("Migrating %d mow samples from parallel-array history", len(times))
            data = [{"duration": t, "soc": s, "stopped": False} for t, s in zip(times, socs)]

        samples = []
        for item in data:
            try:
                samples.append(MowCycleSample(
                    duration=float(item.get("duration", item.get("time"))),
                    end_soc=float(item["soc"]),
                    stopped=bool(item.get("stopped", False)),
                ))
            except (AttributeError, KeyError, TypeError, ValueError):
                _LOGGER.debug("Skipping broken mow sample %r", item)
        return samples

    def add_charge_cycle(self, sample: ChargeCycleSample) -> None:
        self.charge.append(sample)
        del self.charge[:-CHARGE_HISTORY_SIZE]

    def add_mow_cycle(self, sample: MowCycleSample) -> None:
        self.mow.append(sample)
        self.trim_mow()

    def trim_mow(self) -> None:
        """Keep the newest samples up to and including the 10th unstopped one."""
        keep = 0
        unstopped = 0
        for sample in reversed(self.mow):
            keep += 1
            if not sample.stopped:
                unstopped += 1
                if unstopped >= MOW_HISTORY_UNSTOPPED:
                    break
        del self.mow[:len(self.mow) - keep]

    def charge_rates(self) -> list[float]:
        """Seconds needed per charged percent, one value per cycle."""
        return [r for r in (s.seconds_per_percent for s in self.charge) if r is not None]

    def mow_rates(self) -> list[float]:
        """Seconds of mowing per consumed percent, one value per run."""
        return [r for r in (s.seconds_per_percent for s in self.mow) if r is not None]

    def end_socs(self) -> list[float]:
        """End-of-run charge of runs that ended on their own."""
        return [s.end_soc for s in self.mow if not s.stopped]

    def to_dict(self) -> dict:
        return {
            ATTR_CHARGE_HISTORY: [s.to_dict() for s in self.charge],
            ATTR_MOW_HISTORY: [s.to_dict() for s in self.mow],
            ATTR_MOWING_TIME_DAY: self.mowing_today.to_dict(),
        }
