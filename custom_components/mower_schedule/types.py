"""Type definitions for the Mower Schedule controller."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Protocol


class ComparisonMode(str, Enum):
    """How a lock trigger value is compared with the rule value."""
    EQUAL = "equal"
    LESS_THAN = "lower"
    GREATER_THAN = "greater"


@dataclass(frozen=True)
class PauseWindow:
    start: str
    end: str


@dataclass(frozen=True)
class DaySchedule:
    """Mowing plan for one weekday."""
    mowing: bool
    mowing_time: float  # minutes per day
    earliest_start: str
    latest_stop: str
    pause: PauseWindow | None = None


@dataclass(frozen=True)
class LockRule:
    """External condition that keeps the mower parked while active."""
    trigger: str
    value: Any
    comparison: ComparisonMode = ComparisonMode.EQUAL
    release_delay: float = 0  # minutes, or a factor when release_delay_multiplier is set
    release_delay_multiplier: bool = False


@dataclass(frozen=True)
class BusState:
    """Snapshot of a bus key."""
    value: Any
    last_changed: datetime


@dataclass(frozen=True)
class LockVerdict:
    """Combined result of all lock rules.

    `until` is None while locked for an open-ended lock.
    """
    locked: bool = False
    until: datetime | None = None

    @property
    def indefinite(self) -> bool:
        return self.locked and self.until is None


@dataclass(frozen=True)
class ScheduleDecision:
    """The result of one schedule evaluation."""
    desired: str
    reason: str
    plan_stop: datetime | None
    plan_start: datetime | None


@dataclass
class Horizons:
    """Predicted start / stop timestamps per contributing source."""
    start_plan: datetime | None = None
    start_charge: datetime | None = None
    start_lock: datetime | None = None
    stop_plan: datetime | None = None
    stop_charge: datetime | None = None


CancelCallback = Callable[[], None]
TimerAction = Callable[[datetime], None]
AstroClock = Callable[[str, date], "datetime | None"]
Notifier = Callable[[str], None]


class StateBus(Protocol):
    """Reads device telemetry and receives controller-authoritative values."""

    def get_state(self, key: str) -> BusState | None: ...

    def publish(self, key: str, value: Any) -> None: ...


class Actuator(Protocol):
    """Sends commands to the mower."""

    def send_command(self, command: str | int) -> None: ...


class TimerHost(Protocol):
    """Schedules cancellable callbacks."""

    def call_later(self, delay: float, action: TimerAction) -> CancelCallback: ...


class HistoryStorage(Protocol):
    """Subset of homeassistant.helpers.storage.Store used by the controller."""

    async def async_load(self) -> dict | None: ...

    async def async_save(self, data: dict) -> None: ...

    def async_delay_save(self, data_func: Callable[[], dict], delay: float = 0) -> None: ...


