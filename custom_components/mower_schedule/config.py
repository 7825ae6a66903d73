"""Configuration schema shared by YAML import and the config flow, and the validated controller configuration."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

import voluptuous as vol

from homeassistant.helpers import config_validation as cv

from .const import (
    CONF_ACTIVITY,
    CONF_BATTERY_LEVEL,
    CONF_BATTERY_STATE,
    CONF_COMMAND_ENTITY,
    CONF_COMMAND_SERVICE,
    CONF_COMPARISON,
    CONF_DEBUG,
    CONF_EARLIEST_START,
    CONF_ERROR_CODE,
    CONF_FROM,
    CONF_LATEST_STOP,
    CONF_LOCKS,
    CONF_MOWER_STATE,
    CONF_MOWING,
    CONF_MOWING_TIME,
    CONF_NOTIFY,
    CONF_PAUSE,
    CONF_PAUSE_FROM,
    CONF_PAUSE_TO,
    CONF_RELEASE_DELAY,
    CONF_RELEASE_MULTIPLIER,
    CONF_SCHEDULE,
    CONF_SCHEDULE_ACTIVE,
    CONF_TO,
    CONF_TRIGGER,
    CONF_TRIGGER_VALUE,
    DEFAULT_COMMAND_SERVICE,
    DEFAULT_EARLIEST_START,
    DEFAULT_LATEST_STOP,
    DEFAULT_MOWING_TIME,
    SUNRISE,
    SUNSET,
    WEEKDAYS,
)
from .time_utils import MINUTES_PER_DAY
from .types import ComparisonMode, DaySchedule, LockRule, PauseWindow

_TIME_RE = re.compile(r"^([01]?\d|2[0-3])(?::([0-5]\d))?(?::[0-5]\d)?$")


def time_spec(value: Any) -> str:
    """Validate a time of day: 'H:MM', 'sunrise' or 'sunset'.

    YAML 1.1 reads an unquoted 8:30 as the integer 510, so plain integers
    are taken as minutes since midnight. Seconds from a time selector are dropped.
    """
    if isinstance(value, bool):
        raise vol.Invalid(f"invalid time: {value!r}")
    if isinstance(value, int):
        if not 0 <= value < MINUTES_PER_DAY:
            raise vol.Invalid(f"time out of range: {value}")
        return f"{value // 60}:{value % 60:02d}"

    text = str(value).strip().lower()
    if text in (SUNRISE, SUNSET):
        return text
    match = _TIME_RE.match(text)
    if not match:
        raise vol.Invalid(f"invalid time: {value!r}, expected H:MM, sunrise or sunset")
    return f"{int(match.group(1))}:{match.group(2) or '00'}"


PAUSE_SCHEMA = vol.Schema({
    vol.Required(CONF_FROM): time_spec,
    vol.Required(CONF_TO): time_spec,
})

DAY_SCHEMA = vol.Schema({
    vol.Optional(CONF_MOWING, default=True): bool,
    vol.Optional(CONF_MOWING_TIME, default=DEFAULT_MOWING_TIME): vol.All(
        vol.Coerce(float), vol.Range(min=0, max=MINUTES_PER_DAY)
    ),
    vol.Optional(CONF_EARLIEST_START, default=DEFAULT_EARLIEST_START): time_spec,
    vol.Optional(CONF_LATEST_STOP, default=DEFAULT_LATEST_STOP): time_spec,
    vol.Optional(CONF_PAUSE): PAUSE_SCHEMA,
})

LOCK_SCHEMA = vol.Schema({
    vol.Required(CONF_TRIGGER): cv.entity_id,
    vol.Required(CONF_TRIGGER_VALUE): vol.Any(bool, vol.Coerce(float), str),
    vol.Optional(CONF_COMPARISON, default=ComparisonMode.EQUAL.value): vol.All(
        vol.Lower, vol.In([mode.value for mode in ComparisonMode])
    ),
    vol.Optional(CONF_RELEASE_DELAY, default=0): vol.All(vol.Coerce(float), vol.Range(min=0)),
    vol.Optional(CONF_RELEASE_MULTIPLIER, default=False): bool,
})

MOWER_SCHEMA = vol.Schema({
    vol.Required(CONF_ACTIVITY): cv.entity_id,
    vol.Required(CONF_BATTERY_LEVEL): cv.entity_id,
    vol.Required(CONF_BATTERY_STATE): cv.entity_id,
    vol.Optional(CONF_MOWER_STATE): cv.entity_id,
    vol.Optional(CONF_ERROR_CODE): cv.entity_id,
    vol.Optional(CONF_COMMAND_ENTITY): cv.entity_id,
    vol.Optional(CONF_COMMAND_SERVICE, default=DEFAULT_COMMAND_SERVICE): cv.service,
    vol.Optional(CONF_SCHEDULE_ACTIVE, default=True): bool,
    vol.Optional(CONF_SCHEDULE, default={}): vol.Schema({vol.In(WEEKDAYS): DAY_SCHEMA}),
    vol.Optional(CONF_LOCKS, default=[]): [LOCK_SCHEMA],
    vol.Optional(CONF_NOTIFY, default=[]): vol.All(
        lambda value: [value] if isinstance(value, str) else value, [str]
    ),
    vol.Optional(CONF_DEBUG, default=False): bool,
})

# Entity wiring lives in the entry data; everything else is an option
ENTRY_DATA_KEYS = (
    CONF_ACTIVITY,
    CONF_BATTERY_LEVEL,
    CONF_BATTERY_STATE,
    CONF_MOWER_STATE,
    CONF_ERROR_CODE,
    CONF_COMMAND_ENTITY,
    CONF_COMMAND_SERVICE,
)


def split_entry(conf: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    """Split a validated configuration into config entry data and options."""
    data = {key: conf[key] for key in ENTRY_DATA_KEYS if conf.get(key)}
    options = {key: value for key, value in conf.items() if key not in ENTRY_DATA_KEYS}
    return data, options


def default_schedule() -> dict[str, dict[str, Any]]:
    """Every day enabled from sunrise to sunset with the default budget."""
    return {day: DAY_SCHEMA({}) for day in WEEKDAYS}


def day_from_form(user_input: dict[str, Any]) -> dict[str, Any]:
    """Build a day plan from the flat options form; a pause needs both ends."""
    raw = {
        key: user_input[key]
        for key in (CONF_MOWING, CONF_MOWING_TIME, CONF_EARLIEST_START, CONF_LATEST_STOP)
        if key in user_input
    }
    pause_from = user_input.get(CONF_PAUSE_FROM)
    pause_to = user_input.get(CONF_PAUSE_TO)
    if pause_from and pause_to:
        raw[CONF_PAUSE] = {CONF_FROM: pause_from, CONF_TO: pause_to}
    elif pause_from or pause_to:
        raise vol.Invalid("a pause needs both a start and an end")
    return DAY_SCHEMA(raw)


@dataclass
class MowerConfig:
    """Validated integration options."""
    activity_entity: str
    battery_level_entity: str
    battery_state_entity: str
    mower_state_entity: str | None = None
    error_code_entity: str | None = None
    command_entity: str | None = None
    command_service: str = DEFAULT_COMMAND_SERVICE
    schedule_active: bool = True
    schedule: dict[str, DaySchedule] = field(default_factory=dict)
    locks: list[LockRule] = field(default_factory=list)
    notify: list[str] = field(default_factory=list)
    debug: bool = False

    @classmethod
    def from_entry(cls, entry) -> MowerConfig:
        return cls.from_dict({**entry.data, **entry.options})

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> MowerConfig:
        """Validate raw options with the schema and build the config."""
        conf = MOWER_SCHEMA(raw)

        schedule = {}
        for day, plan in conf[CONF_SCHEDULE].items():
            pause = None
            if CONF_PAUSE in plan:
                pause = PauseWindow(start=plan[CONF_PAUSE][CONF_FROM], end=plan[CONF_PAUSE][CONF_TO])
            schedule[day] = DaySchedule(
                mowing=plan[CONF_MOWING],
                mowing_time=plan[CONF_MOWING_TIME],
                earliest_start=plan[CONF_EARLIEST_START],
                latest_stop=plan[CONF_LATEST_STOP],
                pause=pause,
            )

        locks = [
            LockRule(
                trigger=lock[CONF_TRIGGER],
                value=lock[CONF_TRIGGER_VALUE],
                comparison=ComparisonMode(lock[CONF_COMPARISON]),
                release_delay=lock[CONF_RELEASE_DELAY],
                release_delay_multiplier=lock[CONF_RELEASE_MULTIPLIER],
            )
            for lock in conf[CONF_LOCKS]
        ]

        return cls(
            activity_entity=conf[CONF_ACTIVITY],
            battery_level_entity=conf[CONF_BATTERY_LEVEL],
            battery_state_entity=conf[CONF_BATTERY_STATE],
            mower_state_entity=conf.get(CONF_MOWER_STATE),
            error_code_entity=conf.get(CONF_ERROR_CODE),
            command_entity=conf.get(CONF_COMMAND_ENTITY),
            command_service=conf[CONF_COMMAND_SERVICE],
            schedule_active=conf[CONF_SCHEDULE_ACTIVE],
            schedule=schedule,
            locks=locks,
            notify=list(conf[CONF_NOTIFY]),
            debug=conf[CONF_DEBUG],
        )
