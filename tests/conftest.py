"""Shared fakes: Home Assistant mocks, a virtual clock acting as timer host, plus bus, actuator and store doubles."""
import sys
import types
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
import voluptuous as vol


class MockDataUpdateCoordinator:
    def __init__(self, hass, logger, name, update_interval, **kwargs):
        self.hass = hass
        self.logger = logger
        self.name = name
        self.update_interval = update_interval
        self.config_entry = kwargs.get("config_entry")
        self.data = None
        self.updates = []

    def async_set_updated_data(self, data):
        self.data = data
        self.updates.append(data)

    async def async_shutdown(self):
        pass

    def __class_getitem__(cls, item):
        return cls


def _entity_id(value):
    value = str(value).lower()
    domain, _, object_id = value.partition(".")
    if not domain or not object_id:
        raise vol.Invalid(f"Entity ID {value} is an invalid entity ID")
    return value


# Global Mock for Home Assistant
# This must run before any test imports that rely on 'homeassistant'
if "homeassistant" not in sys.modules:
    ha = types.ModuleType("homeassistant")
    ha.__path__ = []
    sys.modules["homeassistant"] = ha

    ha.core = MagicMock()
    ha.core.callback = lambda func: func
    ha.config_entries = MagicMock()
    ha.data_entry_flow = MagicMock()
    ha.exceptions = MagicMock()
    ha.const = MagicMock()
    ha.const.STATE_UNAVAILABLE = "unavailable"
    ha.const.STATE_UNKNOWN = "unknown"
    ha.const.EVENT_HOMEASSISTANT_STOP = "homeassistant_stop"
    ha.const.CONF_NAME = "name"

    ha.helpers = MagicMock()
    ha.helpers.config_validation = MagicMock()
    ha.helpers.config_validation.entity_id = _entity_id
    ha.helpers.config_validation.service = _entity_id
    ha.helpers.event = MagicMock()
    ha.helpers.storage = MagicMock()
    ha.helpers.sun = MagicMock()
    ha.helpers.selector = MagicMock()
    ha.helpers.entity_platform = MagicMock()
    ha.helpers.device_registry = MagicMock()
    ha.helpers.update_coordinator = MagicMock()
    ha.helpers.update_coordinator.DataUpdateCoordinator = MockDataUpdateCoordinator

    ha.util = MagicMock()
    ha.util.dt = MagicMock()
    ha.util.dt.as_local.side_effect = lambda value: value

    ha.components = MagicMock()

    sys.modules["homeassistant.core"] = ha.core
    sys.modules["homeassistant.config_entries"] = ha.config_entries
    sys.modules["homeassistant.data_entry_flow"] = ha.data_entry_flow
    sys.modules["homeassistant.exceptions"] = ha.exceptions
    sys.modules["homeassistant.const"] = ha.const
    sys.modules["homeassistant.helpers"] = ha.helpers
    for name in (
        "config_validation", "event", "storage", "sun", "selector",
        "entity_platform", "device_registry", "update_coordinator",
    ):
        sys.modules[f"homeassistant.helpers.{name}"] = getattr(ha.helpers, name)
    sys.modules["homeassistant.util"] = ha.util
    sys.modules["homeassistant.util.dt"] = ha.util.dt
    sys.modules["homeassistant.components"] = ha.components
    for name in ("sensor", "binary_sensor", "switch"):
        sys.modules[f"homeassistant.components.{name}"] = getattr(ha.components, name)


from custom_components.mower_schedule.config import MowerConfig
from custom_components.mower_schedule.const import SUNRISE, WEEKDAYS
from custom_components.mower_schedule.controller import MowerController
from custom_components.mower_schedule.types import BusState, DaySchedule, PauseWindow

TZ = timezone(timedelta(hours=2))

ACTIVITY = "sensor.mower_activity"
BATTERY_LEVEL = "sensor.mower_battery"
BATTERY_STATE = "sensor.mower_battery_state"
MOWER_STATE = "sensor.mower_state"
ERROR_CODE = "sensor.mower_error"


def local(hour, minute=0, day=3):
    """Monday 2024-06-03 unless another June day is given."""
    return datetime(2024, 6, day, hour, minute, tzinfo=TZ)


class VirtualClock:
    """Deterministic TimerHost: `advance` fires due callbacks in order."""

    def __init__(self, start: datetime):
        self.now = start
        self._jobs = []
        self._seq = 0

    def __call__(self):
        return self.now

    def call_later(self, delay, action):
        self._seq += 1
        job = {"due": self.now + timedelta(seconds=delay), "seq": self._seq, "action": action, "cancelled": False}
        self._jobs.append(job)

        def cancel():
            job["cancelled"] = True

        return cancel

    def pending(self):
        return [j for j in self._jobs if not j["cancelled"]]

    def advance(self, seconds):
        end = self.now + timedelta(seconds=seconds)
        while True:
            due = [j for j in self.pending() if j["due"] <= end]
            if not due:
                break
            job = min(due, key=lambda j: (j["due"], j["seq"]))
            job["cancelled"] = True
            self.now = job["due"]
            job["action"](self.now)
            self._jobs = self.pending()
        self.now = end


class FakeBus:
    def __init__(self, clock):
        self._clock = clock
        self.states = {}
        self.published = {}

    def set(self, key, value):
        self.states[key] = BusState(value, self._clock())

    def get_state(self, key):
        return self.states.get(key)

    def publish(self, key, value):
        self.published[key] = value


class FakeActuator:
    def __init__(self):
        self.commands = []

    def send_command(self, command):
        self.commands.append(command)


class FakeStore:
    def __init__(self, data=None):
        self.data = data
        self.delayed = None
        self.delay_calls = 0

    async def async_load(self):
        return self.data

    async def async_save(self, data):
        self.data = data

    def async_delay_save(self, data_func, delay=0):
        self.delayed = data_func
        self.delay_calls += 1


def fake_astro(event, day):
    hour = 5 if event == SUNRISE else 21
    return datetime(day.year, day.month, day.day, hour, 30, tzinfo=TZ)


def weekly_plan(**overrides):
    plan = DaySchedule(
        mowing=True,
        mowing_time=450,
        earliest_start="8:00",
        latest_stop="20:00",
        pause=PauseWindow("12:00", "13:00"),
    )
    schedule = {day: plan for day in WEEKDAYS}
    schedule.update(overrides)
    return schedule


def make_config(**kwargs):
    options = dict(
        activity_entity=ACTIVITY,
        battery_level_entity=BATTERY_LEVEL,
        battery_state_entity=BATTERY_STATE,
        mower_state_entity=MOWER_STATE,
        error_code_entity=ERROR_CODE,
        schedule_active=False,
        schedule=weekly_plan(),
        notify=["mobile_app_phone"],
    )
    options.update(kwargs)
    return MowerConfig(**options)


@pytest.fixture
def clock():
    return VirtualClock(local(9))


@pytest.fixture
def bus(clock):
    bus = FakeBus(clock)
    bus.set(ACTIVITY, "PARKED_PARK_SELECTED")
    bus.set(BATTERY_LEVEL, "100")
    bus.set(BATTERY_STATE, "OK")
    bus.set(MOWER_STATE, "OK")
    bus.set(ERROR_CODE, "NO_MESSAGE")
    return bus


@pytest.fixture
def actuator():
    return FakeActuator()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def notes():
    return []


@pytest.fixture
def make_controller(clock, bus, actuator, store, notes):
    def _make(**config_overrides):
        return MowerController(
            make_config(**config_overrides),
            bus=bus,
            actuator=actuator,
            timers=clock,
            store=store,
            astro=fake_astro,
            clock=clock,
            notifier=notes.append,
        )

    return _make
