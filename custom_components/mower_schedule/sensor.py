"""Sensor platform for Mower Schedule."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorStateClass,
)
from homeassistant.const import UnitOfTime
from homeassistant.helpers.update_coordinator import CoordinatorEntity
from homeassistant.util import dt as dt_util

from .const import (
    KEY_CHARGE_SAMPLES,
    KEY_LOCKED_UNTIL,
    KEY_MOW_SAMPLES,
    KEY_MOWING_TIME_TODAY,
    KEY_NEXT_START,
    KEY_NEXT_STOP,
    KEY_REMAINING_CHARGE,
    KEY_REMAINING_CHARGE_STR,
    KEY_REMAINING_MOWING,
    KEY_REMAINING_MOWING_STR,
    KEY_SCHEDULE_REASON,
    KEY_SCHEDULE_STATE,
    LOCKED_INDEFINITE,
    REASON_COMPLETE,
    REASON_LOCKED,
    REASON_PAUSE,
    REASON_SCHEDULE,
    STATE_MOWING,
    STATE_PARK,
)
from .coordinator import MowerScheduleCoordinator

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.entity_platform import AddEntitiesCallback
    from . import MowerScheduleConfigEntry


async def async_setup_entry(
    hass: HomeAssistant,
    entry: MowerScheduleConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up sensors."""
    coordinator: MowerScheduleCoordinator = entry.runtime_data

    sensors = [
        ScheduleStateSensor(coordinator),
        ScheduleReasonSensor(coordinator),
        TimestampSensor(coordinator, KEY_NEXT_START, "Next start", "mdi:play-circle-outline"),
        TimestampSensor(coordinator, KEY_NEXT_STOP, "Next stop", "mdi:stop-circle-outline"),
        LockedUntilSensor(coordinator),
        RemainingTimeSensor(coordinator, KEY_REMAINING_CHARGE, KEY_REMAINING_CHARGE_STR, "Remaining charge time", "mdi:battery-clock"),
        RemainingTimeSensor(coordinator, KEY_REMAINING_MOWING, KEY_REMAINING_MOWING_STR, "Remaining mowing time", "mdi:robot-mower"),
        MowingTimeTodaySensor(coordinator),
    ]

    async_add_entities(sensors)


class MowerBaseSensor(CoordinatorEntity[MowerScheduleCoordinator], SensorEntity):
    """Base sensor."""
    _attr_has_entity_name = True

    def __init__(self, coordinator: MowerScheduleCoordinator, key: str) -> None:
        super().__init__(coordinator)
        self._key = key
        self._attr_unique_id = f"{coordinator.entry.entry_id}_{key}"
        self._attr_device_info = coordinator.device_info

    @property
    def _value(self) -> Any:
        return (self.coordinator.data or {}).get(self._key)


class ScheduleStateSensor(MowerBaseSensor):
    """Desired state of the schedule."""
    _attr_name = "Schedule state"
    _attr_device_class = SensorDeviceClass.ENUM
    _attr_options = [STATE_MOWING, STATE_PARK]
    _attr_icon = "mdi:calendar-clock"

    def __init__(self, coordinator: MowerScheduleCoordinator) -> None:
        super().__init__(coordinator, KEY_SCHEDULE_STATE)

    @property
    def native_value(self) -> str | None:
        return self._value or None


class ScheduleReasonSensor(MowerBaseSensor):
    _attr_name = "Schedule reason"
    _attr_device_class = SensorDeviceClass.ENUM
    _attr_options = [REASON_SCHEDULE, REASON_LOCKED, REASON_PAUSE, REASON_COMPLETE]
    _attr_icon = "mdi:information-outline"

    def __init__(self, coordinator: MowerScheduleCoordinator) -> None:
        super().__init__(coordinator, KEY_SCHEDULE_REASON)

    @property
    def native_value(self) -> str | None:
        return self._value or None


class TimestampSensor(MowerBaseSensor):
    """Next start / next stop."""
    _attr_device_class = SensorDeviceClass.TIMESTAMP

    def __init__(self, coordinator: MowerScheduleCoordinator, key: str, name: str, icon: str) -> None:
        super().__init__(coordinator, key)
        self._attr_name = name
        self._attr_icon = icon

    @property
    def native_value(self) -> datetime | None:
        value = self._value
        return value if isinstance(value, datetime) else None


class LockedUntilSensor(MowerBaseSensor):
    """
    Release time of the combined lock.
    An open-ended lock shows the end of today with the `indefinite` attribute set.
    """
    _attr_name = "Locked until"
    _attr_device_class = SensorDeviceClass.TIMESTAMP
    _attr_icon = "mdi:lock-clock"

    def __init__(self, coordinator: MowerScheduleCoordinator) -> None:
        super().__init__(coordinator, KEY_LOCKED_UNTIL)

    @property
    def native_value(self) -> datetime | None:
        value = self._value
        if value == LOCKED_INDEFINITE:
            return dt_util.start_of_local_day() + timedelta(days=1, seconds=-1)
        return value if isinstance(value, datetime) else None

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        return {"indefinite": self._value == LOCKED_INDEFINITE}


class RemainingTimeSensor(MowerBaseSensor):
    """Countdown in seconds, with the M:SS text as attribute."""
    _attr_device_class = SensorDeviceClass.DURATION
    _attr_native_unit_of_measurement = UnitOfTime.SECONDS

    def __init__(self, coordinator: MowerScheduleCoordinator, key: str, text_key: str, name: str, icon: str) -> None:
        super().__init__(coordinator, key)
        self._text_key = text_key
        self._attr_name = name
        self._attr_icon = icon

    @property
    def native_value(self) -> int:
        return int(self._value or 0)

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        return {"formatted": (self.coordinator.data or {}).get(self._text_key, "")}


class MowingTimeTodaySensor(MowerBaseSensor):
    _attr_name = "Mowing time today"
    _attr_state_class = SensorStateClass.TOTAL_INCREASING
    _attr_native_unit_of_measurement = UnitOfTime.MINUTES
    _attr_icon = "mdi:timer-sand"

    def __init__(self, coordinator: MowerScheduleCoordinator) -> None:
        super().__init__(coordinator, KEY_MOWING_TIME_TODAY)

    @property
    def native_value(self) -> float:
        return float(self._value or 0)

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        data = self.coordinator.data or {}
        return {
            "charge_samples": data.get(KEY_CHARGE_SAMPLES, 0),
            "mow_samples": data.get(KEY_MOW_SAMPLES, 0),
        }
