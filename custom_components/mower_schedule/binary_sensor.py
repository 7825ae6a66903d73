"""Binary Sensor platform for Mower Schedule."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

from homeassistant.components.binary_sensor import BinarySensorEntity
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import KEY_LOCK_STATES, KEY_LOCKED, KEY_LOCKED_UNTIL, LOCKED_INDEFINITE
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
    """Set up binary sensors."""
    async_add_entities([MowerLockedBinarySensor(entry.runtime_data)])


class MowerLockedBinarySensor(CoordinatorEntity[MowerScheduleCoordinator], BinarySensorEntity):
    """On while any lock rule keeps the mower parked."""
    _attr_has_entity_name = True
    _attr_name = "Locked"
    _attr_icon = "mdi:lock"

    def __init__(self, coordinator: MowerScheduleCoordinator) -> None:
        super().__init__(coordinator)
        self._attr_unique_id = f"{coordinator.entry.entry_id}_locked"
        self._attr_device_info = coordinator.device_info

    @property
    def is_on(self) -> bool:
        return bool((self.coordinator.data or {}).get(KEY_LOCKED, False))

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        data = self.coordinator.data or {}
        until = data.get(KEY_LOCKED_UNTIL)
        return {
            "indefinite": until == LOCKED_INDEFINITE,
            "triggers": data.get(KEY_LOCK_STATES, {}),
        }
