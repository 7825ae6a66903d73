"""Switch platform for Mower Schedule."""
from __future__ import annotations

from typing import Any, TYPE_CHECKING

from homeassistant.components.switch import SwitchEntity
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import KEY_STOP_REQUESTED

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.entity_platform import AddEntitiesCallback
    from . import MowerScheduleConfigEntry
    from .coordinator import MowerScheduleCoordinator


async def async_setup_entry(
    hass: HomeAssistant,
    entry: MowerScheduleConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up the stop switch."""
    async_add_entities([MowerStopSwitch(entry.runtime_data)])


class MowerStopSwitch(CoordinatorEntity["MowerScheduleCoordinator"], SwitchEntity):
    """Keeps the mower parked until switched off again."""

    _attr_icon = "mdi:robot-mower-outline"
    _attr_has_entity_name = True
    _attr_name = "Stop mowing"

    def __init__(self, coordinator: MowerScheduleCoordinator) -> None:
        super().__init__(coordinator)
        self._attr_unique_id = f"{coordinator.entry.entry_id}_stop_mowing"
        self._attr_device_info = coordinator.device_info

    @property
    def is_on(self) -> bool:
        return bool((self.coordinator.data or {}).get(KEY_STOP_REQUESTED, False))

    async def async_turn_on(self, **kwargs: Any) -> None:
        await self.coordinator.async_set_stop_requested(True)

    async def async_turn_off(self, **kwargs: Any) -> None:
        await self.coordinator.async_set_stop_requested(False)
