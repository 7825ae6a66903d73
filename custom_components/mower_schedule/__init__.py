"""The Mower Schedule integration."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import voluptuous as vol

from homeassistant.config_entries import SOURCE_IMPORT, ConfigEntry
from homeassistant.const import EVENT_HOMEASSISTANT_STOP

from .config import MOWER_SCHEMA, MowerConfig
from .const import DOMAIN, PLATFORMS, VERSION

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant
# from .coordinator import MowerScheduleCoordinator # Lazy import

_LOGGER = logging.getLogger(__name__)

# YAML is still accepted and imported into a config entry
CONFIG_SCHEMA = vol.Schema({vol.Optional(DOMAIN): MOWER_SCHEMA}, extra=vol.ALLOW_EXTRA)

MowerScheduleConfigEntry = ConfigEntry  # [MowerScheduleCoordinator] Lazy typing


async def async_setup(hass: HomeAssistant, config: dict) -> bool:
    """Set up the Mower Schedule component globally."""
    if DOMAIN in config:
        hass.async_create_task(
            hass.config_entries.flow.async_init(
                DOMAIN, context={"source": SOURCE_IMPORT}, data=config[DOMAIN]
            )
        )
    return True


async def async_setup_entry(hass: HomeAssistant, entry: MowerScheduleConfigEntry) -> bool:
    """Set up Mower Schedule from a config entry."""
    from .coordinator import MowerScheduleCoordinator

    mower_config = MowerConfig.from_entry(entry)
    if mower_config.debug:
        logging.getLogger(__package__).setLevel(logging.DEBUG)

    coordinator = MowerScheduleCoordinator(hass, entry, mower_config)
    await coordinator.async_setup()

    entry.runtime_data = coordinator

    async def _async_stop(_event) -> None:
        await coordinator.async_shutdown()

    entry.async_on_unload(hass.bus.async_listen_once(EVENT_HOMEASSISTANT_STOP, _async_stop))

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    entry.async_on_unload(entry.add_update_listener(async_reload_entry))

    _LOGGER.info(
        "Mower schedule %s set up, schedule %s",
        VERSION, "active" if mower_config.schedule_active else "inactive",
    )
    return True


async def async_unload_entry(hass: HomeAssistant, entry: MowerScheduleConfigEntry) -> bool:
    """Unload a config entry and flush the learned history."""
    unloaded = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unloaded:
        await entry.runtime_data.async_shutdown()
    return unloaded


async def async_reload_entry(hass: HomeAssistant, entry: MowerScheduleConfigEntry) -> None:
    """Reload config entry when options change."""
    await hass.config_entries.async_reload(entry.entry_id)
