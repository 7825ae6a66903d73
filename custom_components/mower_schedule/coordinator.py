"""Coordinator wiring the mower controller into Home Assistant."""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import STATE_UNAVAILABLE, STATE_UNKNOWN
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.event import async_call_later, async_track_state_change_event
from homeassistant.helpers.storage import Store
from homeassistant.helpers.sun import get_astral_event_date
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator
from homeassistant.util import dt as dt_util

from .config import MowerConfig
from .const import DOMAIN, STORAGE_KEY_TEMPLATE, STORAGE_VERSION, VERSION
from .controller import MowerController
from .types import BusState, CancelCallback, TimerAction

_LOGGER = logging.getLogger(__name__)

_INVALID_STATES = (STATE_UNAVAILABLE, STATE_UNKNOWN)


class MowerScheduleCoordinator(DataUpdateCoordinator[dict[str, Any]]):
    """
    Home Assistant side of the controller.

    Acts as the controller's state bus, actuator, timer host and astro clock.
    Entities read the controller snapshot from `data`; it is pushed whenever
    the controller publishes, never polled.
    """

    def __init__(self, hass: HomeAssistant, entry: ConfigEntry, config: MowerConfig) -> None:
        super().__init__(
            hass,
            _LOGGER,
            name=f"{DOMAIN}_{entry.entry_id}",
            update_interval=None,
            config_entry=entry,
        )
        self.entry = entry
        self.device_name = entry.title
        self.config = config
        self._store = Store(hass, STORAGE_VERSION, STORAGE_KEY_TEMPLATE.format(entry.entry_id))
        self._unsub: list[CancelCallback] = []
        self._push_pending = False

        self.controller = MowerController(
            config,
            bus=self,
            actuator=self,
            timers=self,
            store=self._store,
            astro=self._astro_event,
            clock=dt_util.now,
            notifier=self._notify,
        )
        self.data = {}

    async def async_setup(self) -> None:
        """Load history, subscribe to the mower entities and start evaluating."""
        await self.controller.async_initialize()
        self._setup_listeners()
        self.controller.start()
        self.async_set_updated_data(self.controller.snapshot())

    @property
    def device_info(self) -> dict[str, Any]:
        return {
            "identifiers": {(DOMAIN, self.entry.entry_id)},
            "name": self.device_name,
            "manufacturer": "Mower Schedule",
            "model": "Mowing scheduler",
            "sw_version": VERSION,
        }

    async def async_shutdown(self) -> None:
        while self._unsub:
            self._unsub.pop()()
        await self.controller.async_shutdown()
        await super().async_shutdown()

    async def _async_update_data(self) -> dict[str, Any]:
        return self.controller.snapshot()

    # --- StateBus ---

    def get_state(self, key: str) -> BusState | None:
        state = self.hass.states.get(key)
        if state is None or state.state in _INVALID_STATES:
            return None
        return BusState(state.state, state.last_changed)

    def publish(self, key: str, value: Any) -> None:
        # Countdowns publish every second; batch them into one entity refresh
        if self._push_pending:
            return
        self._push_pending = True
        self.hass.loop.call_soon(self._push)

    @callback
    def _push(self) -> None:
        self._push_pending = False
        self.async_set_updated_data(self.controller.snapshot())

    # --- Actuator ---

    def send_command(self, command: str | int) -> None:
        domain, service = self.config.command_service.split(".", 1)
        _LOGGER.debug("Calling %s with command %s", self.config.command_service, command)
        self.hass.async_create_task(
            self.hass.services.async_call(domain, service, {"command": command}, blocking=False)
        )

    # --- TimerHost ---

    def call_later(self, delay: float, action: TimerAction) -> CancelCallback:
        @callback
        def _run(_now: datetime) -> None:
            action(dt_util.now())

        return async_call_later(self.hass, delay, _run)

    # --- Astro / notify ---

    def _astro_event(self, event: str, day: date) -> datetime | None:
        value = get_astral_event_date(self.hass, event, day)
        return dt_util.as_local(value) if value is not None else None

    def _notify(self, message: str) -> None:
        for target in self.config.notify:
            service = target.split(".", 1)[1] if target.startswith("notify.") else target
            self.hass.async_create_task(
                self.hass.services.async_call("notify", service, {"message": message, "title": "Mower"})
            )

    # --- Listeners ---

    def _setup_listeners(self) -> None:
        config = self.config
        handlers = {
            config.activity_entity: self._handle_activity,
            config.battery_state_entity: self._handle_battery_state,
            config.battery_level_entity: self._handle_battery_level,
        }
        if config.mower_state_entity:
            handlers[config.mower_state_entity] = self._handle_health
        if config.command_entity:
            handlers[config.command_entity] = self._handle_command

        for entity_id, handler in handlers.items():
            self._unsub.append(async_track_state_change_event(self.hass, [entity_id], handler))

        triggers = sorted({rule.trigger for rule in config.locks} - set(handlers))
        if triggers:
            self._unsub.append(
                async_track_state_change_event(self.hass, triggers, self._handle_trigger)
            )

    @staticmethod
    def _states(event) -> tuple[str | None, str | None]:
        new_state = event.data.get("new_state")
        old_state = event.data.get("old_state")
        new = new_state.state if new_state is not None else None
        old = old_state.state if old_state is not None else None
        if new in _INVALID_STATES:
            new = None
        if old in _INVALID_STATES:
            old = None
        return new, old

    @callback
    def _handle_activity(self, event) -> None:
        new, old = self._states(event)
        if new is None or new == old:
            return
        _LOGGER.debug("Activity changed from %s to %s", old, new)
        self.controller.handle_activity(new)

    @callback
    def _handle_battery_state(self, event) -> None:
        new, old = self._states(event)
        if new is None or new == old:
            return
        self.controller.handle_battery_state(new, old)

    @callback
    def _handle_battery_level(self, event) -> None:
        new, old = self._states(event)
        if new is None or new == old:
            return
        self.controller.handle_battery_level(new, old)

    @callback
    def _handle_health(self, event) -> None:
        new, old = self._states(event)
        if new is None or new == old:
            return
        self.controller.handle_health(new)

    @callback
    def _handle_command(self, event) -> None:
        new, old = self._states(event)
        if new is None or new == old:
            return
        self.controller.handle_command(new)

    @callback
    def _handle_trigger(self, event) -> None:
        self.controller.handle_trigger_change()

    async def async_set_stop_requested(self, requested: bool) -> None:
        self.controller.set_stop_requested(requested)
        self.async_set_updated_data(self.controller.snapshot())
