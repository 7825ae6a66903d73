"""Config flow for Mower Schedule integration."""
from __future__ import annotations

from typing import Any

import voluptuous as vol

from homeassistant import config_entries
from homeassistant.const import CONF_NAME
from homeassistant.core import callback
from homeassistant.data_entry_flow import FlowResult
from homeassistant.helpers import selector

from .config import (
    DAY_SCHEMA,
    LOCK_SCHEMA,
    MOWER_SCHEMA,
    day_from_form,
    default_schedule,
    split_entry,
)
from .const import (
    DOMAIN,
    DEFAULT_NAME,
    CONF_ACTIVITY,
    CONF_BATTERY_LEVEL,
    CONF_BATTERY_STATE,
    CONF_COMMAND_ENTITY,
    CONF_COMMAND_SERVICE,
    CONF_COMPARISON,
    CONF_DAY,
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
    CONF_REMOVE,
    CONF_SCHEDULE,
    CONF_SCHEDULE_ACTIVE,
    CONF_TO,
    CONF_TRIGGER,
    CONF_TRIGGER_VALUE,
    DEFAULT_COMMAND_SERVICE,
    WEEKDAYS,
)
from .types import ComparisonMode


def _sensor_selector() -> selector.EntitySelector:
    return selector.EntitySelector(
        selector.EntitySelectorConfig(domain=["sensor", "input_select", "input_text", "input_number"])
    )


class MowerScheduleConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle a config flow for Mower Schedule."""

    VERSION = 1

    async def async_step_user(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        """Pick the mower entities; the weekly plan starts from defaults."""
        errors = {}

        if user_input is not None:
            title = user_input.pop(CONF_NAME, DEFAULT_NAME)
            try:
                conf = MOWER_SCHEMA({**user_input, CONF_SCHEDULE: default_schedule()})
            except vol.Invalid:
                errors["base"] = "invalid_config"
            else:
                await self.async_set_unique_id(conf[CONF_ACTIVITY])
                self._abort_if_unique_id_configured()
                data, options = split_entry(conf)
                return self.async_create_entry(title=title, data=data, options=options)

        data_schema = vol.Schema({
            vol.Required(CONF_NAME, default=DEFAULT_NAME): str,
            vol.Required(CONF_ACTIVITY): _sensor_selector(),
            vol.Required(CONF_BATTERY_LEVEL): _sensor_selector(),
            vol.Required(CONF_BATTERY_STATE): _sensor_selector(),
            vol.Optional(CONF_MOWER_STATE): _sensor_selector(),
            vol.Optional(CONF_ERROR_CODE): _sensor_selector(),
            vol.Optional(CONF_COMMAND_ENTITY): selector.EntitySelector(),
            vol.Required(CONF_COMMAND_SERVICE, default=DEFAULT_COMMAND_SERVICE): selector.TextSelector(),
        })

        return self.async_show_form(step_id="user", data_schema=data_schema, errors=errors)

    async def async_step_import(self, import_data: dict[str, Any]) -> FlowResult:
        """Create or refresh the entry from YAML."""
        conf = MOWER_SCHEMA(import_data)
        data, options = split_entry(conf)

        existing = await self.async_set_unique_id(conf[CONF_ACTIVITY])
        if existing is not None:
            self.hass.config_entries.async_update_entry(existing, data=data, options=options)
            return self.async_abort(reason="already_configured")

        return self.async_create_entry(title=DEFAULT_NAME, data=data, options=options)

    @staticmethod
    @callback
    def async_get_options_flow(config_entry: config_entries.ConfigEntry) -> MowerScheduleOptionsFlow:
        return MowerScheduleOptionsFlow()


class MowerScheduleOptionsFlow(config_entries.OptionsFlow):
    """Edit the weekly plan, the lock rules and the general switches."""

    def __init__(self) -> None:
        self._day: str | None = None

    def _options(self) -> dict[str, Any]:
        return dict(self.config_entry.options)

    async def async_step_init(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        return self.async_show_menu(
            step_id="init",
            menu_options=["general", "day", "add_lock", "remove_lock"],
        )

    async def async_step_general(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        options = self._options()
        if user_input is not None:
            options.update(user_input)
            return self.async_create_entry(title="", data=options)

        schema = vol.Schema({
            vol.Required(CONF_SCHEDULE_ACTIVE, default=options.get(CONF_SCHEDULE_ACTIVE, True)): selector.BooleanSelector(),
            vol.Optional(CONF_NOTIFY, default=options.get(CONF_NOTIFY, [])): selector.TextSelector(
                selector.TextSelectorConfig(multiple=True)
            ),
            vol.Required(CONF_DEBUG, default=options.get(CONF_DEBUG, False)): selector.BooleanSelector(),
        })
        return self.async_show_form(step_id="general", data_schema=schema)

    async def async_step_day(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        if user_input is not None:
            self._day = user_input[CONF_DAY]
            return await self.async_step_day_plan()

        schema = vol.Schema({
            vol.Required(CONF_DAY, default=WEEKDAYS[0]): selector.SelectSelector(
                selector.SelectSelectorConfig(
                    options=list(WEEKDAYS),
                    mode=selector.SelectSelectorMode.DROPDOWN,
                    translation_key="weekday",
                )
            ),
        })
        return self.async_show_form(step_id="day", data_schema=schema)

    async def async_step_day_plan(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        options = self._options()
        schedule = dict(options.get(CONF_SCHEDULE) or {})
        errors = {}

        if user_input is not None:
            try:
                schedule[self._day] = day_from_form(user_input)
            except vol.Invalid:
                errors["base"] = "invalid_time"
            else:
                options[CONF_SCHEDULE] = schedule
                return self.async_create_entry(title="", data=options)

        current = schedule.get(self._day) or DAY_SCHEMA({})
        pause = current.get(CONF_PAUSE) or {}
        schema = vol.Schema({
            vol.Required(CONF_MOWING, default=current[CONF_MOWING]): selector.BooleanSelector(),
            vol.Required(CONF_MOWING_TIME, default=current[CONF_MOWING_TIME]): selector.NumberSelector(
                selector.NumberSelectorConfig(min=0, max=1440, step=5, unit_of_measurement="min", mode="box")
            ),
            vol.Required(CONF_EARLIEST_START, default=current[CONF_EARLIEST_START]): selector.TextSelector(),
            vol.Required(CONF_LATEST_STOP, default=current[CONF_LATEST_STOP]): selector.TextSelector(),
            vol.Optional(CONF_PAUSE_FROM, default=pause.get(CONF_FROM, "")): selector.TextSelector(),
            vol.Optional(CONF_PAUSE_TO, default=pause.get(CONF_TO, "")): selector.TextSelector(),
        })
        return self.async_show_form(
            step_id="day_plan",
            data_schema=schema,
            errors=errors,
            description_placeholders={"day": self._day},
        )

    async def async_step_add_lock(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        options = self._options()
        errors = {}

        if user_input is not None:
            try:
                lock = LOCK_SCHEMA(user_input)
            except vol.Invalid:
                errors["base"] = "invalid_lock"
            else:
                options[CONF_LOCKS] = [*options.get(CONF_LOCKS, []), lock]
                return self.async_create_entry(title="", data=options)

        schema = vol.Schema({
            vol.Required(CONF_TRIGGER): selector.EntitySelector(),
            vol.Required(CONF_TRIGGER_VALUE, default="on"): selector.TextSelector(),
            vol.Required(CONF_COMPARISON, default=ComparisonMode.EQUAL.value): selector.SelectSelector(
                selector.SelectSelectorConfig(
                    options=[mode.value for mode in ComparisonMode],
                    mode=selector.SelectSelectorMode.DROPDOWN,
                    translation_key="comparison",
                )
            ),
            vol.Required(CONF_RELEASE_DELAY, default=0): selector.NumberSelector(
                selector.NumberSelectorConfig(min=0, max=1440, step=1, unit_of_measurement="min", mode="box")
            ),
            vol.Required(CONF_RELEASE_MULTIPLIER, default=False): selector.BooleanSelector(),
        })
        return self.async_show_form(step_id="add_lock", data_schema=schema, errors=errors)

    async def async_step_remove_lock(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        options = self._options()
        locks = list(options.get(CONF_LOCKS, []))

        if user_input is not None:
            drop = {int(index) for index in user_input.get(CONF_REMOVE, [])}
            options[CONF_LOCKS] = [lock for index, lock in enumerate(locks) if index not in drop]
            return self.async_create_entry(title="", data=options)

        choices = [
            {
                "value": str(index),
                "label": f"{lock[CONF_TRIGGER]} {lock[CONF_COMPARISON]} {lock[CONF_TRIGGER_VALUE]}",
            }
            for index, lock in enumerate(locks)
        ]
        schema = vol.Schema({
            vol.Optional(CONF_REMOVE, default=[]): selector.SelectSelector(
                selector.SelectSelectorConfig(options=choices, multiple=True)
            ),
        })
        return self.async_show_form(step_id="remove_lock", data_schema=schema)
