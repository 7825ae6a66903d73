"""Mower telemetry state machine."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from .const import (
    ACTIVITY_OK_LEAVING,
    ACTIVITY_OK_SEARCHING,
    ACTIVITY_PARKED_TIMER,
    BATTERY_CHARGING,
    BATTERY_OK,
    CMD_PARK_UNTIL_FURTHER_NOTICE,
    CMD_START_DONT_OVERRIDE,
    DEFAULT_COMMAND_SECONDS,
    ERROR_OUTSIDE_WORKING_AREA,
    FULL_CHARGE_SOC,
    KEY_NEXT_START,
    KEY_NEXT_STOP,
    MIN_CHARGE_GAIN,
    MIN_MOWING_DURATION,
    MOWER_STATE_ERROR,
    PARK_COMMANDS,
    PARK_OVERRIDE_DELAY,
    TIMER_PARK_OVERRIDE,
)
from .history_store import ChargeCycleSample, MowCycleSample

if TYPE_CHECKING:
    from .controller import MowerController

_LOGGER = logging.getLogger(__name__)


def command_seconds(command: str | int) -> int:
    """Duration of a START command, rounded down to whole minutes."""
    try:
        value = int(command)
    except (TypeError, ValueError):
        value = DEFAULT_COMMAND_SECONDS
    return value - (value % 60)


class MowerStateMachine:
    """
    Tracks mowing runs and charge cycles from acknowledged telemetry.
    Finished cycles are recorded in the history; live cycles drive the estimator.
    """

    def __init__(self, controller: MowerController) -> None:
        self._controller = controller

        # Run / cycle state
        self.mowing_started: datetime | None = None
        self.stop_command = False
        self.charging_started: datetime | None = None
        self.charging_start_soc: float | None = None

    @property
    def history(self):
        return self._controller.history

    @property
    def estimator(self):
        return self._controller.estimator

    def handle_activity(self, activity: str, now: datetime) -> None:
        """Acknowledged activity change reported by the mower."""
        ctrl = self._controller
        ctrl.slots.cancel(TIMER_PARK_OVERRIDE)

        if activity == ACTIVITY_OK_LEAVING:
            self._start_run(now)
        elif activity == ACTIVITY_PARKED_TIMER:
            if ctrl.config.schedule_active:
                # Delayed: the device passes through this state while taking a manual mowing command
                ctrl.slots.schedule(TIMER_PARK_OVERRIDE, PARK_OVERRIDE_DELAY, self._override_timer_park)
        elif activity == ACTIVITY_OK_SEARCHING:
            self._end_run(now)

    def _start_run(self, now: datetime) -> None:
        ctrl = self._controller
        _LOGGER.debug("Mower is leaving the station")
        self.mowing_started = now
        self.stop_command = False

        ctrl.publish(KEY_NEXT_START, None)
        self.estimator.reset_charge()
        ctrl.horizons.start_charge = None

        self.estimator.estimate_mowing_time(now, ctrl.battery_level(), self.mowing_started, ctrl.planned_end)
        ctrl.update_next_stop(now)

    def _end_run(self, now: datetime) -> None:
        ctrl = self._controller
        ctrl.publish(KEY_NEXT_STOP, None)
        self.estimator.reset_mowing()
        _LOGGER.debug("Mower ended mowing and is searching for the station")

        end_soc = ctrl.battery_level()
        deadline_passed = ctrl.planned_end is not None and now >= ctrl.planned_end

        if self.mowing_started is not None:
            duration = (now - self.mowing_started).total_seconds()
            was_stopped = self.stop_command or deadline_passed
            self.stop_command = False

            if duration >= MIN_MOWING_DURATION and end_soc is not None:
                self.history.add_mow_cycle(MowCycleSample(duration=duration, end_soc=end_soc, stopped=was_stopped))
                _LOGGER.info(
                    "We have now %d mowing history entries. Added %.0fs with end SoC of %s%%",
                    len(self.history.mow), duration, end_soc,
                )
                ctrl.schedule_save()
            self.mowing_started = None

        if deadline_passed:
            ctrl.planned_end = None
            ctrl.schedule_save()

    def _override_timer_park(self, now: datetime) -> None:
        _LOGGER.info("Mower parked by its own timer, overriding with park until further notice")
        self._controller.send_command(CMD_PARK_UNTIL_FURTHER_NOTICE, now)

    def handle_battery_state(self, state: str, previous: str | None, now: datetime) -> None:
        """Acknowledged battery state change."""
        ctrl = self._controller

        if state == BATTERY_CHARGING:
            _LOGGER.debug("Mower started charging now.")
            self.estimator.reset_mowing()
            ctrl.horizons.stop_charge = None
            ctrl.update_next_stop(now)
            self.start_charging(now)
        elif state == BATTERY_OK and previous == BATTERY_CHARGING:
            self.estimator.reset_charge()
            self._end_charging(now)

    def start_charging(self, now: datetime) -> None:
        soc = self._controller.battery_level()
        self.charging_started = now
        self.charging_start_soc = soc
        if soc is not None:
            self.estimator.estimate_charge_time(100 - soc, now)

    def _end_charging(self, now: datetime) -> None:
        started = self.charging_started
        start_soc = self.charging_start_soc
        self.charging_started = None
        self.charging_start_soc = None

        if started is None or start_soc is None:
            return

        soc = self._controller.battery_level()
        if soc is None or soc < FULL_CHARGE_SOC:
            _LOGGER.debug("Charging ended at %s%%, before reaching full. Not using this cycle.", soc)
            return

        gained = 100 - start_soc
        if gained < MIN_CHARGE_GAIN:
            _LOGGER.debug("Only %s%% charged. Ignoring this cycle.", gained)
            return

        duration = (now - started).total_seconds()
        self.history.add_charge_cycle(ChargeCycleSample(duration=duration, percentage=gained))
        _LOGGER.info(
            "We have now %d charging history entries. Added %.0fs for %s%%",
            len(self.history.charge), duration, gained,
        )
        self._controller.schedule_save()

    def handle_battery_level(self, level: float, previous: float | None, now: datetime) -> None:
        """Battery level is the progress signal for both estimates."""
        ctrl = self._controller
        if previous is None:
            return
        if level <= previous:
            if ctrl.is_cutting() and ctrl.mower_healthy():
                self.estimator.estimate_mowing_time(now, level, self.mowing_started, ctrl.planned_end)
        else:
            self.estimator.estimate_charge_time(100 - level, now)

    def handle_command(self, command: str | int, now: datetime) -> None:
        """A command sent to the mower, by us or by anybody else."""
        ctrl = self._controller
        ctrl.planned_end = None

        if command in PARK_COMMANDS:
            _LOGGER.debug("Parking command %s", command)
            if self.mowing_started is not None:
                self.stop_command = True
        elif command == CMD_START_DONT_OVERRIDE:
            pass
        else:
            seconds = command_seconds(command)
            ctrl.planned_end = now + timedelta(seconds=seconds)
            _LOGGER.debug("Mowing command. Planned end is at %s", ctrl.planned_end)

        ctrl.schedule_save()

    def handle_health(self, state: str, error_code: str | None) -> None:
        if state != MOWER_STATE_ERROR:
            return
        if error_code == ERROR_OUTSIDE_WORKING_AREA:
            _LOGGER.warning("Mower is out of working area.")
            self._controller.notify("The lawn mower is outside its working area.")
        else:
            _LOGGER.warning("Mower reports error %s", error_code)
