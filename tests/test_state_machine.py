"""
test_state_machine.py
Telemetry transitions: mowing runs, charge cycles, observed commands and the timer-park override.
"""
from datetime import timedelta

import pytest

from custom_components.mower_schedule.const import (
    CMD_PARK_UNTIL_FURTHER_NOTICE,
    KEY_NEXT_START,
    KEY_NEXT_STOP,
    KEY_REMAINING_CHARGE,
    KEY_REMAINING_CHARGE_STR,
    KEY_REMAINING_MOWING,
    KEY_REMAINING_MOWING_STR,
    TIMER_CHARGE_COUNTDOWN,
    TIMER_MOW_COUNTDOWN,
)
from custom_components.mower_schedule.history_store import ChargeCycleSample, MowCycleSample
from custom_components.mower_schedule.state_machine import command_seconds
from conftest import ACTIVITY, BATTERY_LEVEL, BATTERY_STATE, ERROR_CODE, MOWER_STATE, local


def leave(ctrl, bus):
    bus.set(ACTIVITY, "OK_LEAVING")
    ctrl.handle_activity("OK_LEAVING")


def search(ctrl, bus, soc):
    bus.set(BATTERY_LEVEL, str(soc))
    bus.set(ACTIVITY, "OK_SEARCHING")
    ctrl.handle_activity("OK_SEARCHING")


def test_command_seconds():
    assert command_seconds(3600) == 3600
    assert command_seconds("150") == 120
    assert command_seconds("garbage") == 60


# --- Mowing runs ---

def test_full_run_records_sample(make_controller, bus, clock):
    ctrl = make_controller()
    ctrl.start()
    leave(ctrl, bus)
    clock.advance(90 * 60)
    search(ctrl, bus, 40)

    assert ctrl.history.mow == [MowCycleSample(5400, 40, False)]
    assert ctrl.state_machine.mowing_started is None
    assert ctrl.published[KEY_NEXT_STOP] is None


def test_searching_clears_mowing_countdown(make_controller, bus, clock):
    ctrl = make_controller()
    ctrl.history.add_mow_cycle(MowCycleSample(5400, 40))
    ctrl.start()
    leave(ctrl, bus)
    assert ctrl.published[KEY_REMAINING_MOWING] == 5400
    assert ctrl.published[KEY_REMAINING_MOWING_STR] == "90:00"

    clock.advance(30 * 60)
    search(ctrl, bus, 70)

    assert ctrl.published[KEY_REMAINING_MOWING] == 0
    assert ctrl.published[KEY_REMAINING_MOWING_STR] == ""
    assert not ctrl.slots.is_pending(TIMER_MOW_COUNTDOWN)


def test_short_run_is_not_recorded(make_controller, bus, clock):
    ctrl = make_controller()
    ctrl.start()
    leave(ctrl, bus)
    clock.advance(20 * 60)
    search(ctrl, bus, 80)
    assert ctrl.history.mow == []


def test_park_command_marks_run_stopped(make_controller, bus, clock):
    ctrl = make_controller()
    ctrl.start()
    leave(ctrl, bus)
    clock.advance(60 * 60)
    ctrl.handle_command("PARK_UNTIL_NEXT_TASK")
    clock.advance(60)
    search(ctrl, bus, 55)

    assert ctrl.history.mow == [MowCycleSample(3660, 55, True)]


def test_passed_deadline_marks_run_stopped(make_controller, bus, clock):
    ctrl = make_controller()
    ctrl.start()
    ctrl.handle_command(3600)
    assert ctrl.planned_end == local(10)

    leave(ctrl, bus)
    clock.advance(4000)
    search(ctrl, bus, 50)

    assert ctrl.history.mow[-1].stopped is True
    assert ctrl.planned_end is None


def test_start_dont_override_clears_deadline(make_controller):
    ctrl = make_controller()
    ctrl.handle_command(3600)
    ctrl.handle_command("START_DONT_OVERRIDE")
    assert ctrl.planned_end is None


def test_leaving_clears_charge_prediction(make_controller, bus, clock):
    ctrl = make_controller()
    ctrl.history.add_charge_cycle(ChargeCycleSample(3000, 50))
    ctrl.start()
    bus.set(BATTERY_LEVEL, "60")
    ctrl.handle_battery_state("CHARGING", "OK")
    assert ctrl.horizons.start_charge is not None

    leave(ctrl, bus)
    assert ctrl.horizons.start_charge is None
    assert ctrl.published[KEY_REMAINING_CHARGE] == 0
    assert ctrl.published[KEY_NEXT_START] is None


def test_battery_drop_while_cutting_updates_estimate(make_controller, bus, clock):
    ctrl = make_controller()
    for _ in range(3):
        ctrl.history.add_mow_cycle(MowCycleSample(5400, 40))
    ctrl.start()
    leave(ctrl, bus)
    assert ctrl.published[KEY_REMAINING_MOWING] == 5400

    clock.advance(300)
    bus.set(ACTIVITY, "OK_CUTTING")
    bus.set(BATTERY_LEVEL, "70")
    ctrl.handle_battery_level("70", "71")

    assert ctrl.published[KEY_REMAINING_MOWING] == 2700
    assert ctrl.published[KEY_NEXT_STOP] == clock.now + timedelta(seconds=2700)


def test_battery_drop_ignored_when_unhealthy(make_controller, bus, clock):
    ctrl = make_controller()
    ctrl.history.add_mow_cycle(MowCycleSample(5400, 40))
    ctrl.start()
    leave(ctrl, bus)
    bus.set(ACTIVITY, "OK_CUTTING")
    bus.set(MOWER_STATE, "ERROR")
    ctrl.handle_battery_level("70", "71")
    assert ctrl.published[KEY_REMAINING_MOWING] == 5400


# --- Charge cycles ---

def test_full_charge_records_sample(make_controller, bus, clock):
    ctrl = make_controller()
    ctrl.start()
    bus.set(BATTERY_LEVEL, "30")
    bus.set(BATTERY_STATE, "CHARGING")
    ctrl.handle_battery_state("CHARGING", "OK")

    clock.advance(5400)
    bus.set(BATTERY_LEVEL, "100")
    ctrl.handle_battery_state("OK", "CHARGING")

    assert ctrl.history.charge == [ChargeCycleSample(5400, 70)]


@pytest.mark.parametrize("start_soc, end_soc", [(30, 97), (60, 100)])
def test_unrepresentative_charge_is_discarded(make_controller, bus, clock, start_soc, end_soc):
    ctrl = make_controller()
    ctrl.start()
    bus.set(BATTERY_LEVEL, str(start_soc))
    ctrl.handle_battery_state("CHARGING", "OK")
    clock.advance(3600)
    bus.set(BATTERY_LEVEL, str(end_soc))
    ctrl.handle_battery_state("OK", "CHARGING")
    assert ctrl.history.charge == []


def test_charge_discarded_at_97_clears_countdown(make_controller, bus, clock):
    ctrl = make_controller()
    ctrl.history.add_charge_cycle(ChargeCycleSample(3000, 50))
    ctrl.start()
    bus.set(BATTERY_LEVEL, "30")
    ctrl.handle_battery_state("CHARGING", "OK")
    assert ctrl.published[KEY_REMAINING_CHARGE] > 0

    clock.advance(3600)
    bus.set(BATTERY_LEVEL, "97")
    ctrl.handle_battery_state("OK", "CHARGING")

    assert ctrl.history.charge == [ChargeCycleSample(3000, 50)]
    assert ctrl.published[KEY_REMAINING_CHARGE] == 0
    assert ctrl.published[KEY_REMAINING_CHARGE_STR] == ""
    assert not ctrl.slots.is_pending(TIMER_CHARGE_COUNTDOWN)
    assert ctrl.state_machine.charging_started is None


def test_charge_estimate_and_rising_level(make_controller, bus, clock):
    ctrl = make_controller()
    ctrl.history.add_charge_cycle(ChargeCycleSample(3000, 50))
    ctrl.start()
    bus.set(BATTERY_LEVEL, "30")
    ctrl.handle_battery_state("CHARGING", "OK")

    assert ctrl.published[KEY_REMAINING_CHARGE] == int(71.5 * 60)
    assert ctrl.published[KEY_NEXT_START] == local(9) + timedelta(seconds=71.5 * 60)

    clock.advance(120)
    ctrl.handle_battery_level("31", "30")
    assert ctrl.published[KEY_REMAINING_CHARGE] == int(70.5 * 60)


def test_charge_ok_without_charging_is_ignored(make_controller, bus):
    ctrl = make_controller()
    ctrl.start()
    ctrl.handle_battery_state("OK", None)
    assert ctrl.history.charge == []


# --- Timer park override ---

def test_timer_park_is_overridden(make_controller, bus, clock, actuator):
    clock.now = local(21)
    ctrl = make_controller(schedule_active=True)
    ctrl.start()
    assert actuator.commands == []

    bus.set(ACTIVITY, "PARKED_TIMER")
    ctrl.handle_activity("PARKED_TIMER")
    clock.advance(9)
    assert actuator.commands == []
    clock.advance(1)
    assert actuator.commands == [CMD_PARK_UNTIL_FURTHER_NOTICE]


def test_timer_park_override_cancelled_by_next_activity(make_controller, bus, clock, actuator):
    clock.now = local(21)
    ctrl = make_controller(schedule_active=True)
    ctrl.start()
    ctrl.handle_activity("PARKED_TIMER")
    clock.advance(5)
    ctrl.handle_activity("OK_CUTTING")
    clock.advance(10)
    assert actuator.commands == []


def test_timer_park_kept_without_active_schedule(make_controller, clock, actuator):
    ctrl = make_controller(schedule_active=False)
    ctrl.start()
    ctrl.handle_activity("PARKED_TIMER")
    clock.advance(30)
    assert actuator.commands == []


# --- Health ---

def test_outside_working_area_notifies(make_controller, bus, notes):
    ctrl = make_controller()
    bus.set(ERROR_CODE, "OUTSIDE_WORKING_AREA")
    ctrl.handle_health("ERROR")
    assert notes == ["The lawn mower is outside its working area."]


def test_other_errors_only_log(make_controller, bus, notes, caplog):
    ctrl = make_controller()
    bus.set(ERROR_CODE, "TRAPPED")
    ctrl.handle_health("ERROR")
    ctrl.handle_health("OK")
    assert notes == []
    assert "TRAPPED" in caplog.text


def test_no_notification_without_targets(make_controller, bus, notes):
    ctrl = make_controller(notify=[])
    bus.set(ERROR_CODE, "OUTSIDE_WORKING_AREA")
    ctrl.handle_health("ERROR")
    assert notes == []
