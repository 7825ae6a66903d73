"""Tests for estimator.py and the countdown timers."""
from datetime import timedelta

import pytest

from custom_components.mower_schedule.const import (
    KEY_REMAINING_CHARGE,
    KEY_REMAINING_CHARGE_STR,
    KEY_REMAINING_MOWING,
    KEY_REMAINING_MOWING_STR,
    TIMER_CHARGE_COUNTDOWN,
)
from custom_components.mower_schedule.estimator import DurationEstimator
from custom_components.mower_schedule.history_store import ChargeCycleSample, HistoryStore, MowCycleSample
from custom_components.mower_schedule.timers import TimerSlots
from custom_components.mower_schedule.types import Horizons
from conftest import VirtualClock, local


class Harness:
    def __init__(self, history):
        self.clock = VirtualClock(local(9))
        self.slots = TimerSlots(self.clock)
        self.horizons = Horizons()
        self.published = {}
        self.start_updates = []
        self.stop_updates = []
        self.estimator = DurationEstimator(
            history,
            self.slots,
            self.horizons,
            self.published.__setitem__,
            self.start_updates.append,
            self.stop_updates.append,
        )


@pytest.fixture
def learned():
    return HistoryStore(
        charge=[ChargeCycleSample(3000, 50), ChargeCycleSample(3600, 60)],
        mow=[MowCycleSample(5400, 40), MowCycleSample(5400, 40), MowCycleSample(1200, 80, stopped=True)],
    )


def test_charge_estimate_publishes_and_counts_down(learned):
    h = Harness(learned)
    seconds = h.estimator.estimate_charge_time(50, h.clock.now)

    assert seconds == pytest.approx(51.5 * 60)
    assert h.published[KEY_REMAINING_CHARGE] == 3090
    assert h.published[KEY_REMAINING_CHARGE_STR] == "51:30"
    assert h.horizons.start_charge == local(9) + timedelta(seconds=3090)
    assert h.start_updates == [local(9)]

    h.clock.advance(10)
    assert h.published[KEY_REMAINING_CHARGE] == 3080
    assert h.published[KEY_REMAINING_CHARGE_STR] == "51:20"


def test_countdown_stops_at_zero(learned):
    h = Harness(learned)
    h.estimator.estimate_charge_time(-1.4, h.clock.now)  # 0.1 % worth: 6 seconds
    h.clock.advance(30)
    assert h.published[KEY_REMAINING_CHARGE] == 0
    assert not h.slots.is_pending(TIMER_CHARGE_COUNTDOWN)


def test_new_estimate_replaces_running_countdown(learned):
    h = Harness(learned)
    h.estimator.estimate_charge_time(50, h.clock.now)
    h.estimator.estimate_charge_time(10, h.clock.now)
    assert len(h.clock.pending()) == 1
    h.clock.advance(1)
    assert h.published[KEY_REMAINING_CHARGE] == int(11.5 * 60) - 1


def test_charge_estimate_without_history():
    h = Harness(HistoryStore())
    assert h.estimator.estimate_charge_time(50, h.clock.now) is None
    assert KEY_REMAINING_CHARGE not in h.published
    assert h.horizons.start_charge is None
    assert h.clock.pending() == []


def test_mowing_estimate(learned):
    h = Harness(learned)
    # Rates: 90, 90 and 60 s/% -> clean average 90; stopped run excluded from end SoC
    remaining = h.estimator.estimate_mowing_time(h.clock.now, 80, local(8, 30))

    assert remaining == pytest.approx(3600)
    assert h.published[KEY_REMAINING_MOWING] == 3600
    assert h.published[KEY_REMAINING_MOWING_STR] == "60:00"
    assert h.horizons.stop_charge == local(10)
    assert h.stop_updates == [local(9)]


def test_mowing_estimate_clamped_to_planned_end(learned):
    h = Harness(learned)
    remaining = h.estimator.estimate_mowing_time(h.clock.now, 80, local(8, 30), planned_end=local(9, 30))
    assert remaining == 0
    assert h.horizons.stop_charge == local(9, 30)
    assert h.published[KEY_REMAINING_MOWING] == 0


def test_mowing_estimate_below_average_end(learned):
    h = Harness(learned)
    assert h.estimator.estimate_mowing_time(h.clock.now, 30, local(8, 30)) == 0


def test_mowing_estimate_requires_run_and_history(learned):
    h = Harness(learned)
    assert h.estimator.estimate_mowing_time(h.clock.now, 80, None) is None
    h = Harness(HistoryStore())
    assert h.estimator.estimate_mowing_time(h.clock.now, 80, local(8, 30)) is None
    assert h.horizons.stop_charge is None


def test_reset_clears_published_values(learned):
    h = Harness(learned)
    h.estimator.estimate_charge_time(50, h.clock.now)
    h.estimator.estimate_mowing_time(h.clock.now, 80, local(8, 30))
    h.estimator.reset_charge()
    h.estimator.reset_mowing()

    assert h.published[KEY_REMAINING_CHARGE] == 0
    assert h.published[KEY_REMAINING_CHARGE_STR] == ""
    assert h.published[KEY_REMAINING_MOWING] == 0
    assert h.published[KEY_REMAINING_MOWING_STR] == ""
    assert h.clock.pending() == []
