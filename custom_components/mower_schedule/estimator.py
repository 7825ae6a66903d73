"""Charge and mowing duration estimation from learned cycles."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable

from .const import (
    CHARGE_TAPER_PADDING,
    KEY_REMAINING_CHARGE,
    KEY_REMAINING_CHARGE_STR,
    KEY_REMAINING_MOWING,
    KEY_REMAINING_MOWING_STR,
    TIMER_CHARGE_COUNTDOWN,
    TIMER_MOW_COUNTDOWN,
)
from .history_store import HistoryStore
from .time_utils import clean_average, format_minutes_seconds
from .timers import Countdown, TimerSlots
from .types import Horizons

_LOGGER = logging.getLogger(__name__)


class DurationEstimator:
    """
    Turns the cycle history into remaining-time predictions.

    Each estimate publishes the remaining seconds, starts a 1 Hz countdown
    and moves the charge-driven horizon, then lets the owner re-merge the
    published next start / next stop.
    """

    def __init__(
        self,
        history: HistoryStore,
        slots: TimerSlots,
        horizons: Horizons,
        publish: Callable[[str, Any], None],
        on_start_horizon: Callable[[datetime], None],
        on_stop_horizon: Callable[[datetime], None],
    ) -> None:
        self.history = history
        self.horizons = horizons
        self._publish = publish
        self._on_start_horizon = on_start_horizon
        self._on_stop_horizon = on_stop_horizon
        self._charge_countdown = Countdown(slots, TIMER_CHARGE_COUNTDOWN, self._publish_charge)
        self._mow_countdown = Countdown(slots, TIMER_MOW_COUNTDOWN, self._publish_mowing)

    def _publish_charge(self, seconds: float) -> None:
        self._publish(KEY_REMAINING_CHARGE, int(seconds))
        self._publish(KEY_REMAINING_CHARGE_STR, format_minutes_seconds(seconds))

    def _publish_mowing(self, seconds: float) -> None:
        self._publish(KEY_REMAINING_MOWING, int(seconds))
        self._publish(KEY_REMAINING_MOWING_STR, format_minutes_seconds(seconds))

    @property
    def remaining_charge(self) -> float:
        return self._charge_countdown.remaining

    @property
    def remaining_mowing(self) -> float:
        return self._mow_countdown.remaining

    def estimate_charge_time(self, needed_soc: float, now: datetime) -> float | None:
        """Predict the seconds until the battery is full."""
        self._charge_countdown.stop()
        if not self.history.charge:
            _LOGGER.debug("Cannot calc charging time, no history.")
            return None

        rates = self.history.charge_rates()
        avg_rate = clean_average(rates)
        if avg_rate is None:
            _LOGGER.debug("No clean average for %s found.", rates)
            return None

        charge_seconds = (needed_soc + CHARGE_TAPER_PADDING) * avg_rate
        _LOGGER.debug("Charge time calculated is %.0f seconds (avg %.2f s/%%).", charge_seconds, avg_rate)

        self._charge_countdown.start(charge_seconds)
        self.horizons.start_charge = now + timedelta(seconds=charge_seconds)
        self._on_start_horizon(now)
        return charge_seconds

    def estimate_mowing_time(
        self,
        now: datetime,
        current_soc: float | None,
        mowing_started: datetime | None,
        planned_end: datetime | None = None,
    ) -> float | None:
        """Predict the seconds until the mower heads back to charge."""
        self._mow_countdown.stop()
        if not self.history.mow or mowing_started is None:
            return None
        if current_soc is None:
            _LOGGER.debug("Battery level unknown, skipping mowing estimate.")
            return None

        rates = self.history.mow_rates()
        end_socs = self.history.end_socs()
        avg_rate = clean_average(rates)
        avg_end_soc = clean_average(end_socs)

        if avg_rate is None:
            _LOGGER.debug("Could not get clean avg mowing rate: %s", rates)
            return None
        if avg_end_soc is None:
            _LOGGER.debug("Could not get clean avg end SoC: %s", end_socs)
            return None

        _LOGGER.debug(
            "avg mowing rate %.1f s/%%, avg end SoC %.1f%%, mowing since %.0f s",
            avg_rate, avg_end_soc, (now - mowing_started).total_seconds(),
        )

        remaining = max(0.0, (current_soc - avg_end_soc) * avg_rate)
        mowing_end = now + timedelta(seconds=remaining)
        if planned_end is not None and mowing_end > planned_end:
            _LOGGER.debug("Planned mowing end is before next charging is needed.")
            mowing_end = planned_end
            remaining = 0.0

        self._mow_countdown.start(remaining)
        self.horizons.stop_charge = mowing_end
        self._on_stop_horizon(now)
        return remaining

    def reset_charge(self) -> None:
        """Stop the charge countdown and clear the published values."""
        self._charge_countdown.stop()
        self._publish(KEY_REMAINING_CHARGE, 0)
        self._publish(KEY_REMAINING_CHARGE_STR, "")

    def reset_mowing(self) -> None:
        """Stop the mowing countdown and clear the published values."""
        self._mow_countdown.stop()
        self._publish(KEY_REMAINING_MOWING, 0)
        self._publish(KEY_REMAINING_MOWING_STR, "")
