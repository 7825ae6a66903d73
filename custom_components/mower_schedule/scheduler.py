"""Weekly mowing plan evaluation."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from .const import (
    ACTIVITY_OK_CHARGING,
    ACTIVITY_OK_CUTTING,
    ACTIVITY_OK_CUTTING_TIMER_OVERRIDDEN,
    ACTIVITY_OK_LEAVING,
    ACTIVITY_OK_SEARCHING,
    ACTIVITY_PARKED_AUTOTIMER,
    ACTIVITY_PARKED_PARK_SELECTED,
    ACTIVITY_PARKED_TIMER,
    ACTIVITY_PAUSED,
    NEXT_STOP_GRACE,
    REASON_COMPLETE,
    REASON_LOCKED,
    REASON_PAUSE,
    REASON_SCHEDULE,
    RESYNC_THRESHOLD,
    STATE_MOWING,
    STATE_PARK,
    STATE_UNKNOWN,
)
from .time_utils import MINUTES_PER_DAY, at_minute, minute_of_day, minutes_since_midnight, weekday_key
from .types import AstroClock, DaySchedule, Horizons, LockVerdict, ScheduleDecision

_LOGGER = logging.getLogger(__name__)

_OBSERVED_STATES = {
    ACTIVITY_PAUSED: STATE_PARK,
    ACTIVITY_PARKED_TIMER: STATE_PARK,
    ACTIVITY_PARKED_PARK_SELECTED: STATE_PARK,
    ACTIVITY_PARKED_AUTOTIMER: STATE_PARK,
    ACTIVITY_OK_SEARCHING: STATE_PARK,
    ACTIVITY_OK_CUTTING: STATE_MOWING,
    ACTIVITY_OK_CUTTING_TIMER_OVERRIDDEN: STATE_MOWING,
    ACTIVITY_OK_LEAVING: STATE_MOWING,
    ACTIVITY_OK_CHARGING: STATE_MOWING,
}


def observed_state(activity: str | None) -> str:
    """Map a device activity to MOWING, PARK or UNKNOWN."""
    return _OBSERVED_STATES.get(activity or "", STATE_UNKNOWN)


@dataclass(frozen=True)
class DayBounds:
    """A day plan resolved to minutes (relative to that day's midnight)."""
    earliest: int | None
    latest: int | None
    pause_from: int | None
    pause_to: int | None

    @property
    def has_pause(self) -> bool:
        return self.pause_from is not None and self.pause_to is not None


class MowingScheduler:
    """Evaluates the weekly plan. Holds no mutable state."""

    def __init__(self, schedule: dict[str, DaySchedule], astro: AstroClock | None = None) -> None:
        self.schedule = schedule
        self._astro = astro

    def plan_for(self, day: date) -> DaySchedule | None:
        return self.schedule.get(weekday_key(day))

    def resolve(self, plan: DaySchedule, day: date) -> DayBounds:
        pause_from = pause_to = None
        if plan.pause is not None:
            pause_from = minutes_since_midnight(plan.pause.start, day, self._astro)
            pause_to = minutes_since_midnight(plan.pause.end, day, self._astro)
        return DayBounds(
            earliest=minutes_since_midnight(plan.earliest_start, day, self._astro),
            latest=minutes_since_midnight(plan.latest_stop, day, self._astro),
            pause_from=pause_from,
            pause_to=pause_to,
        )

    def next_plan_stop(self, plan: DaySchedule, bounds: DayBounds, now: datetime, accumulated: float) -> datetime:
        """End of today's mowing window: budget, upcoming pause or latest stop."""
        current = minute_of_day(now)
        end = current + plan.mowing_time - accumulated

        if bounds.has_pause and bounds.pause_from > current and bounds.pause_to > current:
            end = min(end, bounds.pause_from)
        if bounds.latest is not None:
            end = min(end, bounds.latest)

        return at_minute(now, end)

    def next_plan_start(self, now: datetime) -> datetime | None:
        """First mowing start within the next 7 days (today included)."""
        current = minute_of_day(now)
        today = now.date()

        for offset in range(7):
            day = today + timedelta(days=offset)
            plan = self.plan_for(day)
            if plan is None or not plan.mowing:
                continue

            bounds = self.resolve(plan, day)
            shift = MINUTES_PER_DAY * offset
            start: int | None = None

            if bounds.has_pause and bounds.pause_from + shift <= current < bounds.pause_to + shift:
                start = bounds.pause_to + shift
            if bounds.earliest is not None and bounds.earliest + shift > current:
                if start is None or bounds.earliest + shift < start:
                    start = bounds.earliest + shift

            if start is not None:
                return at_minute(now, start)

        return None

    def desired_state(self, plan: DaySchedule, bounds: DayBounds, now: datetime, accumulated: float, locked: bool) -> tuple[str, str]:
        """Priority order: day disabled, budget used, lock, window, pause."""
        current = minute_of_day(now)

        if not plan.mowing:
            return STATE_PARK, REASON_SCHEDULE
        if accumulated >= plan.mowing_time:
            return STATE_PARK, REASON_COMPLETE
        if locked:
            return STATE_PARK, REASON_LOCKED
        if (bounds.earliest is not None and current < bounds.earliest) or (
            bounds.latest is not None and current > bounds.latest
        ):
            return STATE_PARK, REASON_SCHEDULE
        if bounds.has_pause and bounds.pause_from <= current <= bounds.pause_to:
            return STATE_PARK, REASON_PAUSE
        return STATE_MOWING, REASON_SCHEDULE

    def evaluate(self, now: datetime, accumulated: float, locked: bool) -> ScheduleDecision | None:
        """Evaluate today's plan. None if no plan exists for today."""
        plan = self.plan_for(now.date())
        if plan is None:
            _LOGGER.warning("Missing plan for %s", weekday_key(now.date()))
            return None

        bounds = self.resolve(plan, now.date())
        desired, reason = self.desired_state(plan, bounds, now, accumulated, locked)
        # A day without mowing has no window to end
        plan_stop = self.next_plan_stop(plan, bounds, now, accumulated) if plan.mowing else None
        return ScheduleDecision(
            desired=desired,
            reason=reason,
            plan_stop=plan_stop,
            plan_start=self.next_plan_start(now),
        )


def _before_plan_stop(value: datetime, plan_stop: datetime | None, now: datetime) -> bool:
    """A start candidate counts unless today's plan stop comes first and is still relevant."""
    if plan_stop is None:
        return True
    return plan_stop > value or plan_stop < now - timedelta(seconds=NEXT_STOP_GRACE)


def merge_next_start(horizons: Horizons, now: datetime, verdict: LockVerdict) -> datetime | None:
    """Latest of the charge, plan and lock start horizons still ahead."""
    if verdict.indefinite:
        return None

    next_start: datetime | None = None
    for source, value in (
        ("charge", horizons.start_charge),
        ("plan", horizons.start_plan),
        ("lock", horizons.start_lock),
    ):
        if value is None or value < now or not _before_plan_stop(value, horizons.stop_plan, now):
            continue
        if next_start is None or value > next_start:
            _LOGGER.debug("Next start from %s: %s", source, value)
            next_start = value
    return next_start


def merge_next_stop(
    horizons: Horizons,
    now: datetime,
    planned_end: datetime | None = None,
    is_mowing: bool = False,
) -> tuple[datetime | None, int | None]:
    """
    Earliest of the charge and plan stop horizons still ahead.

    Also returns the minutes to command when the plan decides the stop and
    the mower is not mowing, or its running command drifted from the plan.
    """
    next_stop: datetime | None = None
    from_plan = False

    if horizons.stop_charge is not None and horizons.stop_charge >= now:
        next_stop = horizons.stop_charge
    if horizons.stop_plan is not None and horizons.stop_plan >= now:
        if next_stop is None or horizons.stop_plan < next_stop:
            next_stop = horizons.stop_plan
            from_plan = True

    if not from_plan or next_stop is None:
        return next_stop, None

    next_secs = (next_stop - now).total_seconds()
    if not is_mowing:
        return next_stop, int(next_secs // 60)

    if planned_end is not None:
        planned_secs = (planned_end - now).total_seconds()
        if planned_secs > 0 and abs(planned_secs - next_secs) > RESYNC_THRESHOLD:
            return next_stop, int(next_secs // 60)

    return next_stop, None
