"""Controller aggregate owning all mower scheduling state."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable

from .config import MowerConfig
from .const import (
    ATTR_LOCK_STATES,
    ATTR_PLANNED_END,
    ATTR_STOP_REQUESTED,
    BATTERY_CHARGING,
    CMD_PARK_UNTIL_FURTHER_NOTICE,
    CUTTING_ACTIVITIES,
    EVALUATE_INTERVAL,
    KEY_CHARGE_SAMPLES,
    KEY_LOCK_STATES,
    KEY_LOCKED,
    KEY_LOCKED_UNTIL,
    KEY_MOW_SAMPLES,
    KEY_STOP_REQUESTED,
    KEY_MOWING_TIME_TODAY,
    KEY_NEXT_START,
    KEY_NEXT_STOP,
    KEY_SCHEDULE_REASON,
    KEY_SCHEDULE_STATE,
    LOCKED_INDEFINITE,
    MANUAL_STOP_TRIGGER,
    MOWER_STATE_OK,
    SAVE_DELAY,
    SHUTDOWN_GRACE,
    STATE_MOWING,
    STATE_PARK,
    STATE_UNKNOWN,
    TIMER_EVALUATE,
)
from .estimator import DurationEstimator
from .history_store import HistoryStore, format_timestamp, parse_timestamp
from .lock_arbiter import LockArbiter
from .scheduler import MowingScheduler, merge_next_start, merge_next_stop, observed_state
from .state_machine import MowerStateMachine
from .timers import TimerSlots
from .types import (
    Actuator,
    AstroClock,
    BusState,
    ComparisonMode,
    HistoryStorage,
    Horizons,
    LockRule,
    LockVerdict,
    Notifier,
    StateBus,
    TimerHost,
)

_LOGGER = logging.getLogger(__name__)

MANUAL_STOP_RULE = LockRule(trigger=MANUAL_STOP_TRIGGER, value=True, comparison=ComparisonMode.EQUAL)


class MowerController:
    """
    Owns histories, horizons, lock states and timers.

    Lifecycle: `async_initialize` (load persisted state) -> `start` (first
    evaluation, periodic loop) -> `async_shutdown` (cancel timers, flush).
    Telemetry enters through one `handle_*` method per key.
    """

    def __init__(
        self,
        config: MowerConfig,
        bus: StateBus,
        actuator: Actuator,
        timers: TimerHost,
        store: HistoryStorage,
        astro: AstroClock | None = None,
        clock: Callable[[], datetime] | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.config = config
        self._bus = bus
        self._actuator = actuator
        self._store = store
        self._clock = clock or (lambda: datetime.now().astimezone())
        self._notifier = notifier

        self.slots = TimerSlots(timers)
        self.horizons = Horizons()
        self.published: dict[str, Any] = {}

        self.history = HistoryStore()
        self.lock_arbiter = LockArbiter(self._lock_rules())
        self.scheduler = MowingScheduler(config.schedule, astro)
        self.estimator = self._build_estimator()
        self.state_machine = MowerStateMachine(self)

        self.planned_end: datetime | None = None
        self.stop_requested = False
        self.stop_changed_at: datetime | None = None
        self.verdict = LockVerdict()
        self.decision = None
        self._running = False

    def _lock_rules(self) -> list[LockRule]:
        return [MANUAL_STOP_RULE, *self.config.locks]

    def _build_estimator(self) -> DurationEstimator:
        return DurationEstimator(
            self.history,
            self.slots,
            self.horizons,
            self.publish,
            self.update_next_start,
            self.update_next_stop,
        )

    # --- Persistence ---

    async def async_initialize(self) -> None:
        """Load learned data from storage."""
        data = None
        try:
            data = await self._store.async_load()
        except Exception:
            _LOGGER.exception("Failed loading mower history, starting empty")

        if data is not None and not isinstance(data, dict):
            _LOGGER.warning("Unexpected stored data %s, starting empty", type(data).__name__)
            data = None
        data = data or {}

        self.history = HistoryStore.from_storage(data)
        self.lock_arbiter = LockArbiter.from_storage(self._lock_rules(), data.get(ATTR_LOCK_STATES))
        self.estimator = self._build_estimator()

        self.stop_requested = bool(data.get(ATTR_STOP_REQUESTED, False))
        now = self._clock()
        self.stop_changed_at = now

        self.planned_end = parse_timestamp(data.get(ATTR_PLANNED_END))
        if self.planned_end is not None and self.planned_end <= now:
            _LOGGER.debug("Dropping past planned mowing end %s", self.planned_end)
            self.planned_end = None
            self.schedule_save()

        _LOGGER.info(
            "Mower history read: %d charging, %d mowing entries.",
            len(self.history.charge), len(self.history.mow),
        )

    def data_for_storage(self) -> dict:
        data = self.history.to_dict()
        data.update({
            ATTR_LOCK_STATES: self.lock_arbiter.to_dict(),
            ATTR_PLANNED_END: format_timestamp(self.planned_end),
            ATTR_STOP_REQUESTED: self.stop_requested,
        })
        return data

    def schedule_save(self) -> None:
        """Coalesce writes of the history document."""
        self._store.async_delay_save(self.data_for_storage, SAVE_DELAY)

    async def _async_save(self) -> None:
        try:
            await self._store.async_save(self.data_for_storage())
        except Exception as err:
            _LOGGER.error("Failed to save mower history: %s", err)

    # --- Lifecycle ---

    def start(self) -> None:
        """Restore running cycles and begin the evaluation loop."""
        now = self._clock()
        self._running = True
        self.estimator.reset_charge()
        self.estimator.reset_mowing()

        battery = self._value(self.config.battery_state_entity)
        if battery == BATTERY_CHARGING:
            _LOGGER.debug("Mower is charging at start, soc is %s%%.", self.battery_level())
            self.state_machine.start_charging(now)

        activity = self._bus_state(self.config.activity_entity)
        if activity is not None and self.is_cutting() and self.mower_healthy():
            self.state_machine.mowing_started = activity.last_changed
            self.estimator.estimate_mowing_time(now, self.battery_level(), activity.last_changed, self.planned_end)

        self.evaluate(now)

    async def async_shutdown(self) -> None:
        """Stop timers and flush state within the grace window."""
        self._running = False
        self.slots.cancel_all()
        try:
            await asyncio.wait_for(self._async_save(), timeout=SHUTDOWN_GRACE)
        except asyncio.TimeoutError:
            _LOGGER.warning("Saving mower history did not finish within %.0fs", SHUTDOWN_GRACE)

    def snapshot(self) -> dict[str, Any]:
        """Published values plus controller state for the entities."""
        data = dict(self.published)
        data.update({
            KEY_STOP_REQUESTED: self.stop_requested,
            KEY_LOCKED: self.verdict.locked,
            KEY_LOCK_STATES: self.lock_arbiter.to_dict(),
            KEY_CHARGE_SAMPLES: len(self.history.charge),
            KEY_MOW_SAMPLES: len(self.history.mow),
        })
        return data

    # --- Bus helpers ---

    def publish(self, key: str, value: Any) -> None:
        self.published[key] = value
        self._bus.publish(key, value)

    def notify(self, message: str) -> None:
        if self._notifier is not None and self.config.notify:
            self._notifier(message)

    def send_command(self, command: str | int, now: datetime | None = None) -> None:
        """Fire-and-forget command; recorded like any observed command."""
        now = now or self._clock()
        _LOGGER.debug("Sending command %s", command)
        self._actuator.send_command(command)
        self.state_machine.handle_command(command, now)

    def _bus_state(self, key: str | None) -> BusState | None:
        if not key:
            return None
        return self._bus.get_state(key)

    def _value(self, key: str | None) -> Any:
        state = self._bus_state(key)
        return state.value if state is not None else None

    def battery_level(self) -> float | None:
        value = self._value(self.config.battery_level_entity)
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    def activity(self) -> str | None:
        value = self._value(self.config.activity_entity)
        return str(value) if value is not None else None

    def is_cutting(self) -> bool:
        return self.activity() in CUTTING_ACTIVITIES

    def mower_healthy(self) -> bool:
        if not self.config.mower_state_entity:
            return True
        return self._value(self.config.mower_state_entity) == MOWER_STATE_OK

    def _read_trigger(self, key: str) -> BusState | None:
        if key == MANUAL_STOP_TRIGGER:
            return BusState(self.stop_requested, self.stop_changed_at or self._clock())
        return self._bus.get_state(key)

    # --- Horizons ---

    def update_next_start(self, now: datetime | None = None) -> datetime | None:
        now = now or self._clock()
        next_start = merge_next_start(self.horizons, now, self.verdict)
        self.publish(KEY_NEXT_START, next_start)
        return next_start

    def update_next_stop(self, now: datetime | None = None, is_mowing: bool = False) -> int | None:
        """Publish the merged stop; returns minutes to command, if any."""
        now = now or self._clock()
        next_stop, minutes = merge_next_stop(self.horizons, now, self.planned_end, is_mowing)
        self.publish(KEY_NEXT_STOP, next_stop)
        return minutes

    # --- Evaluation loop ---

    def evaluate(self, now: datetime | None = None) -> None:
        """Lock arbitration chained into the schedule, re-armed every 60 s."""
        now = now or self._clock()
        if self._running:
            self.slots.schedule(TIMER_EVALUATE, EVALUATE_INTERVAL, self.evaluate)

        locks_before = self.lock_arbiter.to_dict()
        self.verdict = self.lock_arbiter.evaluate(self._read_trigger, now)
        if self.lock_arbiter.to_dict() != locks_before:
            self.schedule_save()

        self.horizons.start_lock = self.verdict.until if self.verdict.locked else None
        self.update_next_start(now)

        if self.config.schedule_active:
            self._run_schedule(now)

        if self.verdict.indefinite:
            self.publish(KEY_LOCKED_UNTIL, LOCKED_INDEFINITE)
        else:
            self.publish(KEY_LOCKED_UNTIL, self.verdict.until)

    def _run_schedule(self, now: datetime) -> None:
        observed = observed_state(self.activity())
        mowing_today = self.history.mowing_today
        counted = (mowing_today.day, mowing_today.minutes)
        mowing_today.accumulate(now, observed == STATE_MOWING)
        self.publish(KEY_MOWING_TIME_TODAY, round(mowing_today.minutes, 1))
        if (mowing_today.day, mowing_today.minutes) != counted:
            self.schedule_save()

        decision = self.scheduler.evaluate(now, mowing_today.minutes, self.verdict.locked)
        self.decision = decision
        if decision is None:
            self.publish(KEY_SCHEDULE_STATE, "")
            self.publish(KEY_SCHEDULE_REASON, "")
            return

        self.horizons.stop_plan = decision.plan_stop
        self.update_next_stop(now)
        self.horizons.start_plan = decision.plan_start
        self.update_next_start(now)

        self.publish(KEY_SCHEDULE_STATE, decision.desired)
        self.publish(KEY_SCHEDULE_REASON, decision.reason)

        if observed == STATE_UNKNOWN:
            _LOGGER.debug("Cannot get current state (maybe ERROR?), so not changing anything.")
            return

        _LOGGER.debug("Plan: current state: %s, desired state: %s", observed, decision.desired)
        if decision.desired == STATE_MOWING:
            minutes = self.update_next_stop(now, is_mowing=observed == STATE_MOWING)
            if minutes is not None and minutes > 0:
                _LOGGER.info("Sending / correcting command for mowing to %d min", minutes)
                self.send_command(minutes * 60, now)
        elif decision.desired == STATE_PARK and observed != STATE_PARK:
            _LOGGER.info("Sending park command because of reason %s", decision.reason)
            self.send_command(CMD_PARK_UNTIL_FURTHER_NOTICE, now)

    # --- Telemetry entry points ---

    def handle_activity(self, activity: str, now: datetime | None = None) -> None:
        self.state_machine.handle_activity(activity, now or self._clock())

    def handle_battery_state(self, state: str, previous: str | None, now: datetime | None = None) -> None:
        self.state_machine.handle_battery_state(state, previous, now or self._clock())

    def handle_battery_level(self, level: Any, previous: Any, now: datetime | None = None) -> None:
        try:
            level = float(level)
        except (TypeError, ValueError):
            return
        try:
            previous = float(previous)
        except (TypeError, ValueError):
            previous = None
        self.state_machine.handle_battery_level(level, previous, now or self._clock())

    def handle_command(self, command: str | int, now: datetime | None = None) -> None:
        self.state_machine.handle_command(command, now or self._clock())

    def handle_health(self, state: str, now: datetime | None = None) -> None:
        self.state_machine.handle_health(state, self._value(self.config.error_code_entity))

    def handle_trigger_change(self, now: datetime | None = None) -> None:
        self.evaluate(now)

    def set_stop_requested(self, requested: bool, now: datetime | None = None) -> None:
        """Latch the manual stop switch; it acts as an always-on lock rule."""
        now = now or self._clock()
        if requested == self.stop_requested:
            return
        self.stop_requested = requested
        self.stop_changed_at = now
        if requested and self.state_machine.mowing_started is not None:
            self.state_machine.stop_command = True
        _LOGGER.info("Manual stop %s", "requested" if requested else "released")
        self.schedule_save()
        self.evaluate(now)
