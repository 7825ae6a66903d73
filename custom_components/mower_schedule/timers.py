"""Named timer slots: at most one pending callback per kind."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from .const import COUNTDOWN_INTERVAL
from .types import CancelCallback, TimerAction, TimerHost

_LOGGER = logging.getLogger(__name__)


class TimerSlots:
    """Arming a kind always cancels its previous instance first."""

    def __init__(self, host: TimerHost) -> None:
        self._host = host
        self._pending: dict[str, CancelCallback] = {}

    def schedule(self, kind: str, delay: float, action: TimerAction) -> None:
        self.cancel(kind)

        def _fire(now: datetime) -> None:
            self._pending.pop(kind, None)
            action(now)

        self._pending[kind] = self._host.call_later(delay, _fire)

    def cancel(self, kind: str) -> None:
        cancel = self._pending.pop(kind, None)
        if cancel is not None:
            cancel()

    def cancel_all(self) -> None:
        for kind in list(self._pending):
            self.cancel(kind)

    def is_pending(self, kind: str) -> bool:
        return kind in self._pending


class Countdown:
    """
    Publishes a value counting down once per second until zero.
    Restarting replaces the running countdown.
    """

    def __init__(self, slots: TimerSlots, kind: str, on_tick: Callable[[float], None]) -> None:
        self._slots = slots
        self._kind = kind
        self._on_tick = on_tick
        self.remaining: float = 0

    def start(self, seconds: float) -> None:
        self.remaining = max(0, seconds)
        self._on_tick(self.remaining)
        if self.remaining > 0:
            self._slots.schedule(self._kind, COUNTDOWN_INTERVAL, self._tick)
        else:
            self._slots.cancel(self._kind)

    def _tick(self, now: datetime) -> None:
        self.remaining = max(0, self.remaining - COUNTDOWN_INTERVAL)
        self._on_tick(self.remaining)
        if self.remaining > 0:
            self._slots.schedule(self._kind, COUNTDOWN_INTERVAL, self._tick)
        else:
            _LOGGER.debug("Countdown %s finished", self._kind)

    def stop(self) -> None:
        self._slots.cancel(self._kind)
        self.remaining = 0

    @property
    def running(self) -> bool:
        return self._slots.is_pending(self._kind)
