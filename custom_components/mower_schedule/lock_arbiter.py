"""Lock arbitration over external trigger entities."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable

from .history_store import decode_blob, format_timestamp, parse_timestamp
from .types import BusState, ComparisonMode, LockRule, LockVerdict

_LOGGER = logging.getLogger(__name__)

_TRUE_STATES = ("on", "true", "yes")
_FALSE_STATES = ("off", "false", "no")


@dataclass
class LockState:
    """Per-trigger state: False, True (no release yet) or a release time."""
    active: bool | datetime = False
    since: datetime | None = None

    def to_dict(self) -> dict:
        state = format_timestamp(self.active) if isinstance(self.active, datetime) else self.active
        return {"state": state, "since": format_timestamp(self.since)}

    @classmethod
    def from_dict(cls, raw: Any) -> LockState:
        if not isinstance(raw, dict):
            return cls()
        state = raw.get("state", False)
        if isinstance(state, bool):
            active: bool | datetime = state
        else:
            active = parse_timestamp(state) or False
        return cls(active=active, since=parse_timestamp(raw.get("since")))


def _normalize(value: Any) -> Any:
    """Make bus strings comparable with configured values."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().lower()
    if text in _TRUE_STATES:
        return True
    if text in _FALSE_STATES:
        return False
    try:
        return float(text)
    except ValueError:
        return text


def trigger_active(rule: LockRule, value: Any) -> bool:
    """Check a trigger value against the rule."""
    if value is None:
        return False

    if rule.comparison is ComparisonMode.EQUAL:
        return _normalize(value) == _normalize(rule.value)

    try:
        current = float(value)
        threshold = float(rule.value)
    except (TypeError, ValueError):
        _LOGGER.debug("Trigger %s value %r is not numeric", rule.trigger, value)
        return False

    if rule.comparison is ComparisonMode.LESS_THAN:
        return current < threshold
    return current > threshold


class LockArbiter:
    """Combines all lock rules into a single locked-until verdict."""

    def __init__(self, rules: list[LockRule], states: dict[str, LockState] | None = None) -> None:
        self.rules = rules
        self.states: dict[str, LockState] = states or {}
        self.verdict = LockVerdict()

    @classmethod
    def from_storage(cls, rules: list[LockRule], raw: Any) -> LockArbiter:
        data = decode_blob(raw, dict) or {}
        triggers = {rule.trigger for rule in rules}
        states = {}
        for key, value in data.items():
            if str(key) not in triggers:
                _LOGGER.debug("Dropping stored state of unconfigured LockTrigger %s", key)
                continue
            states[str(key)] = LockState.from_dict(value)
        return cls(rules, states)

    def to_dict(self) -> dict:
        return {key: state.to_dict() for key, state in self.states.items()}

    def evaluate(self, read_state: Callable[[str], BusState | None], now: datetime) -> LockVerdict:
        """Update every rule from its trigger, then combine."""
        for rule in self.rules:
            self._update_rule(rule, read_state(rule.trigger), now)

        self.verdict = self._combine(now)
        return self.verdict

    def _update_rule(self, rule: LockRule, bus_state: BusState | None, now: datetime) -> None:
        state = self.states.setdefault(rule.trigger, LockState())

        if bus_state is None:
            _LOGGER.debug("LockTrigger %s has no state, treating as inactive", rule.trigger)
            value = None
            changed = now
        else:
            value = bus_state.value
            changed = bus_state.last_changed

        active = trigger_active(rule, value)
        _LOGGER.debug("LockTrigger %s is %s -> %s", rule.trigger, value, active)

        if active:
            if state.active is not True:
                _LOGGER.info("LockTrigger %s is now active since %s.", rule.trigger, changed)
            state.active = True
            state.since = changed
            return

        if state.active is not True:
            return

        if not rule.release_delay:
            state.active = False
            _LOGGER.info("LockTrigger %s will release now.", rule.trigger)
            return

        if rule.release_delay_multiplier:
            held = changed - state.since if state.since else timedelta(0)
            release = changed + max(held, timedelta(0)) * float(rule.release_delay)
        else:
            release = changed + timedelta(minutes=float(rule.release_delay))
        state.active = release
        _LOGGER.info("LockTrigger %s will release at %s.", rule.trigger, release)

    def _combine(self, now: datetime) -> LockVerdict:
        indefinite = False
        until: datetime | None = None

        for key, state in self.states.items():
            if state.active is True:
                indefinite = True
            elif isinstance(state.active, datetime) and state.active > now:
                if until is None or state.active > until:
                    until = state.active
            elif state.active is not False:
                _LOGGER.debug("LockTrigger %s released.", key)
                state.active = False
                state.since = now

        if indefinite:
            return LockVerdict(locked=True, until=None)
        if until is not None:
            return LockVerdict(locked=True, until=until)
        return LockVerdict()
