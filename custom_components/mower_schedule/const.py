"""Constants for the Mower Schedule integration."""
from typing import Final

DOMAIN: Final = "mower_schedule"
DEFAULT_NAME: Final = "Mower schedule"
VERSION = "1.2.0"

PLATFORMS: Final = ["sensor", "binary_sensor", "switch"]

# Config keys
CONF_ACTIVITY: Final = "activity_entity"
CONF_MOWER_STATE: Final = "mower_state_entity"
CONF_ERROR_CODE: Final = "error_code_entity"
CONF_BATTERY_STATE: Final = "battery_state_entity"
CONF_BATTERY_LEVEL: Final = "battery_level_entity"
CONF_COMMAND_ENTITY: Final = "command_entity"
CONF_COMMAND_SERVICE: Final = "command_service"
CONF_SCHEDULE_ACTIVE: Final = "schedule_active"
CONF_SCHEDULE: Final = "schedule"
CONF_LOCKS: Final = "locks"
CONF_NOTIFY: Final = "notify"
CONF_DEBUG: Final = "debug"

# Options flow fields
CONF_DAY: Final = "day"
CONF_PAUSE_FROM: Final = "pause_from"
CONF_PAUSE_TO: Final = "pause_to"
CONF_REMOVE: Final = "remove"

# Day plan keys
CONF_MOWING: Final = "mowing"
CONF_MOWING_TIME: Final = "mowing_time"
CONF_EARLIEST_START: Final = "earliest_start"
CONF_LATEST_STOP: Final = "latest_stop"
CONF_PAUSE: Final = "pause"
CONF_FROM: Final = "from"
CONF_TO: Final = "to"

# Lock rule keys
CONF_TRIGGER: Final = "trigger"
CONF_TRIGGER_VALUE: Final = "value"
CONF_COMPARISON: Final = "comparison"
CONF_RELEASE_DELAY: Final = "release_delay"
CONF_RELEASE_MULTIPLIER: Final = "release_delay_multiplier"

WEEKDAYS: Final = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

SUNRISE: Final = "sunrise"
SUNSET: Final = "sunset"

# Defaults
DEFAULT_MOWING_TIME: Final = 450
DEFAULT_EARLIEST_START: Final = SUNRISE
DEFAULT_LATEST_STOP: Final = SUNSET
DEFAULT_COMMAND_SERVICE: Final = "script.mower_command"

# Mower activity values reported by the device
ACTIVITY_OK_CUTTING: Final = "OK_CUTTING"
ACTIVITY_OK_CUTTING_TIMER_OVERRIDDEN: Final = "OK_CUTTING_TIMER_OVERRIDDEN"
ACTIVITY_OK_LEAVING: Final = "OK_LEAVING"
ACTIVITY_OK_CHARGING: Final = "OK_CHARGING"
ACTIVITY_OK_SEARCHING: Final = "OK_SEARCHING"
ACTIVITY_PAUSED: Final = "PAUSED"
ACTIVITY_PARKED_TIMER: Final = "PARKED_TIMER"
ACTIVITY_PARKED_PARK_SELECTED: Final = "PARKED_PARK_SELECTED"
ACTIVITY_PARKED_AUTOTIMER: Final = "PARKED_AUTOTIMER"
ACTIVITY_NONE: Final = "NONE"

# Activities counted as "the mower is out cutting" (battery drain signal)
CUTTING_ACTIVITIES: Final = frozenset({
    ACTIVITY_OK_CUTTING,
    ACTIVITY_OK_CUTTING_TIMER_OVERRIDDEN,
    ACTIVITY_OK_LEAVING,
})

MOWER_STATE_OK: Final = "OK"
MOWER_STATE_ERROR: Final = "ERROR"
ERROR_OUTSIDE_WORKING_AREA: Final = "OUTSIDE_WORKING_AREA"

BATTERY_CHARGING: Final = "CHARGING"
BATTERY_OK: Final = "OK"

# Actuator commands
CMD_PARK_UNTIL_FURTHER_NOTICE: Final = "PARK_UNTIL_FURTHER_NOTICE"
CMD_PARK_UNTIL_NEXT_TASK: Final = "PARK_UNTIL_NEXT_TASK"
CMD_START_DONT_OVERRIDE: Final = "START_DONT_OVERRIDE"
PARK_COMMANDS: Final = frozenset({CMD_PARK_UNTIL_FURTHER_NOTICE, CMD_PARK_UNTIL_NEXT_TASK})

# Desired / observed states and reasons
STATE_MOWING: Final = "MOWING"
STATE_PARK: Final = "PARK"
STATE_UNKNOWN: Final = "UNKNOWN"

REASON_SCHEDULE: Final = "SCHEDULE"
REASON_LOCKED: Final = "LOCKED"
REASON_PAUSE: Final = "PAUSE"
REASON_COMPLETE: Final = "COMPLETE"

LOCKED_INDEFINITE: Final = "indefinite"

# Published keys
KEY_SCHEDULE_STATE: Final = "schedule_state"
KEY_SCHEDULE_REASON: Final = "schedule_reason"
KEY_NEXT_START: Final = "next_start"
KEY_NEXT_STOP: Final = "next_stop"
KEY_LOCKED_UNTIL: Final = "locked_until"
KEY_REMAINING_CHARGE: Final = "remaining_charge_time"
KEY_REMAINING_CHARGE_STR: Final = "remaining_charge_time_str"
KEY_REMAINING_MOWING: Final = "remaining_mowing_time"
KEY_REMAINING_MOWING_STR: Final = "remaining_mowing_time_str"
KEY_MOWING_TIME_TODAY: Final = "mowing_time_today"

# Built-in lock rule fed by the stop switch
MANUAL_STOP_TRIGGER: Final = f"{DOMAIN}.stop_mowing"

# Storage
STORAGE_VERSION: Final = 2
STORAGE_KEY_TEMPLATE: Final = DOMAIN + ".history.{}"
SAVE_DELAY: Final = 10.0
SHUTDOWN_GRACE: Final = 3.0

ATTR_CHARGE_HISTORY: Final = "charge_history"
ATTR_MOW_HISTORY: Final = "mow_history"
ATTR_MOWING_TIME_DAY: Final = "mowing_time_day"
ATTR_LOCK_STATES: Final = "lock_states"
ATTR_PLANNED_END: Final = "planned_end"
ATTR_STOP_REQUESTED: Final = "stop_requested"

# Timer kinds
TIMER_EVALUATE: Final = "evaluate"
TIMER_CHARGE_COUNTDOWN: Final = "charge_countdown"
TIMER_MOW_COUNTDOWN: Final = "mow_countdown"
TIMER_PARK_OVERRIDE: Final = "park_override"

# Timing (seconds)
EVALUATE_INTERVAL: Final = 60
COUNTDOWN_INTERVAL: Final = 1
PARK_OVERRIDE_DELAY: Final = 10
NEXT_STOP_GRACE: Final = 120
RESYNC_THRESHOLD: Final = 300
MAX_MOWING_INCREMENT: Final = 300

# Learning thresholds
MIN_MOWING_DURATION: Final = 1800  # seconds
FULL_CHARGE_SOC: Final = 99
MIN_CHARGE_GAIN: Final = 50
CHARGE_HISTORY_SIZE: Final = 10
MOW_HISTORY_UNSTOPPED: Final = 10
CHARGE_TAPER_PADDING: Final = 1.5  # extra percent for the slow end of the charge curve
DEFAULT_COMMAND_SECONDS: Final = 60

# Clean average
CLEAN_AVG_SPREAD: Final = 0.4
CLEAN_AVG_EPSILON: Final = 0.001

# Snapshot-only keys (not published on the bus)
KEY_STOP_REQUESTED: Final = "stop_requested"
KEY_LOCKED: Final = "locked"
KEY_LOCK_STATES: Final = "lock_states"
KEY_CHARGE_SAMPLES: Final = "charge_samples"
KEY_MOW_SAMPLES: Final = "mow_samples"
