"""Rule evaluation logic for vehicle-state and time-of-day triggers."""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from automation.models import DAY_NAMES, TimeTrigger, parse_hhmm
from tesla.models import VehicleSnapshot

logger = logging.getLogger(__name__)

# Minimum time between firings per frequency policy
FREQUENCY_COOLDOWNS = {
    "once_per_trip": timedelta(hours=1),
}
# Time-of-day rules fire at most once per matching minute
TIME_TRIGGER_COOLDOWN = timedelta(seconds=60)

_BATTERY_LEVEL = re.compile(r"^\s*battery_level\s*(<|>)\s*(-?\d+(?:\.\d+)?)\s*$")
_CHARGING_STATE = re.compile(r"""^\s*charging_state\s*==?\s*['"]?([A-Za-z_]+)['"]?\s*$""")


class InvalidRuleCondition(ValueError):
    """A vehicle-state condition the evaluator does not understand."""
    pass


@dataclass(frozen=True)
class Condition:
    field: str  # "battery_level" | "charging_state"
    operator: str  # "<" | ">" | "="
    value: object


def parse_condition(condition: str) -> Condition:
    """Parse one of the supported condition shapes.

    Supported:
      - battery_level < N
      - battery_level > N
      - charging_state = State (quotes optional, "==" accepted)
    """
    match = _BATTERY_LEVEL.match(condition or "")
    if match:
        return Condition("battery_level", match.group(1), float(match.group(2)))

    match = _CHARGING_STATE.match(condition or "")
    if match:
        return Condition("charging_state", "=", match.group(1))

    raise InvalidRuleCondition(f"Unsupported vehicle condition: {condition!r}")


def evaluate_vehicle_condition(snapshot: VehicleSnapshot, condition: str) -> bool:
    """Evaluate a condition against a snapshot. Unknown shapes never match."""
    try:
        parsed = parse_condition(condition)
    except InvalidRuleCondition as e:
        logger.warning("%s", e)
        return False

    charge = snapshot.charge_state
    if parsed.field == "battery_level":
        if parsed.operator == "<":
            return charge.battery_level < parsed.value
        return charge.battery_level > parsed.value

    return charge.charging_state == parsed.value


def check_time_trigger(trigger: TimeTrigger, now: datetime) -> bool:
    """Check if the current time matches a time-of-day trigger."""
    try:
        hour, minute = parse_hhmm(trigger.time)
    except ValueError:
        logger.warning("Invalid time format: %s", trigger.time)
        return False

    if trigger.days and DAY_NAMES[now.weekday()] not in trigger.days:
        return False

    return now.hour == hour and now.minute == minute


def is_suppressed(cooldown: Optional[timedelta], last_triggered: Optional[datetime], now: datetime) -> bool:
    """True if a rule fired less than `cooldown` ago."""
    if cooldown is None or last_triggered is None:
        return False
    return now - last_triggered < cooldown


def frequency_cooldown(frequency: Optional[str]) -> Optional[timedelta]:
    if frequency and frequency not in FREQUENCY_COOLDOWNS:
        logger.debug("Unknown frequency policy %r, not suppressing", frequency)
    return FREQUENCY_COOLDOWNS.get(frequency or "")
