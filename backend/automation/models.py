"""Automation rule, trigger and action models.

Triggers and actions are tagged unions discriminated on ``type``, so a
rule read back from the setup store is validated into the right variant.
"""

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

DAY_NAMES = ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]


def parse_hhmm(value: str) -> tuple[int, int]:
    """Parse "HH:MM" into (hour, minute)."""
    try:
        hour, minute = map(int, value.split(":"))
    except (ValueError, AttributeError):
        raise ValueError(f"Invalid time format: {value!r} (expected HH:MM)")
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"Invalid time of day: {value!r}")
    return hour, minute


# --- Triggers ---


class LocationTrigger(BaseModel):
    """Arriving at or leaving a named place. Fired by an external geofence."""

    type: Literal["location"] = "location"
    location: str
    event: Literal["arrive", "leave"] = "arrive"
    radius: int = 150  # meters
    conditions: dict = Field(default_factory=dict)  # e.g. {"timeAfter": "18:00"}


class CalendarTrigger(BaseModel):
    """Upcoming calendar event. Fired by an external calendar feed."""

    type: Literal["calendar"] = "calendar"
    event_keywords: list[str] = Field(default_factory=list)
    time_before: int = 15  # minutes before the event
    conditions: dict = Field(default_factory=dict)


class ScheduleTrigger(BaseModel):
    """Recurring schedule pattern. Fired externally."""

    type: Literal["schedule"] = "schedule"
    pattern: str = ""


class VehicleStateTrigger(BaseModel):
    """Condition on the vehicle snapshot, e.g. "battery_level < 20"."""

    type: Literal["vehicle_state"] = "vehicle_state"
    condition: str
    frequency: Optional[str] = None  # "once_per_trip" suppresses re-firing for an hour


class TimeTrigger(BaseModel):
    """Wall-clock time of day, optionally limited to some weekdays."""

    type: Literal["time"] = "time"
    time: str  # "HH:MM"
    days: list[str] = Field(default_factory=list)  # empty = every day

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        parse_hhmm(v)
        return v

    @field_validator("days")
    @classmethod
    def validate_days(cls, v: list[str]) -> list[str]:
        days = [d.lower()[:3] for d in v]
        unknown = [d for d in days if d not in DAY_NAMES]
        if unknown:
            raise ValueError(f"Unknown day(s): {unknown}")
        return days


Trigger = Annotated[
    Union[LocationTrigger, CalendarTrigger, ScheduleTrigger, VehicleStateTrigger, TimeTrigger],
    Field(discriminator="type"),
]


# --- Actions ---


class VehicleCommandAction(BaseModel):
    type: Literal["vehicle_command"] = "vehicle_command"
    command: str
    params: dict = Field(default_factory=dict)
    description: str = ""


class ClimateControlAction(BaseModel):
    type: Literal["climate_control"] = "climate_control"
    command: Literal["start_climate", "stop_climate"]
    temperature: Optional[float] = None  # Celsius, applied after starting
    description: str = ""


class ChargingCheckAction(BaseModel):
    type: Literal["charging_check"] = "charging_check"
    minimum_level: int = Field(..., ge=0, le=100)
    description: str = ""


class NotificationAction(BaseModel):
    type: Literal["notification"] = "notification"
    message: str  # may contain placeholders such as {battery_level}
    title: str = "Automation Alert"
    priority: Literal["low", "normal", "high"] = "normal"
    description: str = ""


Action = Annotated[
    Union[VehicleCommandAction, ClimateControlAction, ChargingCheckAction, NotificationAction],
    Field(discriminator="type"),
]


# --- Rules ---


class AutomationRule(BaseModel):
    """A persisted trigger/action pair."""

    id: str
    name: str
    description: str = ""
    enabled: bool = True
    trigger: Trigger
    actions: list[Action] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    custom: bool = False


class RuleCreate(BaseModel):
    """A new custom rule before the store assigns its id."""

    name: str
    description: str = ""
    enabled: bool = True
    trigger: Trigger
    actions: list[Action] = Field(default_factory=list)


class RuleUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    enabled: Optional[bool] = None
    trigger: Optional[Trigger] = None
    actions: Optional[list[Action]] = None
