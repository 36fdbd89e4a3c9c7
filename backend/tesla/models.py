"""Pydantic models for vehicle snapshots and command results."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict


class ProviderKind(str, Enum):
    """The two interchangeable vehicle data providers."""

    TESSIE = "tessie"
    FLEET = "fleet"

    @property
    def other(self) -> "ProviderKind":
        return ProviderKind.FLEET if self is ProviderKind.TESSIE else ProviderKind.TESSIE


ASLEEP_STATES = ("asleep", "offline")


# --- Snapshot sub-records ---


class ChargeState(BaseModel):
    """Battery and charging details."""

    model_config = ConfigDict(frozen=True)

    battery_level: int = 0  # SOC 0-100
    charging_state: str = "Disconnected"  # "Disconnected", "Stopped", "Charging", "Complete", "NoPower"
    est_battery_range: float = 0.0  # Estimated range in miles
    battery_range: float = 0.0  # Rated range in miles
    charge_rate: float = 0.0  # Charge speed in mph
    time_to_full_charge: float = 0.0  # Hours until full


class ClimateState(BaseModel):
    """Cabin climate details."""

    model_config = ConfigDict(frozen=True)

    is_climate_on: bool = False
    inside_temp: Optional[float] = None  # Celsius
    outside_temp: Optional[float] = None


class SecurityState(BaseModel):
    """Locks, sentry mode and odometer/firmware."""

    model_config = ConfigDict(frozen=True)

    locked: bool = False
    sentry_mode: bool = False
    odometer: Optional[float] = None  # Miles
    car_version: str = ""


class DriveState(BaseModel):
    """Position and motion."""

    model_config = ConfigDict(frozen=True)

    latitude: Optional[float] = None
    longitude: Optional[float] = None
    shift_state: Optional[str] = None  # "P", "R", "N", "D" or None when parked asleep
    speed: Optional[float] = None


# --- Vehicle Models ---


class VehicleSummary(BaseModel):
    """Basic vehicle identification info."""

    id: str
    display_name: str = "Tesla"
    state: str = "unknown"  # "online", "asleep", "offline"
    vin: str = ""


class VehicleSnapshot(BaseModel):
    """Immutable point-in-time read of a vehicle."""

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str = "Tesla"
    vin: str = ""
    state: str = "online"
    charge_state: ChargeState = ChargeState()
    climate_state: ClimateState = ClimateState()
    security_state: SecurityState = SecurityState()
    drive_state: DriveState = DriveState()
    provider: Optional[ProviderKind] = None
    timestamp: datetime

    @property
    def is_asleep(self) -> bool:
        return self.state in ASLEEP_STATES


class CommandResult(BaseModel):
    """Outcome of a vehicle command as seen by UI and automation callers."""

    success: bool
    command: str
    result: Any = None
    error: Optional[str] = None  # Error class name, e.g. "NoProviderAvailable"
    detail: Optional[str] = None  # Human-readable message
    provider: Optional[ProviderKind] = None
    executed_at: datetime
