"""Normalize provider payloads into the shared vehicle models."""

from datetime import datetime, timezone
from typing import Any, Optional

from tesla.models import (
    ChargeState,
    ClimateState,
    DriveState,
    ProviderKind,
    SecurityState,
    VehicleSnapshot,
    VehicleSummary,
)


def _value(data: dict, key: str, default: Any = None) -> Any:
    """Like dict.get, but providers send explicit nulls for unknown fields."""
    value = data.get(key)
    return default if value is None else value


def parse_vehicle_summary(raw: dict) -> VehicleSummary:
    """Parse one entry of a vehicle list response.

    Tessie nests the last known state under "last_state"; the Fleet API
    returns flat vehicle records.
    """
    state = raw.get("last_state") or {}
    return VehicleSummary(
        id=str(_value(raw, "id", _value(state, "id", raw.get("vin", "")))),
        display_name=_value(raw, "display_name", _value(state, "display_name", "Tesla")),
        state=_value(raw, "state", _value(state, "state", "unknown")),
        vin=_value(raw, "vin", _value(state, "vin", "")),
    )


def parse_vehicle_response(
    response: dict,
    vehicle_id: str,
    provider: Optional[ProviderKind] = None,
) -> VehicleSnapshot:
    """Parse a full vehicle_data style response into a VehicleSnapshot."""
    charge = response.get("charge_state") or {}
    climate = response.get("climate_state") or {}
    vehicle_state = response.get("vehicle_state") or {}
    drive = response.get("drive_state") or {}

    charge_state = ChargeState(
        battery_level=_value(charge, "battery_level", 0),
        charging_state=_value(charge, "charging_state", "Disconnected"),
        est_battery_range=_value(charge, "est_battery_range", 0),
        battery_range=_value(charge, "battery_range", 0),
        charge_rate=_value(charge, "charge_rate", 0),
        time_to_full_charge=_value(charge, "time_to_full_charge", 0),
    )

    climate_state = ClimateState(
        is_climate_on=_value(climate, "is_climate_on", False),
        inside_temp=climate.get("inside_temp"),
        outside_temp=climate.get("outside_temp"),
    )

    security_state = SecurityState(
        locked=_value(vehicle_state, "locked", False),
        sentry_mode=_value(vehicle_state, "sentry_mode", False),
        odometer=vehicle_state.get("odometer"),
        car_version=_value(vehicle_state, "car_version", ""),
    )

    drive_state = DriveState(
        latitude=drive.get("latitude"),
        longitude=drive.get("longitude"),
        shift_state=drive.get("shift_state"),
        speed=drive.get("speed"),
    )

    return VehicleSnapshot(
        id=str(vehicle_id),
        display_name=_value(response, "display_name", "Tesla"),
        vin=_value(response, "vin", ""),
        state=_value(response, "state", "online"),
        charge_state=charge_state,
        climate_state=climate_state,
        security_state=security_state,
        drive_state=drive_state,
        provider=provider,
        timestamp=datetime.now(timezone.utc),
    )
