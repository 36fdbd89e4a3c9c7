"""Pytest configuration and shared fixtures for TeslaDash tests."""

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import pytest

# Add backend to path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from services.setup_store import SetupStore  # noqa: E402
from tesla.errors import AuthenticationError  # noqa: E402
from tesla.models import ChargeState, ProviderKind, VehicleSnapshot, VehicleSummary  # noqa: E402

VEHICLE_ID = "1234567890"


class FakeClock:
    """Manually advanced clock for time-window tests."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def build_snapshot(
    vehicle_id: str = VEHICLE_ID,
    battery_level: int = 80,
    charging_state: str = "Disconnected",
    state: str = "online",
    provider: Optional[ProviderKind] = None,
) -> VehicleSnapshot:
    return VehicleSnapshot(
        id=vehicle_id,
        display_name="Model Y",
        state=state,
        charge_state=ChargeState(
            battery_level=battery_level,
            charging_state=charging_state,
            battery_range=200.4,
            est_battery_range=180.6,
        ),
        provider=provider,
        timestamp=datetime.now(timezone.utc),
    )


class FakeProvider:
    """In-memory stand-in for a provider client.

    Set `fail_with` to an exception to make every operation raise it,
    or `auth_error` to make authenticate() fail.
    """

    def __init__(self, kind: ProviderKind, available: bool = True):
        self.kind = kind
        self.name = kind.value.title()
        self.available = available
        self.auth_error: Optional[Exception] = None
        self.fail_with: Optional[Exception] = None
        self.snapshot_state = "online"
        self.battery_level = 80
        self.wake_state = "online"
        self.calls: list[tuple] = []
        self.closed = False

    def is_available(self) -> bool:
        return self.available

    async def authenticate(self):
        self.calls.append(("authenticate",))
        if not self.available:
            raise AuthenticationError(f"{self.name} API key not configured")
        if self.auth_error is not None:
            raise self.auth_error

    def _maybe_fail(self):
        if self.fail_with is not None:
            raise self.fail_with

    async def list_vehicles(self):
        self.calls.append(("list_vehicles",))
        self._maybe_fail()
        return [VehicleSummary(id=VEHICLE_ID, display_name="Model Y", state=self.snapshot_state)]

    async def get_vehicle_data(self, vehicle_id: str):
        self.calls.append(("get_vehicle_data", vehicle_id))
        self._maybe_fail()
        return build_snapshot(
            vehicle_id, battery_level=self.battery_level, state=self.snapshot_state, provider=self.kind
        )

    async def execute_command(self, vehicle_id: str, command: str, params: Optional[dict] = None):
        self.calls.append(("execute_command", vehicle_id, command, params))
        self._maybe_fail()
        return {"result": True}

    async def wake_vehicle(self, vehicle_id: str) -> str:
        self.calls.append(("wake_vehicle", vehicle_id))
        self._maybe_fail()
        return self.wake_state

    async def close(self):
        self.closed = True

    def count(self, operation: str) -> int:
        return sum(1 for call in self.calls if call[0] == operation)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def snapshot_factory():
    return build_snapshot


@pytest.fixture
def setup_store(tmp_path):
    """A configured setup store: Tessie selected, shared key, Fleet key, vehicle id."""
    store = SetupStore(str(tmp_path / "setup.json"))
    store.update({
        "provider": "tessie",
        "api_key": "tessie-key-0123456789",
        "fleet_api_key": "fleet-key-0123456789",
        "vehicle_id": VEHICLE_ID,
    })
    return store


@pytest.fixture
def providers():
    return {
        ProviderKind.TESSIE: FakeProvider(ProviderKind.TESSIE),
        ProviderKind.FLEET: FakeProvider(ProviderKind.FLEET),
    }
