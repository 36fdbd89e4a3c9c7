"""Tests for the Tessie and Fleet API provider clients."""

import json

import httpx
import pytest

from services.setup_store import SetupStore
from tesla.errors import AuthenticationError, CommandExecutionError, ProviderUnavailable
from tesla.fleet import FleetClient
from tesla.models import ProviderKind
from tesla.normalize import parse_vehicle_response, parse_vehicle_summary
from tesla.tessie import TessieClient

VEHICLE_DATA = {
    "display_name": "Model Y",
    "vin": "5YJ3E1EA7KF000001",
    "state": "online",
    "charge_state": {
        "battery_level": 64,
        "charging_state": "Charging",
        "battery_range": 180.2,
        "est_battery_range": 150.1,
        "charge_rate": 30.5,
        "time_to_full_charge": 1.25,
    },
    "climate_state": {"is_climate_on": True, "inside_temp": 21.5, "outside_temp": 9.0},
    "vehicle_state": {"locked": True, "sentry_mode": False, "odometer": 12345.6, "car_version": "2024.20.1"},
    "drive_state": {"latitude": 37.49, "longitude": -121.94, "shift_state": None, "speed": None},
}


def _client(cls, store, handler):
    return cls(store, transport=httpx.MockTransport(handler))


class TestNormalize:
    """Provider payloads normalize into the shared snapshot model."""

    def test_full_payload(self):
        snapshot = parse_vehicle_response(VEHICLE_DATA, 42, provider=ProviderKind.TESSIE)
        assert snapshot.id == "42"
        assert snapshot.charge_state.battery_level == 64
        assert snapshot.charge_state.charging_state == "Charging"
        assert snapshot.climate_state.inside_temp == 21.5
        assert snapshot.security_state.locked is True
        assert snapshot.security_state.car_version == "2024.20.1"
        assert snapshot.drive_state.latitude == 37.49
        assert snapshot.provider is ProviderKind.TESSIE

    def test_nulls_fall_back_to_defaults(self):
        snapshot = parse_vehicle_response(
            {"charge_state": {"battery_level": None, "charging_state": None}, "climate_state": None},
            "v1",
        )
        assert snapshot.charge_state.battery_level == 0
        assert snapshot.charge_state.charging_state == "Disconnected"
        assert snapshot.climate_state.is_climate_on is False
        assert snapshot.state == "online"

    def test_tessie_summary_uses_last_state(self):
        summary = parse_vehicle_summary({
            "vin": "VIN1",
            "last_state": {"id": 99, "display_name": "Road Runner", "state": "asleep"},
        })
        assert summary.id == "99"
        assert summary.display_name == "Road Runner"
        assert summary.state == "asleep"
        assert summary.vin == "VIN1"


class TestCredentials:
    """Which key each provider uses."""

    def test_shared_key_belongs_to_selected_provider(self, tmp_path):
        store = SetupStore(str(tmp_path / "setup.json"))
        store.update({"provider": "tessie", "api_key": "shared"})
        assert TessieClient(store).is_available()
        assert not FleetClient(store).is_available()

    def test_provider_specific_key_wins(self, tmp_path):
        store = SetupStore(str(tmp_path / "setup.json"))
        store.update({"provider": "tessie", "api_key": "shared", "fleet_api_key": "fleet-only"})
        assert FleetClient(store)._credential() == "fleet-only"
        assert TessieClient(store)._credential() == "shared"

    def test_env_fallback(self, tmp_path):
        store = SetupStore(str(tmp_path / "setup.json"), fallbacks={"tessie_api_key": "from-env"})
        assert TessieClient(store)._credential() == "from-env"

    @pytest.mark.asyncio
    async def test_authenticate_without_key(self, tmp_path):
        store = SetupStore(str(tmp_path / "setup.json"))
        client = TessieClient(store)
        with pytest.raises(AuthenticationError, match="not configured"):
            await client.authenticate()


class TestTessieClient:
    """Tessie request shapes and error mapping."""

    @pytest.mark.asyncio
    async def test_sends_bearer_token(self, setup_store):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            seen["path"] = request.url.path
            return httpx.Response(200, json={"results": []})

        client = _client(TessieClient, setup_store, handler)
        await client.authenticate()
        await client.close()

        assert seen["auth"] == "Bearer tessie-key-0123456789"
        assert seen["path"] == "/vehicles"

    @pytest.mark.asyncio
    async def test_rejected_key(self, setup_store):
        client = _client(TessieClient, setup_store, lambda request: httpx.Response(401))
        with pytest.raises(AuthenticationError, match="Invalid Tessie API key"):
            await client.authenticate()

    @pytest.mark.asyncio
    async def test_list_vehicles(self, setup_store):
        payload = {"results": [{"vin": "VIN1", "last_state": {"id": 7, "display_name": "Blue", "state": "online"}}]}
        client = _client(TessieClient, setup_store, lambda request: httpx.Response(200, json=payload))
        vehicles = await client.list_vehicles()
        assert [v.id for v in vehicles] == ["7"]

    @pytest.mark.asyncio
    async def test_get_vehicle_data(self, setup_store):
        def handler(request):
            assert request.url.path == "/vehicles/42"
            return httpx.Response(200, json=VEHICLE_DATA)

        client = _client(TessieClient, setup_store, handler)
        snapshot = await client.get_vehicle_data("42")
        assert snapshot.charge_state.battery_level == 64
        assert snapshot.provider is ProviderKind.TESSIE

    @pytest.mark.asyncio
    async def test_execute_command_posts_params(self, setup_store):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"result": True})

        client = _client(TessieClient, setup_store, handler)
        result = await client.execute_command("42", "set_temps", {"driver_temp": 21})

        assert seen["path"] == "/vehicles/42/command/set_temps"
        assert seen["body"] == {"driver_temp": 21}
        assert result == {"result": True}

    @pytest.mark.asyncio
    async def test_command_refused(self, setup_store):
        client = _client(
            TessieClient, setup_store,
            lambda request: httpx.Response(200, json={"result": False, "reason": "already_started"}),
        )
        with pytest.raises(CommandExecutionError) as exc_info:
            await client.execute_command("42", "charge_start")
        assert exc_info.value.reason == "already_started"

    @pytest.mark.asyncio
    async def test_command_client_error(self, setup_store):
        client = _client(TessieClient, setup_store, lambda request: httpx.Response(422, text="bad command"))
        with pytest.raises(CommandExecutionError):
            await client.execute_command("42", "not_a_command")

    @pytest.mark.asyncio
    async def test_command_timeout_status_is_provider_failure(self, setup_store):
        client = _client(TessieClient, setup_store, lambda request: httpx.Response(408))
        with pytest.raises(ProviderUnavailable) as exc_info:
            await client.execute_command("42", "flash_lights")
        assert exc_info.value.status_code == 408

    @pytest.mark.asyncio
    async def test_server_error(self, setup_store):
        client = _client(TessieClient, setup_store, lambda request: httpx.Response(503, text="down"))
        with pytest.raises(ProviderUnavailable) as exc_info:
            await client.get_vehicle_data("42")
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_network_error(self, setup_store):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(TessieClient, setup_store, handler)
        with pytest.raises(ProviderUnavailable):
            await client.list_vehicles()

    @pytest.mark.asyncio
    async def test_wake(self, setup_store):
        client = _client(TessieClient, setup_store, lambda request: httpx.Response(200, json={"result": True}))
        assert await client.wake_vehicle("42") == "online"


class TestFleetClient:
    """Fleet API request shapes; every payload is wrapped in "response"."""

    @pytest.mark.asyncio
    async def test_get_vehicle_data(self, setup_store):
        def handler(request):
            assert request.url.path == "/api/1/vehicles/42/vehicle_data"
            assert request.headers["Authorization"] == "Bearer fleet-key-0123456789"
            return httpx.Response(200, json={"response": VEHICLE_DATA})

        client = _client(FleetClient, setup_store, handler)
        snapshot = await client.get_vehicle_data("42")
        assert snapshot.id == "42"
        assert snapshot.climate_state.is_climate_on is True
        assert snapshot.provider is ProviderKind.FLEET

    @pytest.mark.asyncio
    async def test_list_vehicles(self, setup_store):
        payload = {"response": [{"id": 1, "display_name": "Red", "state": "asleep", "vin": "VIN2"}]}
        client = _client(FleetClient, setup_store, lambda request: httpx.Response(200, json=payload))
        vehicles = await client.list_vehicles()
        assert vehicles[0].state == "asleep"
        assert vehicles[0].vin == "VIN2"

    @pytest.mark.asyncio
    async def test_execute_command(self, setup_store):
        def handler(request):
            assert request.url.path == "/api/1/vehicles/42/command/door_lock"
            return httpx.Response(200, json={"response": {"result": True, "reason": ""}})

        client = _client(FleetClient, setup_store, handler)
        assert (await client.execute_command("42", "door_lock"))["result"] is True

    @pytest.mark.asyncio
    async def test_wake_returns_reported_state(self, setup_store):
        def handler(request):
            assert request.url.path == "/api/1/vehicles/42/wake_up"
            return httpx.Response(200, json={"response": {"state": "asleep"}})

        client = _client(FleetClient, setup_store, handler)
        assert await client.wake_vehicle("42") == "asleep"

    @pytest.mark.asyncio
    async def test_unwrapped_body_tolerated(self, setup_store):
        client = _client(FleetClient, setup_store, lambda request: httpx.Response(200, json=["unexpected"]))

        snapshot = await client.get_vehicle_data("42")
        assert snapshot.id == "42"
        assert await client.list_vehicles() == []
        assert await client.wake_vehicle("42") == "unknown"
