"""Tesla Fleet API provider client (fallback)."""

import logging
from typing import Optional

from tesla.client import ProviderClient
from tesla.models import ProviderKind, VehicleSnapshot, VehicleSummary
from tesla.normalize import parse_vehicle_response, parse_vehicle_summary

logger = logging.getLogger(__name__)


def _unwrap(data, default):
    """Pull the "response" member out of a Fleet API body, tolerating odd shapes."""
    if isinstance(data, dict):
        return data.get("response") or default
    return default


class FleetClient(ProviderClient):
    """Client for the Tesla Fleet API. Every payload is wrapped in "response"."""

    kind = ProviderKind.FLEET
    name = "Tesla Fleet API"
    default_base_url = "https://fleet-api.prd.na.vn.cloud.tesla.com"
    auth_endpoint = "/api/1/vehicles"

    async def list_vehicles(self) -> list[VehicleSummary]:
        data = await self.get("/api/1/vehicles")
        vehicles = [parse_vehicle_summary(v) for v in _unwrap(data, [])]
        logger.info("Fleet API: found %d vehicle(s)", len(vehicles))
        return vehicles

    async def get_vehicle_data(self, vehicle_id: str) -> VehicleSnapshot:
        data = await self.get(f"/api/1/vehicles/{vehicle_id}/vehicle_data")
        return parse_vehicle_response(_unwrap(data, {}), vehicle_id, provider=self.kind)

    async def execute_command(self, vehicle_id: str, command: str, params: Optional[dict] = None) -> dict:
        logger.info("Fleet API: sending %s to vehicle %s", command, vehicle_id)
        data = await self._post_command(f"/api/1/vehicles/{vehicle_id}/command/{command}", command, params)
        return self._check_command_result(_unwrap(data, {}), command)

    async def wake_vehicle(self, vehicle_id: str) -> str:
        """The Fleet API returns immediately with the state at the time of the call."""
        logger.info("Fleet API: waking vehicle %s", vehicle_id)
        data = await self.post(f"/api/1/vehicles/{vehicle_id}/wake_up")
        response = _unwrap(data, {})
        return response.get("state", "unknown") if isinstance(response, dict) else "unknown"
