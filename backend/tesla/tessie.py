"""Tessie provider client (primary)."""

import logging
from typing import Optional

from tesla.client import ProviderClient
from tesla.models import ProviderKind, VehicleSnapshot, VehicleSummary
from tesla.normalize import parse_vehicle_response, parse_vehicle_summary

logger = logging.getLogger(__name__)


class TessieClient(ProviderClient):
    """Client for the Tessie API."""

    kind = ProviderKind.TESSIE
    name = "Tessie"
    default_base_url = "https://api.tessie.com"
    auth_endpoint = "/vehicles"

    async def list_vehicles(self) -> list[VehicleSummary]:
        data = await self.get("/vehicles")
        items = data.get("results", []) if isinstance(data, dict) else data
        vehicles = [parse_vehicle_summary(v) for v in items or []]
        logger.info("Tessie: found %d vehicle(s)", len(vehicles))
        return vehicles

    async def get_vehicle_data(self, vehicle_id: str) -> VehicleSnapshot:
        data = await self.get(f"/vehicles/{vehicle_id}")
        return parse_vehicle_response(data or {}, vehicle_id, provider=self.kind)

    async def execute_command(self, vehicle_id: str, command: str, params: Optional[dict] = None) -> dict:
        logger.info("Tessie: sending %s to vehicle %s", command, vehicle_id)
        data = await self._post_command(f"/vehicles/{vehicle_id}/command/{command}", command, params)
        return self._check_command_result(data, command)

    async def wake_vehicle(self, vehicle_id: str) -> str:
        """Tessie only answers once the car is awake (or gave up waiting)."""
        logger.info("Tessie: waking vehicle %s", vehicle_id)
        data = await self.post(f"/vehicles/{vehicle_id}/wake")
        woke = data.get("result", True) if isinstance(data, dict) else True
        return "online" if woke else "asleep"
