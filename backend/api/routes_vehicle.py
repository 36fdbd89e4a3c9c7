"""Vehicle API routes - status, wake, commands and gateway diagnostics."""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from api.dependencies import get_gateway, http_error, require_vehicle
from tesla.errors import VehicleAPIError
from tesla.gateway import VehicleGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/vehicle", tags=["vehicle"])


# --- Discovery ---


@router.get("/list")
async def vehicle_list(gateway: VehicleGateway = Depends(get_gateway)):
    """List vehicles on the account."""
    try:
        vehicles = await gateway.list_vehicles()
    except VehicleAPIError as e:
        raise http_error(e)
    return {
        "vehicles": [v.model_dump() for v in vehicles],
        "selected_vehicle_id": gateway.current_vehicle_id() or None,
    }


# --- Live Status ---


@router.get("/status")
async def vehicle_status(
    refresh: bool = Query(False, description="Bypass the snapshot cache"),
    gateway: VehicleGateway = Depends(require_vehicle),
):
    """Get the current vehicle snapshot. Serves the last known one if the APIs are down."""
    vid = gateway.current_vehicle_id()
    try:
        snapshot = await gateway.get_vehicle_data(vid, use_cache=not refresh, allow_stale=True)
    except VehicleAPIError as e:
        raise http_error(e)
    return snapshot.model_dump(mode="json")


# --- Controls ---


@router.post("/wake")
async def vehicle_wake(gateway: VehicleGateway = Depends(require_vehicle)):
    """Wake up the vehicle."""
    vid = gateway.current_vehicle_id()
    try:
        state = await gateway.wake_vehicle(vid)
    except VehicleAPIError as e:
        raise http_error(e)
    return {"vehicle_id": vid, "state": state}


@router.post("/command/{command}")
async def vehicle_command(
    command: str,
    params: Optional[dict] = Body(default=None),
    gateway: VehicleGateway = Depends(require_vehicle),
):
    """Execute a vehicle command. The JSON body, if any, is passed as command parameters."""
    result = await gateway.execute_command(gateway.current_vehicle_id(), command, params or None)
    return result.model_dump(mode="json")


# --- Diagnostics ---


@router.get("/gateway")
async def gateway_status(gateway: VehicleGateway = Depends(get_gateway)):
    """Active provider, rate limit usage and cache state."""
    return gateway.get_status()
