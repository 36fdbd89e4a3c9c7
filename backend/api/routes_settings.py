"""API routes for vehicle credentials and notification channel settings."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from api.dependencies import get_gateway, get_setup_store
from services.setup_store import SetupStore, mask_secret
from tesla.gateway import VehicleGateway
from tesla.models import ProviderKind

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/settings", tags=["settings"])


class VehicleSettingsRequest(BaseModel):
    provider: Optional[ProviderKind] = None
    api_key: Optional[str] = None
    tessie_api_key: Optional[str] = None
    fleet_api_key: Optional[str] = None
    vehicle_id: Optional[str] = None


class NotificationSettingsRequest(BaseModel):
    webhook_url: Optional[str] = None
    email: Optional[str] = None
    smtp_host: Optional[str] = None
    smtp_port: Optional[int] = None
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_from: Optional[str] = None


def _vehicle_settings(store: SetupStore) -> dict:
    return {
        "provider": store.get_provider() or None,
        "api_key": mask_secret(store.get_api_key()),
        "tessie_api_key": mask_secret(store.get("tessie_api_key", "")),
        "fleet_api_key": mask_secret(store.get("fleet_api_key", "")),
        "vehicle_id": store.get_vehicle_id() or None,
        "configured": store.is_vehicle_configured(),
    }


@router.get("/vehicle")
async def get_vehicle_settings(store: SetupStore = Depends(get_setup_store)):
    """Current vehicle API configuration (keys masked)."""
    return _vehicle_settings(store)


@router.put("/vehicle")
async def update_vehicle_settings(
    req: VehicleSettingsRequest,
    store: SetupStore = Depends(get_setup_store),
    gateway: VehicleGateway = Depends(get_gateway),
):
    """Save vehicle API credentials. Any change makes the gateway re-authenticate."""
    data = {}
    for key, value in req.model_dump(exclude_unset=True).items():
        if value is None:
            continue
        if isinstance(value, ProviderKind):
            value = value.value
        data[key] = value.strip()

    if not data:
        raise HTTPException(status_code=400, detail="No settings provided.")

    store.update(data)
    gateway.reset()
    logger.info("Vehicle settings updated: %s", sorted(data))
    return _vehicle_settings(store)


@router.get("/notifications")
async def get_notification_settings(store: SetupStore = Depends(get_setup_store)):
    """Current notification channel configuration (password masked)."""
    return {
        "webhook_url": store.get("notify_webhook_url", ""),
        "email": store.get("notify_email", ""),
        "smtp_host": store.get("notify_smtp_host", ""),
        "smtp_port": int(store.get("notify_smtp_port", 587)),
        "smtp_username": store.get("notify_smtp_username", ""),
        "smtp_password": mask_secret(store.get("notify_smtp_password", "")),
        "smtp_from": store.get("notify_smtp_from", ""),
    }


@router.put("/notifications")
async def update_notification_settings(
    req: NotificationSettingsRequest,
    store: SetupStore = Depends(get_setup_store),
):
    """Save notification channel settings."""
    data = {
        f"notify_{key}": value
        for key, value in req.model_dump(exclude_unset=True).items()
        if value is not None
    }
    if not data:
        raise HTTPException(status_code=400, detail="No settings provided.")

    store.update(data)
    return {"success": True}
