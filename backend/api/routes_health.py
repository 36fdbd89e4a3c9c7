"""Health check and notification feed routes."""

import os

from fastapi import APIRouter, Depends

from api.dependencies import get_engine, get_gateway, get_notifier
from automation.engine import AutomationEngine
from config import settings
from services.notifications import Notifier
from tesla.gateway import VehicleGateway

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health(
    gateway: VehicleGateway = Depends(get_gateway),
    engine: AutomationEngine = Depends(get_engine),
):
    """Health check endpoint."""
    provider = gateway.current_provider
    data_dir = settings.data_dir

    return {
        "status": "ok",
        "version": settings.app_version,
        "configured": gateway.is_configured(),
        "provider": provider.value if provider else None,
        "automation_running": engine.running,
        "data_volume_mounted": os.path.isdir(data_dir) and os.access(data_dir, os.W_OK),
    }


@router.get("/notifications/recent")
async def recent_notifications(limit: int = 20, notifier: Notifier = Depends(get_notifier)):
    """Most recent notifications for the dashboard feed."""
    return notifier.recent(limit)
