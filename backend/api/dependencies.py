"""Service lookups for route handlers.

Services are built once in the application lifespan and kept on app.state.
"""

from fastapi import HTTPException, Request

from automation.engine import AutomationEngine
from automation.history import ExecutionHistory
from automation.store import RuleStore
from services.notifications import Notifier
from services.setup_store import SetupStore
from tesla.errors import (
    AuthenticationError,
    NoProviderAvailable,
    ProviderUnavailable,
    RateLimitExceeded,
    VehicleAPIError,
)
from tesla.gateway import VehicleGateway


def get_setup_store(request: Request) -> SetupStore:
    return request.app.state.setup_store


def get_gateway(request: Request) -> VehicleGateway:
    return request.app.state.gateway


def get_rule_store(request: Request) -> RuleStore:
    return request.app.state.rule_store


def get_engine(request: Request) -> AutomationEngine:
    return request.app.state.engine


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_history(request: Request) -> ExecutionHistory:
    return request.app.state.history


def require_vehicle(request: Request) -> VehicleGateway:
    """The gateway, or 409 if no provider, key and vehicle id are configured."""
    gateway = get_gateway(request)
    if not gateway.is_configured():
        raise HTTPException(status_code=409, detail="Vehicle not configured. Set provider, API key and vehicle id first.")
    return gateway


def http_error(e: VehicleAPIError) -> HTTPException:
    """Map a gateway error to an HTTP response."""
    if isinstance(e, RateLimitExceeded):
        return HTTPException(
            status_code=429,
            detail=str(e),
            headers={"Retry-After": str(max(1, int(e.retry_after + 0.999)))},
        )
    if isinstance(e, AuthenticationError):
        return HTTPException(status_code=401, detail=str(e))
    if isinstance(e, NoProviderAvailable):
        return HTTPException(status_code=503, detail=str(e))
    if isinstance(e, ProviderUnavailable):
        return HTTPException(status_code=502, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))
