"""TeslaDash - Tesla vehicle gateway and automation app."""

import logging
import os
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from database import create_engine, create_session_factory, init_db
from automation.engine import AutomationEngine
from automation.history import ExecutionHistory
from automation.store import RuleStore
from services.cache import VehicleSnapshotCache
from services.notifications import Notifier
from services.setup_store import SetupStore
from tesla.fleet import FleetClient
from tesla.gateway import VehicleGateway
from tesla.models import ProviderKind
from tesla.rate_limiter import RateLimit, RateLimiter
from tesla.tessie import TessieClient
from api.routes_health import router as health_router
from api.routes_rules import router as rules_router
from api.routes_settings import router as settings_router
from api.routes_vehicle import router as vehicle_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("tesladash")


def build_gateway(setup_store: SetupStore) -> VehicleGateway:
    """Wire both providers, the rate limiter and the snapshot cache."""
    timeout = settings.http_timeout_seconds
    providers = {
        ProviderKind.TESSIE: TessieClient(setup_store, settings.tessie_api_base_url, timeout),
        ProviderKind.FLEET: FleetClient(setup_store, settings.fleet_api_base_url, timeout),
    }
    rate_limiter = RateLimiter(
        limits={
            ProviderKind.TESSIE: RateLimit(settings.tessie_rate_limit_calls, settings.tessie_rate_limit_window_seconds),
            ProviderKind.FLEET: RateLimit(settings.fleet_rate_limit_calls, settings.fleet_rate_limit_window_seconds),
        },
        wake_limit=RateLimit(settings.wake_rate_limit_calls, settings.wake_rate_limit_window_seconds),
    )
    return VehicleGateway(
        setup_store,
        providers,
        cache=VehicleSnapshotCache(settings.vehicle_cache_ttl_seconds),
        rate_limiter=rate_limiter,
        wake_settle_seconds=settings.wake_settle_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown lifecycle."""
    logger.info("Starting TeslaDash v%s", settings.app_version)
    os.makedirs(settings.data_dir, exist_ok=True)

    setup_store = SetupStore(settings.setup_file, settings.credential_fallbacks())
    if setup_store.is_vehicle_configured():
        logger.info("Vehicle API: configured (%s, vehicle %s)", setup_store.get_provider(), setup_store.get_vehicle_id())
    else:
        logger.warning("Vehicle API: not configured, automation will idle until credentials are set")

    # Initialize database
    db_engine = create_engine(settings.database_url, echo=settings.debug)
    await init_db(db_engine)
    logger.info("Database initialized")

    gateway = build_gateway(setup_store)
    rule_store = RuleStore(setup_store)
    notifier = Notifier(setup_store)
    history = ExecutionHistory(create_session_factory(db_engine))
    engine = AutomationEngine(
        gateway,
        rule_store,
        notifier,
        history,
        interval_seconds=settings.automation_interval_seconds,
        action_delay_seconds=settings.automation_action_delay_seconds,
    )

    app.state.setup_store = setup_store
    app.state.gateway = gateway
    app.state.rule_store = rule_store
    app.state.notifier = notifier
    app.state.history = history
    app.state.engine = engine

    engine.start()

    yield

    # Shutdown
    engine.stop()
    await gateway.close()
    await db_engine.dispose()
    logger.info("TeslaDash stopped")


app = FastAPI(
    title="TeslaDash",
    description="Tesla vehicle gateway and automation",
    version=settings.app_version,
    lifespan=lifespan,
)

# CORS - restrict to dev servers in debug mode, allow all in production
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:8080"] if settings.debug else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register API routes
app.include_router(health_router)
app.include_router(vehicle_router)
app.include_router(settings_router)
app.include_router(rules_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
