"""Vehicle API gateway - a single stable interface over two interchangeable providers.

The gateway owns the active provider, the snapshot cache and the rate
limiter. On first use it authenticates Tessie, falling back to the Fleet
API. Any provider failure triggers exactly one switch to the other
provider and one retry; the switch is sticky until another failure
forces it back.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from services.cache import VehicleSnapshotCache
from services.setup_store import SetupStore
from tesla.client import ProviderClient
from tesla.errors import CommandExecutionError, NoProviderAvailable, VehicleAPIError
from tesla.models import CommandResult, ProviderKind, VehicleSnapshot, VehicleSummary
from tesla.rate_limiter import GENERAL, WAKE, RateLimiter

logger = logging.getLogger(__name__)

PROVIDER_ORDER = (ProviderKind.TESSIE, ProviderKind.FLEET)
CREDENTIAL_KEYS = ("provider", "api_key", "tessie_api_key", "fleet_api_key")


class VehicleGateway:
    """Resilient access to vehicle data and commands."""

    def __init__(
        self,
        setup_store: SetupStore,
        providers: dict[ProviderKind, ProviderClient],
        cache: Optional[VehicleSnapshotCache] = None,
        rate_limiter: Optional[RateLimiter] = None,
        wake_settle_seconds: float = 5.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._setup_store = setup_store
        self._providers = providers
        self.cache = cache or VehicleSnapshotCache()
        self.rate_limiter = rate_limiter or RateLimiter()
        self._wake_settle_seconds = wake_settle_seconds
        self._sleep = sleep

        self._current: Optional[ProviderKind] = None
        self._init_error: Optional[str] = None
        self._init_fingerprint: Optional[tuple] = None
        self._init_lock = asyncio.Lock()
        self._switch_lock = asyncio.Lock()
        self._fetch_locks: dict[str, asyncio.Lock] = {}

    # --- Configuration ---

    @property
    def current_provider(self) -> Optional[ProviderKind]:
        return self._current

    def is_configured(self) -> bool:
        """Check that a provider, an API key and a target vehicle are configured."""
        return self._setup_store.is_vehicle_configured()

    def current_vehicle_id(self) -> str:
        return self._setup_store.get_vehicle_id()

    def _credentials_fingerprint(self) -> tuple:
        return tuple(self._setup_store.get(key, "") for key in CREDENTIAL_KEYS)

    def reset(self):
        """Forget the active provider so the next call authenticates again."""
        self._current = None
        self._init_error = None
        self._init_fingerprint = None
        logger.info("Vehicle gateway reset, providers will re-authenticate on next use")

    # --- Provider selection ---

    def _set_current(self, kind: ProviderKind):
        self._current = kind
        self.rate_limiter.provider = kind

    async def initialize(self) -> ProviderKind:
        """Authenticate the primary provider, else the fallback."""
        async with self._init_lock:
            return await self._initialize_locked()

    async def _initialize_locked(self) -> ProviderKind:
        errors = []
        for kind in PROVIDER_ORDER:
            provider = self._providers.get(kind)
            if provider is None:
                continue
            try:
                await provider.authenticate()
            except VehicleAPIError as e:
                logger.warning("%s unavailable: %s", provider.name, e)
                errors.append(f"{provider.name}: {e}")
                continue

            self._set_current(kind)
            self._init_error = None
            self._init_fingerprint = None
            logger.info(
                "Using %s as %s vehicle API",
                provider.name, "primary" if kind is PROVIDER_ORDER[0] else "fallback",
            )
            return kind

        self._current = None
        self._init_error = "; ".join(errors) or "no providers registered"
        self._init_fingerprint = self._credentials_fingerprint()
        logger.error("No vehicle API could authenticate: %s", self._init_error)
        raise NoProviderAvailable(f"No vehicle API available ({self._init_error})")

    async def _active_provider(self) -> ProviderClient:
        """Return the active provider, initializing on first use.

        After a failed initialization every call fails fast until the
        credential configuration changes.
        """
        if self._current is not None:
            return self._providers[self._current]

        async with self._init_lock:
            if self._current is None:
                if self._init_error is not None and self._init_fingerprint == self._credentials_fingerprint():
                    raise NoProviderAvailable(f"No vehicle API available ({self._init_error})")
                await self._initialize_locked()
            return self._providers[self._current]

    async def _failover(self, failed: ProviderKind) -> bool:
        """Switch away from a failed provider. Returns False if no switch is possible."""
        async with self._switch_lock:
            if self._current is not failed:
                # A concurrent caller already switched
                return self._current is not None

            target = failed.other
            provider = self._providers.get(target)
            if provider is None or not provider.is_available():
                logger.warning("Cannot fail over from %s: %s has no credentials", failed.value, target.value)
                return False

            logger.warning("Switching vehicle API from %s to %s", failed.value, target.value)
            self._set_current(target)
            return True

    async def _call_with_failover(self, operation: Callable[..., Awaitable[Any]], *args) -> Any:
        """Run an operation on the active provider, retrying once on the other."""
        provider = await self._active_provider()
        try:
            return await operation(provider, *args)
        except CommandExecutionError:
            raise
        except VehicleAPIError as e:
            logger.warning("%s failed on %s: %s", operation.__name__, provider.name, e)
            if not await self._failover(provider.kind):
                raise
            first_error = e

        fallback = self._providers[self._current]
        try:
            return await operation(fallback, *args)
        except CommandExecutionError:
            raise
        except VehicleAPIError as e:
            logger.error("Fallback %s also failed: %s", fallback.name, e)
            raise NoProviderAvailable(f"All vehicle APIs failed ({first_error}; {e})") from e

    # --- Operations run against a specific provider ---

    async def _fetch_snapshot(self, provider: ProviderClient, vehicle_id: str) -> VehicleSnapshot:
        self.rate_limiter.acquire(GENERAL, provider.kind)
        snapshot = await provider.get_vehicle_data(vehicle_id)
        await self.cache.put(vehicle_id, snapshot)
        return snapshot

    async def _list(self, provider: ProviderClient) -> list[VehicleSummary]:
        self.rate_limiter.acquire(GENERAL, provider.kind)
        return await provider.list_vehicles()

    async def _wake(self, provider: ProviderClient, vehicle_id: str) -> str:
        self.rate_limiter.acquire(WAKE, provider.kind)
        state = await provider.wake_vehicle(vehicle_id)
        if state != "online" and self._wake_settle_seconds > 0:
            logger.info(
                "Vehicle %s reported %s after wake, waiting %.0fs",
                vehicle_id, state, self._wake_settle_seconds,
            )
            await self._sleep(self._wake_settle_seconds)
        await self.cache.mark_state(vehicle_id, "online")
        return state

    async def _ensure_awake(self, provider: ProviderClient, vehicle_id: str):
        """Wake the vehicle if its last known state is asleep or offline."""
        cached, _ = await self.cache.get(vehicle_id)
        if cached is None or not cached.is_asleep:
            return
        logger.info("Vehicle %s is %s, waking before command", vehicle_id, cached.state)
        await self._wake(provider, vehicle_id)

    async def _send_command(self, provider: ProviderClient, vehicle_id: str, command: str, params: Optional[dict]):
        await self._ensure_awake(provider, vehicle_id)
        self.rate_limiter.acquire(GENERAL, provider.kind)
        return await provider.execute_command(vehicle_id, command, params)

    # --- Public API ---

    async def get_vehicle_data(
        self,
        vehicle_id: str,
        use_cache: bool = True,
        allow_stale: bool = False,
    ) -> VehicleSnapshot:
        """Get a vehicle snapshot, from cache when fresh.

        Args:
            vehicle_id: Provider vehicle id
            use_cache: Return a fresh cached snapshot without a network call
            allow_stale: On failure, return the last known snapshot instead of raising
        """
        if use_cache:
            cached, fresh = await self.cache.get(vehicle_id)
            if fresh:
                return cached

        lock = self._fetch_locks.setdefault(vehicle_id, asyncio.Lock())
        async with lock:
            # Another caller may have refreshed while we waited
            if use_cache:
                cached, fresh = await self.cache.get(vehicle_id)
                if fresh:
                    return cached
            try:
                return await self._call_with_failover(self._fetch_snapshot, vehicle_id)
            except VehicleAPIError:
                if allow_stale:
                    stale, _ = await self.cache.get(vehicle_id)
                    if stale is not None:
                        logger.warning("Serving last known snapshot for vehicle %s", vehicle_id)
                        return stale
                raise

    async def list_vehicles(self) -> list[VehicleSummary]:
        """List all vehicles on the account."""
        return await self._call_with_failover(self._list)

    async def wake_vehicle(self, vehicle_id: str) -> str:
        """Wake a vehicle explicitly. Consumes a wake-class token."""
        return await self._call_with_failover(self._wake, vehicle_id)

    async def execute_command(self, vehicle_id: str, command: str, params: Optional[dict] = None) -> CommandResult:
        """Execute a named vehicle command.

        Never raises for API failures; the outcome is reported in the
        returned CommandResult. The cache is left untouched, so callers
        should request a fresh snapshot afterwards.
        """
        try:
            result = await self._call_with_failover(self._send_command, vehicle_id, command, params)
        except VehicleAPIError as e:
            logger.error("Command %s failed for vehicle %s: %s", command, vehicle_id, e)
            return CommandResult(
                success=False,
                command=command,
                error=type(e).__name__,
                detail=str(e),
                provider=self._current,
                executed_at=datetime.now(timezone.utc),
            )

        logger.info("Vehicle command executed: %s on %s (params=%s)", command, vehicle_id, params)
        return CommandResult(
            success=True,
            command=command,
            result=result,
            provider=self._current,
            executed_at=datetime.now(timezone.utc),
        )

    def get_status(self) -> dict:
        """Gateway state for the dashboard."""
        provider = self._current
        return {
            "configured": self.is_configured(),
            "provider": provider.value if provider else None,
            "vehicle_id": self.current_vehicle_id() or None,
            "init_error": self._init_error,
            "providers": {
                kind.value: {"available": client.is_available()}
                for kind, client in self._providers.items()
            },
            "rate_limit": self.rate_limiter.get_stats(),
            "cache": self.cache.get_stats(),
        }

    async def close(self):
        """Close all provider HTTP clients."""
        for client in self._providers.values():
            await client.close()
