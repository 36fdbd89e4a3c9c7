"""Base provider client: bearer-token transport shared by Tessie and the Fleet API."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from services.setup_store import SetupStore
from tesla.errors import AuthenticationError, CommandExecutionError, ProviderUnavailable
from tesla.models import ProviderKind, VehicleSnapshot, VehicleSummary

logger = logging.getLogger(__name__)

# Statuses where the remote is busy or the car unreachable, not the command at fault
TRANSIENT_STATUS = (408, 429)


class ProviderClient(ABC):
    """Capability set every vehicle data provider must implement.

    Responses are normalized into VehicleSnapshot / VehicleSummary and
    plain command result dicts, so the gateway never sees provider
    specific payloads.
    """

    kind: ProviderKind
    name: str
    default_base_url: str
    auth_endpoint: str

    def __init__(
        self,
        setup_store: SetupStore,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._setup_store = setup_store
        self.base_url = base_url or self.default_base_url
        self._timeout = timeout
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    # --- Credentials ---

    def _credential(self) -> str:
        """API key for this provider.

        A provider specific key wins; the shared key only belongs to the
        provider selected in setup.
        """
        key = self._setup_store.get(f"{self.kind.value}_api_key", "")
        if key:
            return key
        if self._setup_store.get_provider() == self.kind.value:
            return self._setup_store.get_api_key()
        return ""

    def is_available(self) -> bool:
        """Check if credentials are present (no network access)."""
        return bool(self._credential())

    async def authenticate(self):
        """Validate the stored credentials against the remote service."""
        if not self.is_available():
            raise AuthenticationError(f"{self.name} API key not configured")
        try:
            await self.get(self.auth_endpoint)
        except AuthenticationError as e:
            raise AuthenticationError(f"Invalid {self.name} API key") from e
        logger.info("Authenticated with %s", self.name)

    # --- HTTP ---

    async def get_http_client(self) -> httpx.AsyncClient:
        """Get or create an async HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._http_client

    async def close(self):
        """Close the HTTP client."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    async def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        """Make an authenticated API request.

        Handles:
          - network errors and timeouts: ProviderUnavailable
          - 401/403: AuthenticationError
          - any other error status: ProviderUnavailable carrying the status
        """
        client = await self.get_http_client()
        headers = {
            "Authorization": f"Bearer {self._credential()}",
            "Content-Type": "application/json",
        }

        try:
            response = await client.request(method, endpoint, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise ProviderUnavailable(f"{self.name} request timed out: {method} {endpoint}") from e
        except httpx.HTTPError as e:
            raise ProviderUnavailable(f"{self.name} request failed: {e}") from e

        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"{self.name} rejected credentials ({response.status_code}) on {endpoint}"
            )

        if response.status_code >= 400:
            raise ProviderUnavailable(
                f"{self.name} API error {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ProviderUnavailable(f"{self.name} returned invalid JSON on {endpoint}") from e

    async def get(self, endpoint: str, **kwargs) -> Any:
        return await self._request("GET", endpoint, **kwargs)

    async def post(self, endpoint: str, **kwargs) -> Any:
        return await self._request("POST", endpoint, **kwargs)

    async def _post_command(self, endpoint: str, command: str, params: Optional[dict]) -> Any:
        """POST a vehicle command, turning client errors into CommandExecutionError."""
        try:
            return await self.post(endpoint, json=params or {})
        except ProviderUnavailable as e:
            if 400 <= e.status_code < 500 and e.status_code not in TRANSIENT_STATUS:
                raise CommandExecutionError(
                    f"{command} rejected by {self.name}: {e}", command=command
                ) from e
            raise

    @staticmethod
    def _check_command_result(payload: Any, command: str) -> dict:
        """Raise if the provider answered with result=false."""
        if not isinstance(payload, dict):
            return {"result": True, "response": payload}
        if payload.get("result") is False:
            reason = payload.get("reason") or "command refused by vehicle"
            raise CommandExecutionError(f"{command} failed: {reason}", command=command, reason=reason)
        return payload

    # --- Capabilities ---

    @abstractmethod
    async def list_vehicles(self) -> list[VehicleSummary]:
        """List all vehicles on the account."""

    @abstractmethod
    async def get_vehicle_data(self, vehicle_id: str) -> VehicleSnapshot:
        """Fetch a full, normalized vehicle snapshot."""

    @abstractmethod
    async def execute_command(self, vehicle_id: str, command: str, params: Optional[dict] = None) -> dict:
        """Send a named command; returns the provider's result payload."""

    @abstractmethod
    async def wake_vehicle(self, vehicle_id: str) -> str:
        """Wake the vehicle; returns the connectivity state reported afterwards."""
