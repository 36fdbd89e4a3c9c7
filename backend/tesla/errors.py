"""Error hierarchy shared by the provider clients and the vehicle gateway."""

from typing import Optional


class VehicleAPIError(Exception):
    """Base class for all vehicle API failures."""
    pass


class AuthenticationError(VehicleAPIError):
    """Credentials are missing, belong to another provider, or were rejected."""
    pass


class RateLimitExceeded(VehicleAPIError):
    """A local rate limit would be exceeded by this request."""

    def __init__(self, message: str, retry_after: float = 0.0, command_class: str = "general"):
        self.retry_after = retry_after
        self.command_class = command_class
        super().__init__(message)


class ProviderUnavailable(VehicleAPIError):
    """Network or remote failure talking to a provider."""

    def __init__(self, message: str, status_code: int = 0):
        self.status_code = status_code
        super().__init__(message)


class NoProviderAvailable(VehicleAPIError):
    """Neither provider could serve the request."""
    pass


class CommandExecutionError(VehicleAPIError):
    """The remote rejected a specific command."""

    def __init__(self, message: str, command: str = "", reason: Optional[str] = None):
        self.command = command
        self.reason = reason
        super().__init__(message)
