"""Sliding-window rate limiting for provider API calls.

Every provider has its own call budget; wake commands additionally share
a stricter budget regardless of provider. Request history is pruned
lazily on write to the longest configured window, so memory is bounded
by call volume rather than uptime.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from tesla.errors import RateLimitExceeded
from tesla.models import ProviderKind

logger = logging.getLogger(__name__)

GENERAL = "general"
WAKE = "wake"


@dataclass(frozen=True)
class RateLimit:
    """A call budget over a rolling window."""

    calls: int
    window_seconds: float


@dataclass(frozen=True)
class RequestRecord:
    timestamp: float
    command_class: str
    provider: ProviderKind


DEFAULT_LIMITS = {
    ProviderKind.TESSIE: RateLimit(calls=200, window_seconds=900),  # 200 calls per 15 minutes
    ProviderKind.FLEET: RateLimit(calls=1000, window_seconds=86400),  # 1000 calls per day
}
DEFAULT_WAKE_LIMIT = RateLimit(calls=5, window_seconds=900)  # 5 wakes per 15 minutes


class RateLimiter:
    """Tracks provider requests inside rolling windows."""

    def __init__(
        self,
        limits: Optional[dict[ProviderKind, RateLimit]] = None,
        wake_limit: Optional[RateLimit] = None,
        provider: ProviderKind = ProviderKind.TESSIE,
        clock: Callable[[], float] = time.time,
    ):
        self.limits = dict(limits or DEFAULT_LIMITS)
        self.wake_limit = wake_limit or DEFAULT_WAKE_LIMIT
        self.provider = provider
        self._clock = clock
        self._history: list[RequestRecord] = []
        self._lock = threading.RLock()

    @property
    def max_window(self) -> float:
        windows = [limit.window_seconds for limit in self.limits.values()]
        return max(windows + [self.wake_limit.window_seconds])

    def _recent(self, history: list[RequestRecord], now: float, window: float, provider=None, command_class=None):
        return [
            r for r in history
            if now - r.timestamp < window
            and (provider is None or r.provider == provider)
            and (command_class is None or r.command_class == command_class)
        ]

    def _budgets(self, command_class: str, provider: ProviderKind):
        """(limit, provider filter, class filter) pairs that apply to a request."""
        budgets = [(self.limits[provider], provider, None)]
        if command_class == WAKE:
            budgets.append((self.wake_limit, None, WAKE))
        return budgets

    def can_make_request(self, command_class: str = GENERAL, provider: Optional[ProviderKind] = None) -> bool:
        """Check whether a request may be issued now. Never mutates history."""
        provider = provider or self.provider
        now = self._clock()
        history = self._history
        for limit, provider_filter, class_filter in self._budgets(command_class, provider):
            recent = self._recent(history, now, limit.window_seconds, provider_filter, class_filter)
            if len(recent) >= limit.calls:
                return False
        return True

    def record_request(self, command_class: str = GENERAL, provider: Optional[ProviderKind] = None):
        """Append a request to the history and prune expired records."""
        provider = provider or self.provider
        with self._lock:
            now = self._clock()
            max_window = self.max_window
            history = [r for r in self._history if now - r.timestamp < max_window]
            history.append(RequestRecord(timestamp=now, command_class=command_class, provider=provider))
            self._history = history

    def time_until_next_request(self, command_class: str = GENERAL, provider: Optional[ProviderKind] = None) -> float:
        """Seconds until a request of this class would be permitted (0 if now)."""
        provider = provider or self.provider
        now = self._clock()
        history = self._history
        wait = 0.0
        for limit, provider_filter, class_filter in self._budgets(command_class, provider):
            recent = self._recent(history, now, limit.window_seconds, provider_filter, class_filter)
            if len(recent) < limit.calls:
                continue
            timestamps = sorted(r.timestamp for r in recent)
            # The request frees up once enough of the oldest calls expire
            release_at = timestamps[len(recent) - limit.calls] + limit.window_seconds
            wait = max(wait, release_at - now)
        return max(0.0, wait)

    def acquire(self, command_class: str = GENERAL, provider: Optional[ProviderKind] = None):
        """Check and record in one step, raising RateLimitExceeded when over budget."""
        provider = provider or self.provider
        with self._lock:
            if self.can_make_request(command_class, provider):
                self.record_request(command_class, provider)
                return
            retry_after = self.time_until_next_request(command_class, provider)
        logger.warning(
            "Rate limit reached for %s %s requests, retry in %.0fs",
            provider.value, command_class, retry_after,
        )
        raise RateLimitExceeded(
            f"Rate limit exceeded for {provider.value} ({command_class})",
            retry_after=retry_after,
            command_class=command_class,
        )

    def get_stats(self, provider: Optional[ProviderKind] = None) -> dict:
        """Remaining headroom for the dashboard."""
        provider = provider or self.provider
        now = self._clock()
        history = self._history
        limit = self.limits[provider]
        used = len(self._recent(history, now, limit.window_seconds, provider))
        wakes = len(self._recent(history, now, self.wake_limit.window_seconds, None, WAKE))
        return {
            "provider": provider.value,
            "calls_used": used,
            "calls_limit": limit.calls,
            "window_seconds": limit.window_seconds,
            "wakes_used": wakes,
            "wakes_limit": self.wake_limit.calls,
            "seconds_until_next": round(self.time_until_next_request(GENERAL, provider), 1),
        }
