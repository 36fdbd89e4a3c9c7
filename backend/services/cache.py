"""Vehicle snapshot cache with age-based freshness.

Entries are never evicted on read: a stale entry stays available as the
last known good snapshot until a successful refresh replaces it.
"""

import time
import logging
import asyncio
from typing import Callable, Optional

from tesla.models import VehicleSnapshot

logger = logging.getLogger(__name__)

DEFAULT_FRESHNESS_SECONDS = 30


class CacheEntry:
    """Cache entry with snapshot and capture time."""

    def __init__(self, snapshot: VehicleSnapshot, captured_at: float):
        self.snapshot = snapshot
        self.captured_at = captured_at

    def age_seconds(self, now: float) -> float:
        """Get age of cache entry in seconds."""
        return now - self.captured_at


class VehicleSnapshotCache:
    """Most recent snapshot per vehicle id."""

    def __init__(
        self,
        freshness_seconds: float = DEFAULT_FRESHNESS_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.freshness_seconds = freshness_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()

    def is_fresh(self, entry: CacheEntry) -> bool:
        return entry.age_seconds(self._clock()) < self.freshness_seconds

    async def get(self, vehicle_id: str) -> tuple[Optional[VehicleSnapshot], bool]:
        """Return (snapshot, fresh). Reads the last committed entry without locking."""
        entry = self._entries.get(vehicle_id)
        if entry is None:
            return None, False

        fresh = self.is_fresh(entry)
        logger.debug(
            "Cache %s: %s (age: %.1fs)",
            "hit" if fresh else "stale", vehicle_id, entry.age_seconds(self._clock()),
        )
        return entry.snapshot, fresh

    async def put(self, vehicle_id: str, snapshot: VehicleSnapshot):
        """Replace the entry for a vehicle."""
        async with self._lock:
            self._entries[vehicle_id] = CacheEntry(snapshot, self._clock())
            logger.debug("Cache set: %s", vehicle_id)

    async def mark_state(self, vehicle_id: str, state: str):
        """Update the connectivity state of a cached snapshot, keeping its age."""
        async with self._lock:
            entry = self._entries.get(vehicle_id)
            if entry is None or entry.snapshot.state == state:
                return
            snapshot = entry.snapshot.model_copy(update={"state": state})
            self._entries[vehicle_id] = CacheEntry(snapshot, entry.captured_at)
            logger.debug("Cache state updated: %s -> %s", vehicle_id, state)

    async def invalidate(self, vehicle_id: str):
        """Delete a specific cache entry."""
        async with self._lock:
            if vehicle_id in self._entries:
                del self._entries[vehicle_id]
                logger.debug("Cache deleted: %s", vehicle_id)

    async def clear(self):
        """Clear all cache entries."""
        async with self._lock:
            count = len(self._entries)
            self._entries.clear()
            logger.info("Vehicle cache cleared: %d entries removed", count)

    def get_stats(self) -> dict:
        """Get cache statistics."""
        now = self._clock()
        entries = []
        for vehicle_id, entry in self._entries.items():
            entries.append({
                "vehicle_id": vehicle_id,
                "state": entry.snapshot.state,
                "age_seconds": round(entry.age_seconds(now), 1),
                "fresh": entry.age_seconds(now) < self.freshness_seconds,
            })

        return {
            "total_entries": len(entries),
            "fresh_entries": sum(1 for e in entries if e["fresh"]),
            "freshness_seconds": self.freshness_seconds,
            "entries": sorted(entries, key=lambda x: x["age_seconds"]),
        }
