"""Dashboard snapshot cache: in-memory map plus a durable mirror.

One StatsCache is built per application (lifespan) and injected into the
stats use case; there is no module-level cache state. Reads hit memory
first, then the durable store (stale-while-revalidate: a persisted
snapshot is served even when stale, and the caller decides whether to
refetch with is_fresh).
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from app.application.dtos.analytics import DashboardStats
from app.infrastructure.cache.cache_protocol import CacheProtocol
from app.infrastructure.cache.keys import dashboard_stats_key, dashboard_stats_pattern
from app.shared.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class StatsCache:
    """Per-user DashboardStats cache with optional durable persistence.

    Writes are last-writer-wins. Durable failures are logged and never
    raised; the in-memory copy stays authoritative for this process.
    """

    def __init__(
        self,
        durable: CacheProtocol | None = None,
        duration_seconds: int = 24 * 60 * 60,
        durable_ttl_seconds: int | None = None,
    ) -> None:
        """Initialize the cache.

        Args:
            durable: Optional durable store (Redis CacheService); None keeps memory only.
            duration_seconds: Age after which a snapshot is stale.
            durable_ttl_seconds: TTL for persisted copies (None = no expiry).
        """
        self._memory: dict[str, DashboardStats] = {}
        self._durable = durable
        self._duration = timedelta(seconds=duration_seconds)
        self._durable_ttl = durable_ttl_seconds

    def peek(self, user_id: str) -> DashboardStats | None:
        """Return the in-memory snapshot only (no durable lookup)."""
        return self._memory.get(user_id)

    async def get(self, user_id: str) -> DashboardStats | None:
        """Return the snapshot for user_id from memory, else from the durable store."""
        snapshot = self._memory.get(user_id)
        if snapshot is not None:
            return snapshot
        if self._durable is None:
            return None
        key = dashboard_stats_key(user_id)
        payload = await self._durable.get(key)
        if payload is None:
            return None
        try:
            snapshot = DashboardStats.from_dict(payload)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning("Discarding corrupt persisted stats for user %s: %s", user_id, e)
            await self._durable.delete(key)
            return None
        self._memory[user_id] = snapshot
        logger.debug("Stats cache warmed from durable store for user %s", user_id)
        return snapshot

    async def set(self, user_id: str, snapshot: DashboardStats) -> None:
        """Store snapshot in memory and persist a serialized copy."""
        key = dashboard_stats_key(user_id)
        self._memory[user_id] = snapshot
        if self._durable is not None:
            stored = await self._durable.set(key, snapshot.to_dict(), ttl=self._durable_ttl)
            if not stored:
                logger.debug("Durable stats write skipped for user %s", user_id)

    async def clear(self, user_id: str | None = None) -> None:
        """Evict one user's snapshot, or all snapshots when user_id is None."""
        if user_id is None:
            self._memory.clear()
            if self._durable is not None:
                await self._durable.delete_pattern(dashboard_stats_pattern())
            logger.info("Stats cache cleared for all users")
            return
        self._memory.pop(user_id, None)
        if self._durable is not None:
            await self._durable.delete(dashboard_stats_key(user_id))
        logger.info("Stats cache cleared for user %s", user_id)

    def is_fresh(self, snapshot: DashboardStats, now: datetime | None = None) -> bool:
        """Return True if snapshot.last_fetched is younger than the cache duration."""
        now = now or utc_now()
        return now - snapshot.last_fetched < self._duration

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._memory
