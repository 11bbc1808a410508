"""Service interfaces (ports) for the application layer.

Protocols define contracts for caching and state publishing (DIP).
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from app.application.dtos.analytics import DashboardStats
    from app.application.use_cases.analytics import StatsState


# Stats cache interface
class IStatsCache(Protocol):
    """Protocol for the dashboard snapshot cache (memory + durable mirror)."""

    async def get(self, user_id: str) -> DashboardStats | None:
        """Return the cached snapshot for user_id or None."""

    async def set(self, user_id: str, snapshot: DashboardStats) -> None:
        """Store snapshot in memory and persist a copy to the durable mirror."""

    async def clear(self, user_id: str | None = None) -> None:
        """Evict one user, or every user when user_id is None."""

    def is_fresh(self, snapshot: DashboardStats, now: datetime | None = None) -> bool:
        """Return True if snapshot is younger than the cache duration."""


StatsListener = Callable[[str, "StatsState"], Awaitable[None]]
