"""Repository interfaces (ports) for the application layer.

Protocols define contracts that infrastructure implementations must fulfill (DIP).
All types reference application DTOs only; no infrastructure imports.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from app.application.dtos.query import QueryFilter


# Stats data source interface
class IStatsDataSource(Protocol):
    """Protocol for the remote store the dashboard statistics are read from.

    Every method scopes rows to user_id (except call_rpc, whose params carry
    the user). Implementations raise DataSourceException on failure.
    """

    async def count(
        self,
        table: str,
        user_id: str,
        filters: Sequence[QueryFilter] = (),
    ) -> int:
        """Return the exact number of rows in table for user_id matching filters."""

    async def fetch_rows(
        self,
        table: str,
        user_id: str,
        columns: Sequence[str],
        *,
        filters: Sequence[QueryFilter] = (),
        order_by: str | None = None,
        descending: bool = True,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return up to limit rows (only the requested columns)."""

    async def call_rpc(self, function: str, params: dict[str, Any]) -> Any:
        """Call a server-side SQL function and return its decoded JSON result."""
