"""Incremental patching of cached dashboard snapshots from change events.

apply_change is a pure reducer: (snapshot, event) -> PatchResult. Anything
it cannot apply exactly (updates, unknown tables, malformed rows) comes back
as needs_refresh, and the caller schedules a debounced full refresh with
RefreshDebouncer.

Change events carry no deduplication key, so a replayed insert is counted
twice until the next full refresh.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import Any

from app.application.dtos.analytics import (
    DashboardStats,
    RecentDocument,
    RecentNote,
    RecentRecording,
)
from app.application.dtos.changes import ChangeEvent, Deleted, Inserted, Unknown
from app.application.services.stats_calculator import derive_rates
from app.core.constants import (
    RECENT_ITEMS_LIMIT,
    TABLE_DOCUMENTS,
    TABLE_MESSAGES,
    TABLE_NOTES,
    TABLE_RECORDINGS,
    TABLE_SCHEDULE_ITEMS,
)

logger = logging.getLogger(__name__)

# Counter field per tracked table
COUNTER_BY_TABLE: dict[str, str] = {
    TABLE_NOTES: "total_notes",
    TABLE_RECORDINGS: "total_recordings",
    TABLE_DOCUMENTS: "total_documents",
    TABLE_MESSAGES: "total_messages",
    TABLE_SCHEDULE_ITEMS: "total_schedule_items",
}

# Recent-list field per table that has one
RECENT_BY_TABLE: dict[str, str] = {
    TABLE_NOTES: "recent_notes",
    TABLE_RECORDINGS: "recent_recordings",
    TABLE_DOCUMENTS: "recent_documents",
}


def recent_note_from_row(row: dict[str, Any]) -> RecentNote:
    return RecentNote(
        id=str(row["id"]),
        title=row.get("title") or "",
        category=row.get("category"),
        created_at=str(row.get("created_at") or ""),
    )


def recent_recording_from_row(row: dict[str, Any]) -> RecentRecording:
    return RecentRecording(
        id=str(row["id"]),
        title=row.get("title") or "",
        duration=int(row.get("duration") or 0),
        created_at=str(row.get("created_at") or ""),
    )


def recent_document_from_row(row: dict[str, Any]) -> RecentDocument:
    return RecentDocument(
        id=str(row["id"]),
        title=row.get("title") or "",
        type=row.get("type"),
        created_at=str(row.get("created_at") or ""),
        processing_status=row.get("processing_status"),
    )


RECENT_ITEM_BUILDERS: dict[str, Callable[[dict[str, Any]], Any]] = {
    TABLE_NOTES: recent_note_from_row,
    TABLE_RECORDINGS: recent_recording_from_row,
    TABLE_DOCUMENTS: recent_document_from_row,
}


@dataclass(frozen=True)
class PatchResult:
    """Outcome of applying one change event.

    Exactly one of snapshot (patched) or refresh_reason (fall back to a
    full refresh) is set.
    """

    snapshot: DashboardStats | None = None
    refresh_reason: str | None = None

    @property
    def needs_refresh(self) -> bool:
        return self.snapshot is None


def _refresh(reason: str) -> PatchResult:
    return PatchResult(refresh_reason=reason)


def _apply_insert(snapshot: DashboardStats, event: Inserted) -> DashboardStats:
    counter = COUNTER_BY_TABLE[event.table]
    changes: dict[str, Any] = {counter: getattr(snapshot, counter) + 1}
    if event.table == TABLE_NOTES and event.record.get("ai_summary"):
        changes["notes_with_ai"] = snapshot.notes_with_ai + 1
    recent_field = RECENT_BY_TABLE.get(event.table)
    if recent_field:
        item = RECENT_ITEM_BUILDERS[event.table](event.record)
        current = getattr(snapshot, recent_field)
        changes[recent_field] = ((item,) + current)[:RECENT_ITEMS_LIMIT]
    return replace(snapshot, **changes)


def _apply_delete(snapshot: DashboardStats, event: Deleted) -> DashboardStats:
    counter = COUNTER_BY_TABLE[event.table]
    changes: dict[str, Any] = {counter: max(0, getattr(snapshot, counter) - 1)}
    if event.table == TABLE_NOTES:
        # AI-summarized notes cannot exceed total notes after a delete
        changes["notes_with_ai"] = min(snapshot.notes_with_ai, changes[counter])
    recent_field = RECENT_BY_TABLE.get(event.table)
    if recent_field:
        deleted_id = str(event.old_record["id"])
        changes[recent_field] = tuple(
            item for item in getattr(snapshot, recent_field) if item.id != deleted_id
        )
    return replace(snapshot, **changes)


def apply_change(snapshot: DashboardStats, event: ChangeEvent) -> PatchResult:
    """Apply one change event to snapshot without refetching.

    Insert: counter +1 and the row is prepended to its recent list (capped).
    Delete: counter -1 (floored at 0) and the row is dropped from its recent list.
    Derived rates are recomputed after either.

    Returns:
        PatchResult with the patched snapshot, or a refresh reason for
        unknown tables/events and rows the patcher cannot read.
    """
    if isinstance(event, Unknown):
        return _refresh(event.reason)
    if event.table not in COUNTER_BY_TABLE:
        return _refresh(f"untracked table {event.table}")
    try:
        if isinstance(event, Inserted):
            patched = _apply_insert(snapshot, event)
        elif isinstance(event, Deleted):
            patched = _apply_delete(snapshot, event)
        else:
            return _refresh(f"unsupported event {type(event).__name__}")
        return PatchResult(snapshot=derive_rates(patched))
    except (KeyError, TypeError, ValueError) as e:
        logger.warning("Patch failed for %s on %s: %s", type(event).__name__, event.table, e)
        return _refresh(f"patch error: {e}")


class RefreshDebouncer:
    """Collapse bursts of refresh requests per user into one call.

    trigger(user_id) (re)starts a timer; the callback runs once the user
    has been quiet for delay seconds. cancel/cancel_all stop pending timers.
    """

    def __init__(
        self,
        callback: Callable[[str], Awaitable[Any]],
        delay: float,
    ) -> None:
        self._callback = callback
        self._delay = delay
        self._pending: dict[str, asyncio.Task[None]] = {}

    def trigger(self, user_id: str) -> None:
        existing = self._pending.get(user_id)
        if existing is not None and not existing.done():
            existing.cancel()
        self._pending[user_id] = asyncio.create_task(
            self._fire_after_delay(user_id), name=f"stats-refresh-debounce:{user_id}"
        )

    def is_pending(self, user_id: str) -> bool:
        task = self._pending.get(user_id)
        return task is not None and not task.done()

    async def _fire_after_delay(self, user_id: str) -> None:
        await asyncio.sleep(self._delay)
        current = asyncio.current_task()
        if self._pending.get(user_id) is current:
            del self._pending[user_id]
        try:
            await self._callback(user_id)
        except Exception:
            logger.exception("Debounced stats refresh failed for user %s", user_id)

    async def cancel(self, user_id: str) -> None:
        task = self._pending.pop(user_id, None)
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def cancel_all(self) -> None:
        for user_id in list(self._pending):
            await self.cancel(user_id)
