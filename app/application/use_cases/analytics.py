"""Dashboard stats use case: two-phase fetch, caching, and incremental patches.

DashboardStatsService produces one DashboardStats snapshot per user:

- Phase 1 (summary): concurrent count queries and capped recent-item
  queries; the minimal snapshot is published immediately.
- Phase 2 (details): a background task runs the heavier aggregates one
  step at a time with a short pause between steps. Each RPC-backed step
  falls back to client-side aggregation when the RPC fails or times out,
  and every step yields an empty result rather than failing the fetch.

Published state (stats, loading, error, progress, phase) is pushed to
listeners after every change. Background work is tracked per user and
cancelled by close().
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from datetime import UTC, date, datetime, timedelta, tzinfo
from typing import TYPE_CHECKING, Any

from app.application.dtos.analytics import DashboardStats, SummaryCounts, VelocityPoint
from app.application.dtos.changes import ChangeEvent, parse_change_payload
from app.application.dtos.query import QueryFilter
from app.application.services import stats_calculator as calc
from app.application.services.stats_patcher import (
    RefreshDebouncer,
    apply_change,
    recent_document_from_row,
    recent_note_from_row,
    recent_recording_from_row,
)
from app.core.constants import (
    ACTIVITY_ROWS_LIMIT,
    CATEGORY_ROWS_LIMIT,
    DOCUMENT_ROWS_LIMIT,
    HOURLY_ROWS_LIMIT,
    QUIZ_ROWS_LIMIT,
    RECENT_ITEMS_LIMIT,
    RPC_ACTIVITY_STATS,
    RPC_LEARNING_VELOCITY,
    RPC_USER_STREAK,
    SCHEDULE_ROWS_LIMIT,
    STREAK_ROWS_LIMIT,
    STUDY_TIME_ROWS_LIMIT,
    TABLE_DOCUMENTS,
    TABLE_MESSAGES,
    TABLE_NOTES,
    TABLE_QUIZ_ATTEMPTS,
    TABLE_RECORDINGS,
    TABLE_SCHEDULE_ITEMS,
    VELOCITY_RPC_WEEKS,
    VELOCITY_SAMPLED_WEEKS,
)
from app.domain.enums import StatsPhase
from app.domain.exceptions import (
    ChangeEventException,
    DataSourceException,
    ValidationException,
)
from app.shared.telemetry.tracing import add_span_attributes, add_span_event, traced
from app.shared.utils.datetime import start_of_local_day, utc_now

if TYPE_CHECKING:
    from app.application.interfaces.repositories import IStatsDataSource
    from app.application.interfaces.services import IStatsCache, StatsListener

logger = logging.getLogger(__name__)

# Progress reported once the summary is published; details fill the rest.
SUMMARY_PROGRESS = 20

# (table, timestamp column) per activity category
_ACTIVITY_SOURCES: dict[str, tuple[str, str]] = {
    "notes": (TABLE_NOTES, "created_at"),
    "recordings": (TABLE_RECORDINGS, "created_at"),
    "documents": (TABLE_DOCUMENTS, "created_at"),
    "messages": (TABLE_MESSAGES, "timestamp"),
}


@dataclass(frozen=True)
class StatsState:
    """Observable per-user state: what a dashboard client renders."""

    stats: DashboardStats | None = None
    loading: bool = False
    error: str | None = None
    progress: int = 0
    phase: StatsPhase = StatsPhase.IDLE
    is_cached: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "stats": self.stats.to_dict() if self.stats else None,
            "loading": self.loading,
            "error": self.error,
            "progress": self.progress,
            "phase": self.phase.value,
            "is_cached": self.is_cached,
        }


@dataclass(frozen=True)
class StatsTimings:
    """Delays and timeouts (seconds) for the fetch pipeline."""

    count_retry_delay: float = 0.5
    rpc_timeout: float = 4.0
    step_timeout: float = 8.0
    step_delay: float = 0.15
    refresh_debounce: float = 0.8


_DetailStep = Callable[[str, datetime], Awaitable[dict[str, Any]]]


class DashboardStatsService:
    """Aggregates, caches, and patches dashboard statistics per user.

    At most one fetch runs per user; concurrent callers get the currently
    published snapshot, or join the running fetch when they pass wait=True.
    The cache is injected (no module-level state).
    """

    def __init__(
        self,
        source: "IStatsDataSource",
        cache: "IStatsCache",
        timings: StatsTimings | None = None,
        tz: tzinfo = UTC,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.source = source
        self.cache = cache
        self.timings = timings or StatsTimings()
        self.tz = tz
        self._clock = clock
        self._states: dict[str, StatsState] = {}
        self._in_flight: set[str] = set()
        self._fetch_tasks: dict[str, asyncio.Task[None]] = {}
        self._listeners: list[StatsListener] = []
        self._debouncer = RefreshDebouncer(self._debounced_refresh, self.timings.refresh_debounce)
        self._detail_steps: list[tuple[str, _DetailStep]] = [
            ("activity_7_days", self._step_activity_7_days),
            ("activity_30_days", self._step_activity_30_days),
            ("hourly_activity", self._step_hourly_activity),
            ("streak", self._step_streak),
            ("learning_velocity", self._step_learning_velocity),
            ("study_time", self._step_study_time),
            ("documents", self._step_documents),
            ("categories", self._step_categories),
            ("schedule", self._step_schedule),
            ("quizzes", self._step_quizzes),
        ]

    # ---- Observable state ----

    def add_listener(self, listener: "StatsListener") -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: "StatsListener") -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def get_state(self, user_id: str) -> StatsState:
        return self._states.get(user_id, StatsState())

    def is_fetching(self, user_id: str) -> bool:
        return user_id in self._in_flight

    async def _publish(self, user_id: str, **changes: Any) -> StatsState:
        state = replace(self.get_state(user_id), **changes)
        self._states[user_id] = state
        for listener in list(self._listeners):
            try:
                await listener(user_id, state)
            except Exception:
                logger.exception("Stats listener failed for user %s", user_id)
        return state

    # ---- Fetch ----

    async def get_dashboard_stats(
        self,
        user_id: str,
        force_refresh: bool = False,
        wait: bool = False,
    ) -> DashboardStats | None:
        """Return the user's snapshot, fetching when the cache is missing or stale.

        Args:
            user_id: Supabase auth user id (required).
            force_refresh: Ignore a fresh cache entry and refetch.
            wait: Also wait for the detail phase instead of returning after
                the summary is published.

        Returns:
            The freshest snapshot available (cached, summary, or merged);
            None only if a fetch is already running and nothing was published yet.

        Raises:
            ValidationException: If user_id is empty.
        """
        if not user_id or not user_id.strip():
            raise ValidationException("user_id is required", field="user_id")

        cached = None
        if not force_refresh:
            cached = await self.cache.get(user_id)
            if cached is not None and self.cache.is_fresh(cached, self._clock()):
                logger.debug("Dashboard stats cache hit for user %s", user_id)
                await self._publish(
                    user_id,
                    stats=cached,
                    loading=False,
                    error=None,
                    progress=100,
                    phase=StatsPhase.PUBLISHED,
                    is_cached=True,
                )
                return cached

        if user_id in self._in_flight:
            logger.debug("Dashboard stats fetch already in flight for user %s", user_id)
            running = self._fetch_tasks.get(user_id)
            if wait and running is not None:
                return await self._await_fetch(user_id, running)
            return self.get_state(user_id).stats

        if cached is not None:
            # Stale entry: show it while the refetch runs
            await self._publish(user_id, stats=cached, is_cached=True)

        self._in_flight.add(user_id)
        summary_ready: asyncio.Future[DashboardStats | None] = (
            asyncio.get_running_loop().create_future()
        )
        task = asyncio.create_task(
            self._run_fetch(user_id, summary_ready), name=f"dashboard-stats:{user_id}"
        )
        self._fetch_tasks[user_id] = task
        snapshot = await summary_ready
        if wait:
            return await self._await_fetch(user_id, task)
        return snapshot

    async def _await_fetch(self, user_id: str, task: asyncio.Task[None]) -> DashboardStats | None:
        """Wait for a running fetch without cancelling it if the caller goes away."""
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                return self.get_state(user_id).stats
            raise
        return self.get_state(user_id).stats

    async def refresh(self, user_id: str, wait: bool = False) -> DashboardStats | None:
        """Force a refetch (manual refresh / retry)."""
        return await self.get_dashboard_stats(user_id, force_refresh=True, wait=wait)

    async def reload_charts(self, user_id: str) -> DashboardStats | None:
        """Refetch the hourly and 30-day series into the published snapshot.

        Does nothing while a fetch is running or before anything is published.
        A series whose step fails keeps its previous value.
        """
        if not user_id or not user_id.strip():
            raise ValidationException("user_id is required", field="user_id")
        current = self.get_state(user_id).stats
        if current is None or user_id in self._in_flight:
            return current

        now = self._clock()
        hourly, monthly = await asyncio.gather(
            self._run_step("hourly_activity", self._step_hourly_activity, user_id, now),
            self._run_step("activity_30_days", self._step_activity_30_days, user_id, now),
        )
        if not hourly and not monthly:
            return current
        # A patch may have landed while the steps ran
        latest = self.get_state(user_id).stats or current
        merged = calc.derive_rates(replace(latest, **hourly, **monthly))
        if await self.cache.get(user_id) is not None:
            await self.cache.set(user_id, merged)
        await self._publish(user_id, stats=merged)
        return merged

    async def _run_fetch(
        self,
        user_id: str,
        summary_ready: asyncio.Future[DashboardStats | None],
    ) -> None:
        try:
            await self._publish(
                user_id,
                loading=True,
                error=None,
                progress=0,
                phase=StatsPhase.FETCHING_SUMMARY,
            )
            try:
                snapshot = await self._fetch_summary(user_id)
            except Exception as e:
                logger.exception("Dashboard stats summary failed for user %s", user_id)
                fallback = self.get_state(user_id).stats or DashboardStats(
                    last_fetched=self._clock()
                )
                await self._publish(
                    user_id,
                    stats=fallback,
                    loading=False,
                    error=str(e) or "Failed to load dashboard statistics",
                    progress=0,
                    phase=StatsPhase.FAILED,
                )
                return

            await self._publish(
                user_id,
                stats=snapshot,
                progress=SUMMARY_PROGRESS,
                phase=StatsPhase.PUBLISHED_SUMMARY,
                is_cached=False,
            )
            summary_ready.set_result(snapshot)

            await self._publish(user_id, phase=StatsPhase.FETCHING_DETAILS)
            merged = await self._fetch_details(user_id, snapshot)
            await self.cache.set(user_id, merged)
            await self._publish(
                user_id,
                stats=merged,
                loading=False,
                progress=100,
                phase=StatsPhase.PUBLISHED,
                is_cached=True,
            )
        finally:
            self._in_flight.discard(user_id)
            if self._fetch_tasks.get(user_id) is asyncio.current_task():
                del self._fetch_tasks[user_id]
            if not summary_ready.done():
                summary_ready.set_result(self.get_state(user_id).stats)

    # ---- Phase 1: summary ----

    async def _count(self, table: str, user_id: str, filters: tuple[QueryFilter, ...] = ()) -> int:
        """Count rows, retrying once after a short delay; 0 if both attempts fail."""
        try:
            return await self.source.count(table, user_id, filters)
        except DataSourceException as e:
            logger.warning("Count on %s failed (%s); retrying once", table, e.message)
        await asyncio.sleep(self.timings.count_retry_delay)
        try:
            return await self.source.count(table, user_id, filters)
        except DataSourceException as e:
            logger.warning("Count on %s failed after retry: %s", table, e.message)
            return 0

    async def _recent(self, table: str, user_id: str, columns: tuple[str, ...]) -> list[dict[str, Any]]:
        try:
            return await self.source.fetch_rows(
                table,
                user_id,
                columns,
                order_by="created_at",
                descending=True,
                limit=RECENT_ITEMS_LIMIT,
            )
        except DataSourceException as e:
            logger.warning("Recent %s query failed: %s", table, e.message)
            return []

    @traced("dashboard_stats.summary")
    async def _fetch_summary(self, user_id: str) -> DashboardStats:
        add_span_attributes(user_id=user_id)
        (
            total_notes,
            total_recordings,
            total_documents,
            total_messages,
            total_schedule_items,
            total_quizzes_taken,
            notes_with_ai,
            notes_rows,
            recording_rows,
            document_rows,
        ) = await asyncio.gather(
            self._count(TABLE_NOTES, user_id),
            self._count(TABLE_RECORDINGS, user_id),
            self._count(TABLE_DOCUMENTS, user_id),
            self._count(TABLE_MESSAGES, user_id),
            self._count(TABLE_SCHEDULE_ITEMS, user_id),
            self._count(TABLE_QUIZ_ATTEMPTS, user_id),
            self._count(TABLE_NOTES, user_id, (QueryFilter("ai_summary", "not_null"),)),
            self._recent(TABLE_NOTES, user_id, ("id", "title", "category", "created_at")),
            self._recent(TABLE_RECORDINGS, user_id, ("id", "title", "duration", "created_at")),
            self._recent(
                TABLE_DOCUMENTS,
                user_id,
                ("id", "title", "type", "created_at", "processing_status"),
            ),
        )
        counts = SummaryCounts(
            total_notes=total_notes,
            total_recordings=total_recordings,
            total_documents=total_documents,
            total_messages=total_messages,
            total_schedule_items=total_schedule_items,
            total_quizzes_taken=total_quizzes_taken,
            notes_with_ai=min(notes_with_ai, total_notes),
            recent_notes=tuple(recent_note_from_row(r) for r in notes_rows[:RECENT_ITEMS_LIMIT]),
            recent_recordings=tuple(
                recent_recording_from_row(r) for r in recording_rows[:RECENT_ITEMS_LIMIT]
            ),
            recent_documents=tuple(
                recent_document_from_row(r) for r in document_rows[:RECENT_ITEMS_LIMIT]
            ),
        )
        return calc.derive_rates(
            DashboardStats(**_fields_of(counts), last_fetched=self._next_fetch_time(user_id))
        )

    def _next_fetch_time(self, user_id: str) -> datetime:
        """Now, but never earlier than the previous snapshot's last_fetched."""
        now = self._clock()
        previous = self.get_state(user_id).stats
        if previous is not None and previous.last_fetched > now:
            return previous.last_fetched
        return now

    # ---- Phase 2: details ----

    @traced("dashboard_stats.details")
    async def _fetch_details(self, user_id: str, snapshot: DashboardStats) -> DashboardStats:
        add_span_attributes(user_id=user_id)
        now = self._clock()
        changes: dict[str, Any] = {}
        total = len(self._detail_steps)
        for index, (name, step) in enumerate(self._detail_steps):
            if index:
                await asyncio.sleep(self.timings.step_delay)
            changes.update(await self._run_step(name, step, user_id, now))
            progress = SUMMARY_PROGRESS + round((100 - SUMMARY_PROGRESS) * (index + 1) / total)
            await self._publish(user_id, progress=min(99, progress))
        try:
            return calc.derive_rates(replace(snapshot, **changes))
        except (TypeError, ValueError):
            logger.exception("Merging detail stats failed for user %s", user_id)
            return snapshot

    async def _run_step(
        self,
        name: str,
        step: _DetailStep,
        user_id: str,
        now: datetime,
    ) -> dict[str, Any]:
        try:
            return await asyncio.wait_for(step(user_id, now), timeout=self.timings.step_timeout)
        except TimeoutError:
            logger.warning("Stats step %s timed out for user %s", name, user_id)
        except DataSourceException as e:
            logger.warning("Stats step %s failed for user %s: %s", name, user_id, e.message)
        except Exception:
            logger.exception("Stats step %s crashed for user %s", name, user_id)
        add_span_event("stats_step_failed", {"step": name})
        return {}

    async def _rpc_or_none(self, function: str, params: dict[str, Any]) -> Any:
        """Call an aggregate RPC with the RPC timeout; None means use the fallback."""
        try:
            return await asyncio.wait_for(
                self.source.call_rpc(function, params), timeout=self.timings.rpc_timeout
            )
        except TimeoutError:
            logger.info("RPC %s timed out; using client-side aggregation", function)
        except DataSourceException as e:
            logger.info("RPC %s unavailable (%s); using client-side aggregation", function, e.message)
        add_span_event("stats_rpc_fallback", {"function": function})
        return None

    def _local_day_start_iso(self, day: date) -> str:
        return start_of_local_day(day, self.tz).isoformat()

    async def _activity_rows(
        self,
        user_id: str,
        since: str,
        until: str,
        limit: int,
    ) -> dict[str, list[dict[str, Any]]]:
        results = await asyncio.gather(
            *(
                self.source.fetch_rows(
                    table,
                    user_id,
                    (column,),
                    filters=QueryFilter.between(column, since, until),
                    limit=limit,
                )
                for table, column in _ACTIVITY_SOURCES.values()
            )
        )
        return dict(zip(_ACTIVITY_SOURCES, results))

    async def _daily_activity(self, user_id: str, now: datetime, days: int) -> tuple:
        today = now.astimezone(self.tz).date()
        data = await self._rpc_or_none(RPC_ACTIVITY_STATS, {"p_user_id": user_id, "p_days": days})
        if isinstance(data, list) and data:
            return calc.activity_from_rpc(data, days, today)
        since = self._local_day_start_iso(calc.window_start(today, days))
        rows = await self._activity_rows(user_id, since, now.isoformat(), ACTIVITY_ROWS_LIMIT)
        return calc.build_daily_activity(days, rows, self.tz, today)

    async def _step_activity_7_days(self, user_id: str, now: datetime) -> dict[str, Any]:
        return {"activity_7_days": await self._daily_activity(user_id, now, 7)}

    async def _step_activity_30_days(self, user_id: str, now: datetime) -> dict[str, Any]:
        series = await self._daily_activity(user_id, now, 30)
        return {
            "activity_30_days": series,
            "weekday_activity": calc.build_weekday_activity(series),
        }

    async def _step_hourly_activity(self, user_id: str, now: datetime) -> dict[str, Any]:
        since = (now - timedelta(days=7)).isoformat()
        rows = await self._activity_rows(user_id, since, now.isoformat(), HOURLY_ROWS_LIMIT)
        return {"hourly_activity": calc.build_hourly_activity(rows, self.tz)}

    async def _step_streak(self, user_id: str, now: datetime) -> dict[str, Any]:
        data = await self._rpc_or_none(RPC_USER_STREAK, {"p_user_id": user_id})
        if data is not None:
            streak = calc.streak_from_rpc(data)
        else:
            rows = await self.source.fetch_rows(
                TABLE_NOTES,
                user_id,
                ("created_at",),
                order_by="created_at",
                descending=True,
                limit=STREAK_ROWS_LIMIT,
            )
            streak = calc.streak_from_rows(rows, self.tz, now.astimezone(self.tz).date())
        return {"current_streak": streak.current, "max_streak": streak.longest}

    async def _step_learning_velocity(self, user_id: str, now: datetime) -> dict[str, Any]:
        data = await self._rpc_or_none(
            RPC_LEARNING_VELOCITY, {"p_user_id": user_id, "p_weeks": VELOCITY_RPC_WEEKS}
        )
        if isinstance(data, list) and data:
            return {"learning_velocity": calc.velocity_from_rpc(data)}
        today = now.astimezone(self.tz).date()
        windows = []
        for i in range(VELOCITY_SAMPLED_WEEKS - 1, -1, -1):
            week_start = today - timedelta(days=i * 7 + 6)
            week_end = today - timedelta(days=i * 7) + timedelta(days=1)
            windows.append((week_start, week_end))
        counts = await asyncio.gather(
            *(
                self.source.count(
                    TABLE_NOTES,
                    user_id,
                    (
                        QueryFilter("created_at", "gte", self._local_day_start_iso(start)),
                        QueryFilter("created_at", "lt", self._local_day_start_iso(end)),
                    ),
                )
                for start, end in windows
            )
        )
        return {
            "learning_velocity": tuple(
                VelocityPoint(week=f"W{i + 1}", items=count) for i, count in enumerate(counts)
            )
        }

    async def _step_study_time(self, user_id: str, now: datetime) -> dict[str, Any]:
        rows = await self.source.fetch_rows(
            TABLE_RECORDINGS, user_id, ("duration", "created_at"), limit=STUDY_TIME_ROWS_LIMIT
        )
        summary = calc.summarize_study_time(rows, now)
        return {
            "total_study_time": summary.total,
            "study_time_this_week": summary.this_week,
            "study_time_this_month": summary.this_month,
        }

    async def _step_documents(self, user_id: str, now: datetime) -> dict[str, Any]:
        rows = await self.source.fetch_rows(
            TABLE_DOCUMENTS,
            user_id,
            ("processing_status", "file_size", "created_at"),
            limit=DOCUMENT_ROWS_LIMIT,
        )
        breakdown = calc.summarize_documents(rows)
        return {
            "documents_processed": breakdown.processed,
            "documents_pending": breakdown.pending,
            "documents_failed": breakdown.failed,
            "total_document_size": breakdown.total_size,
        }

    async def _step_categories(self, user_id: str, now: datetime) -> dict[str, Any]:
        rows = await self.source.fetch_rows(
            TABLE_NOTES, user_id, ("category",), limit=CATEGORY_ROWS_LIMIT
        )
        summary = calc.summarize_categories(rows)
        return {"category_data": summary.category_data, "top_categories": summary.top_categories}

    async def _step_schedule(self, user_id: str, now: datetime) -> dict[str, Any]:
        rows = await self.source.fetch_rows(
            TABLE_SCHEDULE_ITEMS,
            user_id,
            ("start_time", "end_time"),
            filters=(QueryFilter("start_time", "gte", (now - timedelta(days=30)).isoformat()),),
            limit=SCHEDULE_ROWS_LIMIT,
        )
        summary = calc.summarize_schedule(rows, now, self.tz)
        return {
            "today_tasks": summary.today,
            "upcoming_tasks": summary.upcoming,
            "completed_tasks": summary.completed,
            "overdue_tasks": summary.overdue,
        }

    async def _step_quizzes(self, user_id: str, now: datetime) -> dict[str, Any]:
        rows = await self.source.fetch_rows(
            TABLE_QUIZ_ATTEMPTS, user_id, ("score", "total_questions"), limit=QUIZ_ROWS_LIMIT
        )
        return {"avg_quiz_score": calc.average_quiz_score(rows)}

    # ---- Incremental patches ----

    async def apply_change(self, user_id: str, event: ChangeEvent) -> DashboardStats | None:
        """Patch the user's cached snapshot from one change event.

        Returns:
            The patched snapshot, or None when nothing is cached for the user
            or the event needs a (debounced) full refresh instead.
        """
        snapshot = await self.cache.get(user_id)
        if snapshot is None:
            logger.debug("No cached stats for user %s; ignoring change event", user_id)
            return None
        # A running fetch owns the published state; only the cache is patched
        fetching = user_id in self._in_flight
        if not fetching:
            self._states[user_id] = replace(self.get_state(user_id), phase=StatsPhase.PATCHING)
        result = apply_change(snapshot, event)
        if result.snapshot is None:
            logger.info(
                "Change event for user %s needs a refresh: %s", user_id, result.refresh_reason
            )
            if not fetching:
                self._states[user_id] = replace(
                    self.get_state(user_id), phase=StatsPhase.PUBLISHED
                )
            self._debouncer.trigger(user_id)
            return None
        await self.cache.set(user_id, result.snapshot)
        if fetching:
            return result.snapshot
        await self._publish(
            user_id,
            stats=result.snapshot,
            phase=StatsPhase.PUBLISHED,
            is_cached=True,
        )
        return result.snapshot

    async def handle_change_payload(self, user_id: str, payload: dict[str, Any]) -> DashboardStats | None:
        """Parse a raw Realtime/webhook payload and apply it for user_id.

        A payload that cannot be parsed schedules a refresh for users the
        service is already tracking.
        """
        try:
            event = parse_change_payload(payload)
        except ChangeEventException as e:
            logger.warning("Dropping change payload for user %s: %s", user_id, e.message)
            if user_id in self._states:
                self._debouncer.trigger(user_id)
            return None
        return await self.apply_change(user_id, event)

    async def _debounced_refresh(self, user_id: str) -> None:
        await self.get_dashboard_stats(user_id, force_refresh=True)

    def refresh_pending(self, user_id: str) -> bool:
        return self._debouncer.is_pending(user_id)

    # ---- Cache & teardown ----

    async def clear_cache(self, user_id: str | None = None) -> None:
        """Evict cached snapshots for one user (or everyone)."""
        await self.cache.clear(user_id)
        if user_id is None:
            self._states = {
                uid: replace(state, is_cached=False) for uid, state in self._states.items()
            }
        elif user_id in self._states:
            self._states[user_id] = replace(self._states[user_id], is_cached=False)

    async def close(self, user_id: str | None = None) -> None:
        """Cancel background fetches and pending refreshes (one user or all).

        Cancelled work never publishes; the user's phase becomes CLOSED.
        """
        if user_id is None:
            await self._debouncer.cancel_all()
            user_ids = list(set(self._fetch_tasks) | set(self._states))
        else:
            user_ids = [user_id]
        for uid in user_ids:
            await self._debouncer.cancel(uid)
            task = self._fetch_tasks.pop(uid, None)
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
            self._in_flight.discard(uid)
            if uid in self._states:
                self._states[uid] = replace(
                    self._states[uid], loading=False, phase=StatsPhase.CLOSED
                )


def _fields_of(obj: Any) -> dict[str, Any]:
    """Top-level dataclass fields as a dict, keeping nested values as-is."""
    return {name: getattr(obj, name) for name in obj.__dataclass_fields__}
