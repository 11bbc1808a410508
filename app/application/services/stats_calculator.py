"""Client-side statistics aggregation for the dashboard.

Pure functions over rows already fetched from the data source. Used as the
fallback path when a server-side RPC is missing or slow, and to derive
rates (AI usage, engagement) from a snapshot. No I/O here.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import replace
from datetime import date, datetime, timedelta, tzinfo
from typing import Any

from app.application.dtos.analytics import (
    ActivityBucket,
    CategoryCount,
    CategorySlice,
    CategorySummary,
    DashboardStats,
    DocumentBreakdown,
    ScheduleSummary,
    StreakSummary,
    StudyTimeSummary,
    VelocityPoint,
)
from app.core.constants import (
    DEFAULT_CATEGORY,
    DEFAULT_PRODUCTIVE_DAY,
    DEFAULT_PRODUCTIVE_HOUR,
    TOP_CATEGORIES_LIMIT,
    WEEKDAY_LABELS,
)
from app.domain.enums import DocumentStatus
from app.shared.utils.datetime import parse_timestamp

logger = logging.getLogger(__name__)

# Activity categories in bucket field order
CATEGORIES = ("notes", "recordings", "documents", "messages")

# Engagement score weights (each factor is capped at 1.0 before weighting)
ENGAGEMENT_WEIGHTS: dict[str, float] = {
    "streak": 20.0,
    "notes_per_day": 20.0,
    "ai_usage": 15.0,
    "study_time": 20.0,
    "variety": 15.0,
    "consistency": 10.0,
}
STREAK_TARGET_DAYS = 30
NOTES_PER_DAY_TARGET = 5
STUDY_SECONDS_PER_DAY_TARGET = 3600
VARIETY_TARGET_ITEMS = 100
WEEKLY_NOTES_TARGET = 7


def _row_time(row: Mapping[str, Any]) -> datetime | None:
    # chat_messages use "timestamp"; every other table uses "created_at"
    return parse_timestamp(row.get("created_at") or row.get("timestamp"))


def window_start(today: date, days: int) -> date:
    """First day of an inclusive window of days ending today."""
    return today - timedelta(days=days - 1)


def build_daily_activity(
    days: int,
    rows_by_category: Mapping[str, Iterable[Mapping[str, Any]]],
    tz: tzinfo,
    today: date,
) -> tuple[ActivityBucket, ...]:
    """Count rows per local day for the last `days` days (oldest first).

    Labels are ISO dates. Rows outside the window or without a timestamp
    are ignored.
    """
    start = window_start(today, days)
    counts: dict[date, Counter[str]] = {
        start + timedelta(days=i): Counter() for i in range(days)
    }
    for category, rows in rows_by_category.items():
        if category not in CATEGORIES:
            raise ValueError(f"Unknown activity category: {category!r}")
        for row in rows:
            ts = _row_time(row)
            if ts is None:
                continue
            day = ts.astimezone(tz).date()
            if day in counts:
                counts[day][category] += 1
    return tuple(
        ActivityBucket.from_counts(day.isoformat(), **{c: counter[c] for c in CATEGORIES})
        for day, counter in counts.items()
    )


def activity_from_rpc(
    rows: Sequence[Mapping[str, Any]],
    days: int,
    today: date,
) -> tuple[ActivityBucket, ...]:
    """Normalize get_user_activity_stats rows into a fixed-length daily series.

    Missing days are zero-filled; server totals are recomputed from the
    category counts.
    """
    by_day: dict[str, Mapping[str, Any]] = {}
    for row in rows:
        label = str(row.get("date", ""))[:10]
        try:
            date.fromisoformat(label)
        except ValueError:
            logger.debug("Skipping activity row with non-ISO date: %r", row.get("date"))
            continue
        by_day[label] = row
    start = window_start(today, days)
    series = []
    for i in range(days):
        label = (start + timedelta(days=i)).isoformat()
        row = by_day.get(label, {})
        series.append(
            ActivityBucket.from_counts(
                label, **{c: max(0, int(row.get(c) or 0)) for c in CATEGORIES}
            )
        )
    return tuple(series)


def build_hourly_activity(
    rows_by_category: Mapping[str, Iterable[Mapping[str, Any]]],
    tz: tzinfo,
) -> tuple[ActivityBucket, ...]:
    """Histogram of rows by local hour of day (24 buckets labelled '0'..'23')."""
    counts = [Counter() for _ in range(24)]
    for category, rows in rows_by_category.items():
        for row in rows:
            ts = _row_time(row)
            if ts is not None:
                counts[ts.astimezone(tz).hour][category] += 1
    return tuple(
        ActivityBucket.from_counts(str(hour), **{c: counter[c] for c in CATEGORIES})
        for hour, counter in enumerate(counts)
    )


def build_weekday_activity(daily: Sequence[ActivityBucket]) -> tuple[ActivityBucket, ...]:
    """Fold a daily series (ISO date labels) into 7 weekday buckets, Sun..Sat."""
    buckets = [ActivityBucket.from_counts(label) for label in WEEKDAY_LABELS]
    for bucket in daily:
        try:
            day = date.fromisoformat(bucket.label)
        except ValueError:
            continue
        # isoweekday: Mon=1..Sun=7 -> Sun=0..Sat=6
        index = day.isoweekday() % 7
        buckets[index] = buckets[index].merged(bucket, label=WEEKDAY_LABELS[index])
    return tuple(buckets)


def compute_streak(days: Iterable[date], today: date) -> StreakSummary:
    """Current and longest run of consecutive active days.

    The current streak counts back from today, or from yesterday when
    nothing has happened yet today.
    """
    active = sorted(set(days))
    if not active:
        return StreakSummary()
    longest = run = 1
    for prev, cur in zip(active, active[1:]):
        run = run + 1 if cur - prev == timedelta(days=1) else 1
        longest = max(longest, run)
    active_set = set(active)
    cursor = today if today in active_set else today - timedelta(days=1)
    current = 0
    while cursor in active_set:
        current += 1
        cursor -= timedelta(days=1)
    return StreakSummary(current=current, longest=longest)


def streak_from_rows(rows: Iterable[Mapping[str, Any]], tz: tzinfo, today: date) -> StreakSummary:
    days = []
    for row in rows:
        ts = _row_time(row)
        if ts is not None:
            days.append(ts.astimezone(tz).date())
    return compute_streak(days, today)


def streak_from_rpc(rows: Any) -> StreakSummary:
    """get_user_streak returns [{current_streak, max_streak}]."""
    if isinstance(rows, list):
        rows = rows[0] if rows else {}
    if not isinstance(rows, Mapping):
        return StreakSummary()
    return StreakSummary(
        current=max(0, int(rows.get("current_streak") or 0)),
        longest=max(0, int(rows.get("max_streak") or 0)),
    )


def velocity_from_rpc(rows: Sequence[Mapping[str, Any]]) -> tuple[VelocityPoint, ...]:
    return tuple(
        VelocityPoint(week=str(row.get("week", "")), items=max(0, int(row.get("items") or 0)))
        for row in rows
    )


def summarize_study_time(
    rows: Iterable[Mapping[str, Any]],
    now: datetime,
) -> StudyTimeSummary:
    """Sum recording durations (seconds) overall, for the last 7 and last 30 days."""
    week_ago = now - timedelta(days=7)
    month_ago = now - timedelta(days=30)
    total = week = month = 0
    for row in rows:
        duration = int(row.get("duration") or 0)
        total += duration
        ts = _row_time(row)
        if ts is None:
            continue
        if ts >= week_ago:
            week += duration
        if ts >= month_ago:
            month += duration
    return StudyTimeSummary(total=total, this_week=week, this_month=month)


def summarize_documents(rows: Iterable[Mapping[str, Any]]) -> DocumentBreakdown:
    processed = pending = failed = size = 0
    for row in rows:
        status = row.get("processing_status")
        if status == DocumentStatus.COMPLETED.value:
            processed += 1
        elif status in (DocumentStatus.PENDING.value, DocumentStatus.PROCESSING.value):
            pending += 1
        elif status == DocumentStatus.FAILED.value:
            failed += 1
        size += int(row.get("file_size") or 0)
    return DocumentBreakdown(processed=processed, pending=pending, failed=failed, total_size=size)


def summarize_categories(rows: Iterable[Mapping[str, Any]]) -> CategorySummary:
    """Category distribution (display-capitalized) and top categories by count."""
    counts: Counter[str] = Counter(
        (row.get("category") or DEFAULT_CATEGORY) for row in rows
    )
    slices = tuple(
        CategorySlice(name=name[:1].upper() + name[1:], value=value)
        for name, value in counts.items()
    )
    top = tuple(
        CategoryCount(category=name, count=value)
        for name, value in counts.most_common(TOP_CATEGORIES_LIMIT)
    )
    return CategorySummary(category_data=slices, top_categories=top)


def summarize_schedule(
    rows: Iterable[Mapping[str, Any]],
    now: datetime,
    tz: tzinfo,
) -> ScheduleSummary:
    """Today / upcoming / completed / overdue counts over schedule items."""
    today = now.astimezone(tz).date()
    today_count = upcoming = completed = overdue = 0
    for row in rows:
        start = parse_timestamp(row.get("start_time"))
        end = parse_timestamp(row.get("end_time"))
        if start is not None:
            start_day = start.astimezone(tz).date()
            if start_day == today:
                today_count += 1
            if start > now:
                upcoming += 1
            elif start_day != today:
                overdue += 1
        if end is not None and end < now:
            completed += 1
    return ScheduleSummary(
        today=today_count, upcoming=upcoming, completed=completed, overdue=overdue
    )


def average_quiz_score(rows: Iterable[Mapping[str, Any]]) -> float:
    """Mean percentage score over attempts with a positive question count."""
    scores = [
        float(row.get("score") or 0) / float(row["total_questions"]) * 100.0
        for row in rows
        if row.get("total_questions")
    ]
    if not scores:
        return 0.0
    return round(min(100.0, sum(scores) / len(scores)), 1)


def most_productive(
    weekday: Sequence[ActivityBucket],
    hourly: Sequence[ActivityBucket],
) -> tuple[str, int]:
    """Busiest weekday label and hour; first maximum wins on ties.

    Defaults (Mon, 14) apply while either series is missing or has no activity.
    """
    day = max(weekday, key=lambda b: b.total, default=None)
    hour_index = max(range(len(hourly)), key=lambda i: hourly[i].total, default=None)
    if day is None or hour_index is None or day.total == 0 or hourly[hour_index].total == 0:
        return DEFAULT_PRODUCTIVE_DAY, DEFAULT_PRODUCTIVE_HOUR
    return day.label, hour_index


def engagement_score(
    *,
    current_streak: int,
    avg_notes_per_day: float,
    ai_usage_rate: float,
    avg_daily_study_time: float,
    total_items: int,
    notes_this_week: int,
) -> int:
    """Weighted 0-100 score; each factor is capped at 1.0 before weighting."""
    factors = {
        "streak": min(current_streak / STREAK_TARGET_DAYS, 1.0),
        "notes_per_day": min(avg_notes_per_day / NOTES_PER_DAY_TARGET, 1.0),
        "ai_usage": min(ai_usage_rate / 100.0, 1.0),
        "study_time": min(avg_daily_study_time / STUDY_SECONDS_PER_DAY_TARGET, 1.0),
        "variety": min(total_items / VARIETY_TARGET_ITEMS, 1.0),
        "consistency": min(notes_this_week / WEEKLY_NOTES_TARGET, 1.0),
    }
    score = sum(max(0.0, value) * ENGAGEMENT_WEIGHTS[name] for name, value in factors.items())
    return max(0, min(100, round(score)))


def ai_usage_rate(notes_with_ai: int, total_notes: int) -> float:
    if total_notes <= 0:
        return 0.0
    return round(min(100.0, notes_with_ai / total_notes * 100.0), 2)


def derive_rates(stats: DashboardStats) -> DashboardStats:
    """Recompute every derived field from the snapshot's raw fields.

    Period counts come from the daily series when present; otherwise the
    snapshot's existing values are kept. Averages are taken over active
    days (days with any activity) in the 30-day window.
    """
    notes_week = stats.notes_this_week
    recordings_week = stats.recordings_this_week
    if stats.activity_7_days:
        notes_week = sum(b.notes for b in stats.activity_7_days)
        recordings_week = sum(b.recordings for b in stats.activity_7_days)
    notes_month = stats.notes_this_month
    recordings_month = stats.recordings_this_month
    active_days = 0
    if stats.activity_30_days:
        notes_month = sum(b.notes for b in stats.activity_30_days)
        recordings_month = sum(b.recordings for b in stats.activity_30_days)
        active_days = sum(1 for b in stats.activity_30_days if b.total > 0)

    if active_days:
        avg_notes = round(notes_month / active_days, 1)
        avg_study = round(stats.study_time_this_month / active_days)
    else:
        avg_notes = 0.0
        avg_study = 0

    rate = ai_usage_rate(stats.notes_with_ai, stats.total_notes)
    day, hour = most_productive(stats.weekday_activity, stats.hourly_activity)
    score = engagement_score(
        current_streak=stats.current_streak,
        avg_notes_per_day=avg_notes,
        ai_usage_rate=rate,
        avg_daily_study_time=avg_study,
        total_items=(
            stats.total_notes
            + stats.total_recordings
            + stats.total_documents
            + stats.total_messages
        ),
        notes_this_week=notes_week,
    )
    return replace(
        stats,
        notes_this_week=notes_week,
        notes_this_month=notes_month,
        recordings_this_week=recordings_week,
        recordings_this_month=recordings_month,
        avg_notes_per_day=avg_notes,
        avg_daily_study_time=avg_study,
        ai_usage_rate=rate,
        most_productive_day=day,
        most_productive_hour=hour,
        engagement_score=score,
    )
