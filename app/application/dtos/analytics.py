"""DTOs for dashboard statistics (no dependency on Supabase or presentation schemas).

A DashboardStats instance is one immutable snapshot. Fetches and patches
produce new snapshots with dataclasses.replace; nothing mutates in place.
to_dict/from_dict define the JSON shape persisted to the durable cache.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from typing import Any

from app.shared.utils.datetime import ensure_utc, utc_now

_COUNTER_FIELDS = (
    "total_notes",
    "total_recordings",
    "total_documents",
    "total_messages",
    "total_schedule_items",
    "total_quizzes_taken",
    "notes_with_ai",
)


@dataclass(frozen=True)
class ActivityBucket:
    """One time-series bucket (a day, an hour of day, or a weekday).

    total is always the sum of the four category counts; build buckets with
    from_counts so server-provided totals are never trusted.
    """

    label: str
    notes: int = 0
    recordings: int = 0
    documents: int = 0
    messages: int = 0
    total: int = 0

    def __post_init__(self) -> None:
        counts = (self.notes, self.recordings, self.documents, self.messages)
        if any(c < 0 for c in counts):
            raise ValueError(f"Activity counts must be non-negative (bucket {self.label!r})")
        if self.total != sum(counts):
            raise ValueError(
                f"Activity bucket {self.label!r} total {self.total} != sum of counts {sum(counts)}"
            )

    @classmethod
    def from_counts(
        cls,
        label: str,
        notes: int = 0,
        recordings: int = 0,
        documents: int = 0,
        messages: int = 0,
    ) -> ActivityBucket:
        return cls(
            label=label,
            notes=notes,
            recordings=recordings,
            documents=documents,
            messages=messages,
            total=notes + recordings + documents + messages,
        )

    def merged(self, other: ActivityBucket, label: str | None = None) -> ActivityBucket:
        """Return a bucket holding the per-category sums of self and other."""
        return ActivityBucket.from_counts(
            label or self.label,
            notes=self.notes + other.notes,
            recordings=self.recordings + other.recordings,
            documents=self.documents + other.documents,
            messages=self.messages + other.messages,
        )


@dataclass(frozen=True)
class RecentNote:
    id: str
    title: str
    category: str | None
    created_at: str


@dataclass(frozen=True)
class RecentRecording:
    id: str
    title: str
    duration: int
    created_at: str


@dataclass(frozen=True)
class RecentDocument:
    id: str
    title: str
    type: str | None
    created_at: str
    processing_status: str | None


@dataclass(frozen=True)
class CategorySlice:
    """Category distribution slice (display name, note count)."""

    name: str
    value: int


@dataclass(frozen=True)
class CategoryCount:
    category: str
    count: int


@dataclass(frozen=True)
class VelocityPoint:
    """Items created in one week (label W1..Wn, oldest first)."""

    week: str
    items: int


@dataclass(frozen=True)
class DashboardStats:
    """Flat summary of one user's study activity.

    Counters are validated non-negative. Time-series fields are empty
    tuples until the detail phase computes them.
    """

    # Counters
    total_notes: int = 0
    total_recordings: int = 0
    total_documents: int = 0
    total_messages: int = 0
    total_schedule_items: int = 0
    total_quizzes_taken: int = 0
    notes_with_ai: int = 0

    # Study time (seconds)
    total_study_time: int = 0
    study_time_this_week: int = 0
    study_time_this_month: int = 0
    avg_daily_study_time: int = 0

    # Streak
    current_streak: int = 0
    max_streak: int = 0

    # Schedule
    today_tasks: int = 0
    upcoming_tasks: int = 0
    completed_tasks: int = 0
    overdue_tasks: int = 0

    # Period counts
    notes_this_week: int = 0
    notes_this_month: int = 0
    recordings_this_week: int = 0
    recordings_this_month: int = 0

    # Derived rates
    ai_usage_rate: float = 0.0
    avg_notes_per_day: float = 0.0
    engagement_score: int = 0
    avg_quiz_score: float = 0.0

    # Productivity
    most_productive_day: str = "Mon"
    most_productive_hour: int = 14

    # Documents
    documents_processed: int = 0
    documents_pending: int = 0
    documents_failed: int = 0
    total_document_size: int = 0

    # Time series
    activity_7_days: tuple[ActivityBucket, ...] = ()
    activity_30_days: tuple[ActivityBucket, ...] = ()
    hourly_activity: tuple[ActivityBucket, ...] = ()
    weekday_activity: tuple[ActivityBucket, ...] = ()

    # Snapshots
    recent_notes: tuple[RecentNote, ...] = ()
    recent_recordings: tuple[RecentRecording, ...] = ()
    recent_documents: tuple[RecentDocument, ...] = ()
    category_data: tuple[CategorySlice, ...] = ()
    top_categories: tuple[CategoryCount, ...] = ()
    learning_velocity: tuple[VelocityPoint, ...] = ()

    last_fetched: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        for name in _COUNTER_FIELDS:
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")
        if not 0.0 <= self.ai_usage_rate <= 100.0:
            raise ValueError("ai_usage_rate must be within 0-100")
        if not 0 <= self.engagement_score <= 100:
            raise ValueError("engagement_score must be within 0-100")

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict (tuples become lists, datetime ISO-8601)."""
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, tuple):
                data[key] = list(value)
        data["last_fetched"] = self.last_fetched.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DashboardStats:
        """Deserialize from to_dict() output. Unknown keys are ignored.

        Raises:
            ValueError, TypeError, KeyError: If the payload is malformed.
        """
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        for key, item_cls in _NESTED_FIELDS.items():
            if key in values:
                values[key] = tuple(item_cls(**item) for item in values[key])
        if "last_fetched" in values:
            values["last_fetched"] = ensure_utc(
                datetime.fromisoformat(values["last_fetched"])
            )
        return cls(**values)


_NESTED_FIELDS: dict[str, type] = {
    "activity_7_days": ActivityBucket,
    "activity_30_days": ActivityBucket,
    "hourly_activity": ActivityBucket,
    "weekday_activity": ActivityBucket,
    "recent_notes": RecentNote,
    "recent_recordings": RecentRecording,
    "recent_documents": RecentDocument,
    "category_data": CategorySlice,
    "top_categories": CategoryCount,
    "learning_velocity": VelocityPoint,
}


@dataclass(frozen=True)
class SummaryCounts:
    """Phase-1 result: counters and capped recent lists."""

    total_notes: int
    total_recordings: int
    total_documents: int
    total_messages: int
    total_schedule_items: int
    total_quizzes_taken: int
    notes_with_ai: int
    recent_notes: tuple[RecentNote, ...] = ()
    recent_recordings: tuple[RecentRecording, ...] = ()
    recent_documents: tuple[RecentDocument, ...] = ()


@dataclass(frozen=True)
class StudyTimeSummary:
    total: int = 0
    this_week: int = 0
    this_month: int = 0


@dataclass(frozen=True)
class DocumentBreakdown:
    processed: int = 0
    pending: int = 0
    failed: int = 0
    total_size: int = 0


@dataclass(frozen=True)
class ScheduleSummary:
    today: int = 0
    upcoming: int = 0
    completed: int = 0
    overdue: int = 0


@dataclass(frozen=True)
class StreakSummary:
    current: int = 0
    longest: int = 0


@dataclass(frozen=True)
class CategorySummary:
    category_data: tuple[CategorySlice, ...] = ()
    top_categories: tuple[CategoryCount, ...] = ()
