"""Dashboard stats API schemas (shape of DashboardStats.to_dict())."""

from datetime import datetime

from pydantic import BaseModel, Field


class ActivityBucketItem(BaseModel):
    """One day / hour / weekday bucket; total is the sum of the four counts."""

    label: str
    notes: int = 0
    recordings: int = 0
    documents: int = 0
    messages: int = 0
    total: int = 0


class RecentNoteItem(BaseModel):
    id: str
    title: str
    category: str | None = None
    created_at: str


class RecentRecordingItem(BaseModel):
    id: str
    title: str
    duration: int = 0
    created_at: str


class RecentDocumentItem(BaseModel):
    id: str
    title: str
    type: str | None = None
    created_at: str
    processing_status: str | None = None


class CategorySliceItem(BaseModel):
    name: str
    value: int


class CategoryCountItem(BaseModel):
    category: str
    count: int


class VelocityPointItem(BaseModel):
    week: str
    items: int


class DashboardStatsResponse(BaseModel):
    """One user's dashboard snapshot. Durations are seconds; rates are 0-100."""

    total_notes: int = 0
    total_recordings: int = 0
    total_documents: int = 0
    total_messages: int = 0
    total_schedule_items: int = 0
    total_quizzes_taken: int = 0
    notes_with_ai: int = 0

    total_study_time: int = 0
    study_time_this_week: int = 0
    study_time_this_month: int = 0
    avg_daily_study_time: int = 0

    current_streak: int = 0
    max_streak: int = 0

    today_tasks: int = 0
    upcoming_tasks: int = 0
    completed_tasks: int = 0
    overdue_tasks: int = 0

    notes_this_week: int = 0
    notes_this_month: int = 0
    recordings_this_week: int = 0
    recordings_this_month: int = 0

    ai_usage_rate: float = 0.0
    avg_notes_per_day: float = 0.0
    engagement_score: int = Field(default=0, ge=0, le=100)
    avg_quiz_score: float = 0.0

    most_productive_day: str = "Mon"
    most_productive_hour: int = 14

    documents_processed: int = 0
    documents_pending: int = 0
    documents_failed: int = 0
    total_document_size: int = 0

    activity_7_days: list[ActivityBucketItem] = Field(default_factory=list)
    activity_30_days: list[ActivityBucketItem] = Field(default_factory=list)
    hourly_activity: list[ActivityBucketItem] = Field(default_factory=list)
    weekday_activity: list[ActivityBucketItem] = Field(default_factory=list)

    recent_notes: list[RecentNoteItem] = Field(default_factory=list)
    recent_recordings: list[RecentRecordingItem] = Field(default_factory=list)
    recent_documents: list[RecentDocumentItem] = Field(default_factory=list)
    category_data: list[CategorySliceItem] = Field(default_factory=list)
    top_categories: list[CategoryCountItem] = Field(default_factory=list)
    learning_velocity: list[VelocityPointItem] = Field(default_factory=list)

    last_fetched: datetime


class StatsStateResponse(BaseModel):
    """Published stats state for a user (what GET /dashboard/stats and /ws return)."""

    stats: DashboardStatsResponse | None = None
    loading: bool = False
    error: str | None = None
    progress: int = Field(default=0, ge=0, le=100)
    phase: str = Field(..., description="idle, fetching_summary, published_summary, ...")
    is_cached: bool = False


class WebhookAcceptedResponse(BaseModel):
    """Response for POST /webhooks/db-changes."""

    status: str = Field(default="accepted", description="accepted or ignored")
    delivered: str | None = Field(
        default=None, description="pubsub when fanned out via Redis, local when applied in-process"
    )
