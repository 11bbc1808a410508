"""Application DTOs (no Supabase or presentation dependency)."""

from app.application.dtos.analytics import (
    ActivityBucket,
    CategoryCount,
    CategorySlice,
    DashboardStats,
    RecentDocument,
    RecentNote,
    RecentRecording,
    SummaryCounts,
    VelocityPoint,
)
from app.application.dtos.changes import (
    ChangeEvent,
    Deleted,
    Inserted,
    Unknown,
    parse_change_payload,
)
from app.application.dtos.query import QueryFilter

__all__ = [
    "ActivityBucket",
    "CategoryCount",
    "CategorySlice",
    "ChangeEvent",
    "DashboardStats",
    "Deleted",
    "Inserted",
    "QueryFilter",
    "RecentDocument",
    "RecentNote",
    "RecentRecording",
    "SummaryCounts",
    "Unknown",
    "VelocityPoint",
    "parse_change_payload",
]
