"""Domain enumerations for the study hub stats service.

Enums represent fixed sets of domain values (change types, tracked
tables, aggregator lifecycle phases).
"""

from enum import Enum


class ChangeType(str, Enum):
    """Database change notification type (Supabase Realtime / webhooks)."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class StatsPhase(str, Enum):
    """Per-user lifecycle of the dashboard stats aggregator.

    IDLE → FETCHING_SUMMARY → PUBLISHED_SUMMARY → FETCHING_DETAILS →
    PUBLISHED, then PATCHING → PUBLISHED for each incremental patch.
    FAILED after a top-level fetch error; CLOSED after close().
    """

    IDLE = "idle"
    FETCHING_SUMMARY = "fetching_summary"
    PUBLISHED_SUMMARY = "published_summary"
    FETCHING_DETAILS = "fetching_details"
    PUBLISHED = "published"
    PATCHING = "patching"
    FAILED = "failed"
    CLOSED = "closed"


class DocumentStatus(str, Enum):
    """Document processing status as stored in documents.processing_status."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
