"""Query filter DTO shared by the stats use case and the Supabase data source."""

from dataclasses import dataclass
from typing import Any

# PostgREST operators supported by the data source
FILTER_OPERATORS = frozenset({"eq", "gt", "gte", "lt", "lte", "not_null"})


@dataclass(frozen=True)
class QueryFilter:
    """Column filter (e.g. QueryFilter("created_at", "gte", "2025-01-01T00:00:00+00:00")).

    not_null ignores value and matches rows where column IS NOT NULL.
    """

    column: str
    op: str
    value: Any = None

    def __post_init__(self) -> None:
        if self.op not in FILTER_OPERATORS:
            raise ValueError(f"Unsupported filter operator: {self.op!r}")

    @classmethod
    def between(cls, column: str, start: str, end: str) -> tuple["QueryFilter", "QueryFilter"]:
        """Inclusive range filter pair."""
        return cls(column, "gte", start), cls(column, "lte", end)
