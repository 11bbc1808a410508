"""Application use cases: one entry point per workflow."""

from app.application.use_cases.analytics import (
    DashboardStatsService,
    StatsState,
    StatsTimings,
)

__all__ = [
    "DashboardStatsService",
    "StatsState",
    "StatsTimings",
]
