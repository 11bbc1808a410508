"""Pydantic request/response schemas for the API."""

from app.schemas.dashboard import (
    DashboardStatsResponse,
    StatsStateResponse,
    WebhookAcceptedResponse,
)
from app.schemas.health import (
    HealthResponse,
    ReadinessErrorResponse,
    ReadinessResponse,
)

__all__ = [
    "DashboardStatsResponse",
    "HealthResponse",
    "ReadinessErrorResponse",
    "ReadinessResponse",
    "StatsStateResponse",
    "WebhookAcceptedResponse",
]
