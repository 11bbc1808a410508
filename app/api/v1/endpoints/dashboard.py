"""Dashboard stats API: current snapshot, manual refresh, chart reload, cache eviction."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, Response

from app.api.v1.dependencies import get_current_user_id, get_stats_service
from app.application.use_cases.analytics import DashboardStatsService
from app.core.limiter import limit_cache_clear, limit_refresh
from app.schemas.dashboard import StatsStateResponse

router = APIRouter()


def _state_response(service: DashboardStatsService, user_id: str) -> StatsStateResponse:
    return StatsStateResponse.model_validate(service.get_state(user_id).to_dict())


@router.get("/stats", response_model=StatsStateResponse)
async def get_dashboard_stats(
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[DashboardStatsService, Depends(get_stats_service)],
    force_refresh: Annotated[bool, Query(description="Ignore a fresh cached snapshot")] = False,
    wait: Annotated[bool, Query(description="Wait for the detailed aggregates")] = False,
):
    """Return the caller's stats state.

    Serves the cached snapshot when fresh. Otherwise returns as soon as the
    summary counts are published (loading stays true while the detailed
    aggregates run), unless wait=true.
    """
    await service.get_dashboard_stats(user_id, force_refresh=force_refresh, wait=wait)
    return _state_response(service, user_id)


@router.post("/stats/refresh", response_model=StatsStateResponse, status_code=202)
@limit_refresh
async def refresh_dashboard_stats(
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[DashboardStatsService, Depends(get_stats_service)],
    wait: bool = False,
):
    """Force a full refetch (manual refresh / retry after an error)."""
    await service.refresh(user_id, wait=wait)
    return _state_response(service, user_id)


@router.delete("/stats/cache", status_code=204)
@limit_cache_clear
async def clear_dashboard_stats_cache(
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[DashboardStatsService, Depends(get_stats_service)],
) -> Response:
    """Evict the caller's cached snapshot (memory and Redis)."""
    await service.clear_cache(user_id)
    return Response(status_code=204)


@router.post("/stats/charts", response_model=StatsStateResponse)
@limit_refresh
async def reload_dashboard_charts(
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[DashboardStatsService, Depends(get_stats_service)],
):
    """Reload the hourly and 30-day activity series on demand."""
    await service.reload_charts(user_id)
    return _state_response(service, user_id)
