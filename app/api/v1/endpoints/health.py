"""Health check endpoints: liveness and readiness probes."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.schemas.health import (
    HealthResponse,
    ReadinessErrorResponse,
    ReadinessResponse,
)

router = APIRouter()


@router.get("", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Return simple ok status for liveness."""
    return HealthResponse()


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    responses={503: {"description": "Stats service not initialized", "model": ReadinessErrorResponse}},
)
async def readiness_check(request: Request) -> ReadinessResponse | JSONResponse:
    """Return 200 once the stats service is wired; 503 otherwise.

    Redis is optional (the in-process cache still works), so its state is
    reported but does not fail readiness.
    """
    if getattr(request.app.state, "stats_service", None) is None:
        return JSONResponse(
            status_code=503,
            content=ReadinessErrorResponse(
                message="Stats service not initialized",
            ).model_dump(),
        )
    cache = getattr(request.app.state, "cache", None)
    return ReadinessResponse(redis=bool(cache is not None and cache.is_available()))
