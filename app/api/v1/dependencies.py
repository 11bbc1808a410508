"""Presentation-layer dependency injection (composition root).

Routes depend on these, not on infrastructure directly. The stats service,
connection manager, and change publisher are created once in lifespan and
read from app.state here.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.application.use_cases.analytics import DashboardStatsService
from app.domain.exceptions import AuthenticationException
from app.infrastructure.messaging.redis_pubsub import ChangeEventPublisher
from app.infrastructure.security.jwt import user_id_from_token
from app.shared.context import set_current_user_id

_http_bearer = HTTPBearer(auto_error=False)


def get_stats_service(request: Request) -> DashboardStatsService:
    """DashboardStatsService from app.state; 503 before startup completes."""
    service = getattr(request.app.state, "stats_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Stats service not initialized")
    return service


def get_change_publisher(request: Request) -> ChangeEventPublisher | None:
    """Redis change publisher, or None when Redis is disabled/unavailable."""
    publisher = getattr(request.app.state, "change_publisher", None)
    if publisher is None or not publisher.is_available():
        return None
    return publisher


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_http_bearer)],
) -> str:
    """Return the user id (sub) from the Supabase access token; raise 401 if missing or invalid."""
    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        user_id = user_id_from_token(credentials.credentials)
    except AuthenticationException as e:
        raise HTTPException(
            status_code=401,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e
    set_current_user_id(user_id)
    return user_id
