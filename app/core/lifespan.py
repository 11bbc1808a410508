"""Application lifespan: startup and shutdown.

Single place for all startup/shutdown logic. Used by main.py; no business
logic here, only wiring of infrastructure (Supabase client, Redis cache and
change feed, stats service, WebSocket manager, telemetry).
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator
from zoneinfo import ZoneInfo

from fastapi import FastAPI

from app.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


def build_stats_service(settings: Settings, source: Any, durable: Any = None):
    """Compose DashboardStatsService from settings (also used by tests)."""
    from app.application.use_cases.analytics import DashboardStatsService, StatsTimings
    from app.infrastructure.cache.stats_cache import StatsCache

    cache = StatsCache(
        durable=durable,
        duration_seconds=settings.stats_cache_duration_seconds,
        durable_ttl_seconds=settings.cache_ttl_dashboard_stats,
    )
    timings = StatsTimings(
        count_retry_delay=settings.stats_count_retry_delay_seconds,
        rpc_timeout=settings.stats_rpc_timeout_seconds,
        step_timeout=settings.stats_step_timeout_seconds,
        step_delay=settings.stats_step_delay_seconds,
        refresh_debounce=settings.stats_refresh_debounce_seconds,
    )
    return DashboardStatsService(
        source, cache, timings=timings, tz=ZoneInfo(settings.stats_timezone)
    )


@asynccontextmanager
async def create_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run startup then yield; on exit run shutdown.

    Startup order: telemetry (if enabled), WebSocket manager, Supabase
    client, Redis cache and publisher (if enabled), stats service, change
    feed listener. Shutdown runs in reverse.
    """
    settings = get_settings()

    # ---- Startup ----
    if settings.telemetry_enabled:
        from app.shared.telemetry.telemetry import TelemetryConfig, set_telemetry

        telemetry = TelemetryConfig(
            service_name=settings.app_name,
            service_version=settings.app_version,
            enabled=True,
            environment=settings.telemetry_environment,
        )
        telemetry.setup_telemetry(
            exporter_type=settings.telemetry_exporter,
            otlp_endpoint=settings.telemetry_otlp_endpoint,
            sample_rate=settings.telemetry_sample_rate,
        )
        set_telemetry(telemetry)
        telemetry.instrument_fastapi(app)
        if settings.redis_enabled:
            telemetry.instrument_redis()
        logger.info("Telemetry initialized")

    from app.api.websocket import ConnectionManager
    from app.infrastructure.supabase import SupabaseStatsSource, init_supabase

    manager = ConnectionManager()
    app.state.ws_manager = manager

    source = SupabaseStatsSource(init_supabase())

    if settings.redis_enabled:
        from app.infrastructure.cache.redis_cache import CacheService
        from app.infrastructure.messaging.redis_pubsub import ChangeEventPublisher

        cache = CacheService()
        await cache.connect()
        app.state.cache = cache
        publisher = ChangeEventPublisher()
        await publisher.connect()
        app.state.change_publisher = publisher
    else:
        app.state.cache = None
        app.state.change_publisher = None

    service = build_stats_service(settings, source, durable=app.state.cache)

    async def push_state(user_id: str, state: Any) -> None:
        await manager.broadcast_to_user(user_id, {"type": "stats_state", **state.to_dict()})

    service.add_listener(push_state)
    app.state.stats_service = service

    if settings.redis_enabled:
        from app.infrastructure.messaging.redis_pubsub import run_change_feed_listener

        app.state.change_feed_task = asyncio.create_task(run_change_feed_listener(app))
    else:
        app.state.change_feed_task = None

    yield

    # ---- Shutdown ----
    feed_task = getattr(app.state, "change_feed_task", None)
    if feed_task is not None:
        feed_task.cancel()
        try:
            await feed_task
        except asyncio.CancelledError:
            pass
        logger.info("Change feed listener stopped")

    await service.close()
    app.state.stats_service = None
    logger.info("Stats service closed")

    if getattr(app.state, "change_publisher", None) is not None:
        await app.state.change_publisher.disconnect()

    if getattr(app.state, "cache", None) is not None:
        await app.state.cache.disconnect()
        logger.info("Cache disconnected")

    from app.infrastructure.supabase import close_supabase

    await close_supabase()

    from app.shared.telemetry.telemetry import get_telemetry, set_telemetry

    telemetry_instance = get_telemetry()
    if telemetry_instance is not None:
        telemetry_instance.shutdown()
        set_telemetry(None)
        logger.info("Telemetry shutdown complete")
