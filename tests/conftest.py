"""Pytest configuration and fixtures for the stats service.

Environment is set before app.main is imported (the module builds the app
at import time). Supabase is replaced by FakeStatsSource; Redis is disabled.
"""

import asyncio
import os
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-role-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-with-enough-length")
os.environ["REDIS_ENABLED"] = "false"
os.environ["TELEMETRY_ENABLED"] = "false"

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from jose import jwt  # noqa: E402

from app.application.use_cases.analytics import (  # noqa: E402
    DashboardStatsService,
    StatsTimings,
)
from app.core.config import get_settings  # noqa: E402
from app.core.limiter import limiter  # noqa: E402
from app.domain.exceptions import DataSourceException  # noqa: E402
from app.infrastructure.cache.stats_cache import StatsCache  # noqa: E402

get_settings.cache_clear()

from app.main import create_app  # noqa: E402

# Wednesday noon UTC; every time-dependent test uses this clock.
FIXED_NOW = datetime(2024, 5, 15, 12, 0, tzinfo=UTC)

FAST_TIMINGS = StatsTimings(
    count_retry_delay=0,
    rpc_timeout=0.05,
    step_timeout=0.5,
    step_delay=0,
    refresh_debounce=0.01,
)


class FakeStatsSource:
    """In-memory IStatsDataSource.

    counts: table -> exact count ("notes_with_ai" for the ai_summary filter,
        "<table>:window" for date-filtered counts).
    rows: table -> rows returned by fetch_rows (filters are not applied).
    rpc_results / rpc_errors / rpc_delays: per RPC function name.
    count_failures: table -> number of count calls that fail before succeeding.
    """

    def __init__(self) -> None:
        self.counts: dict[str, int] = {}
        self.rows: dict[str, list[dict[str, Any]]] = {}
        self.rpc_results: dict[str, Any] = {}
        self.rpc_errors: set[str] = set()
        self.rpc_delays: dict[str, float] = {}
        self.count_failures: dict[str, int] = {}
        self.select_errors: set[str] = set()
        self.calls: list[tuple[str, str]] = []

    async def count(self, table, user_id, filters=()):
        self.calls.append(("count", table))
        if self.count_failures.get(table, 0) > 0:
            self.count_failures[table] -= 1
            raise DataSourceException("count", table, "connection reset", 503)
        if any(f.column == "ai_summary" for f in filters):
            return self.counts.get("notes_with_ai", 0)
        if filters:
            return self.counts.get(f"{table}:window", 0)
        return self.counts.get(table, 0)

    async def fetch_rows(
        self,
        table,
        user_id,
        columns,
        *,
        filters=(),
        order_by=None,
        descending=True,
        limit=None,
    ):
        self.calls.append(("select", table))
        if table in self.select_errors:
            raise DataSourceException("select", table, "permission denied", 401)
        rows = list(self.rows.get(table, []))
        return rows[:limit] if limit is not None else rows

    async def call_rpc(self, function, params):
        self.calls.append(("rpc", function))
        if function in self.rpc_delays:
            await asyncio.sleep(self.rpc_delays[function])
        if function in self.rpc_errors:
            raise DataSourceException("rpc", function, "function does not exist", 404)
        return self.rpc_results.get(function)

    def call_count(self) -> int:
        return len(self.calls)


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    """Rate-limit counters are process-global; start each test clean."""
    limiter.reset()
    yield


@pytest.fixture
def fake_source() -> FakeStatsSource:
    return FakeStatsSource()


@pytest.fixture
def stats_cache() -> StatsCache:
    return StatsCache(duration_seconds=24 * 60 * 60)


@pytest.fixture
async def stats_service(fake_source: FakeStatsSource, stats_cache: StatsCache):
    """DashboardStatsService over the fake source, fixed clock, fast timings."""
    service = DashboardStatsService(
        fake_source,
        stats_cache,
        timings=FAST_TIMINGS,
        clock=lambda: FIXED_NOW,
    )
    yield service
    await service.close()


@pytest.fixture
def make_token() -> Callable[..., str]:
    """Build a Supabase-style access token (HS256, aud=authenticated)."""

    def _make(sub: str = "user-1", **overrides: Any) -> str:
        settings = get_settings()
        claims: dict[str, Any] = {
            "sub": sub,
            "aud": settings.supabase_jwt_audience,
            "role": "authenticated",
            "exp": datetime.now(UTC) + timedelta(minutes=5),
        }
        claims.update(overrides)
        return jwt.encode(
            claims, settings.supabase_jwt_secret.get_secret_value(), algorithm="HS256"
        )

    return _make


@pytest.fixture
def app(stats_service: DashboardStatsService):
    """FastAPI app with lifespan-managed state filled in by hand."""
    from app.api.websocket import ConnectionManager

    application = create_app()
    application.state.ws_manager = ConnectionManager()
    application.state.cache = None
    application.state.change_publisher = None
    application.state.stats_service = stats_service
    return application


@pytest.fixture
async def client(app) -> AsyncClient:
    """Async HTTP client against the FastAPI app (ASGI)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers(make_token) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token('user-1')}"}
