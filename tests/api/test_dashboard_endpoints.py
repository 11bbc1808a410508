"""API tests for /api/v1/dashboard (auth, stats state, refresh, cache eviction)."""

from httpx import AsyncClient

from app.core.limiter import REFRESH_LIMIT


async def test_stats_requires_token(client: AsyncClient) -> None:
    response = await client.get("/api/v1/dashboard/stats")
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"
    assert response.json()["error"] == "HTTP_ERROR"


async def test_stats_rejects_invalid_token(client: AsyncClient, make_token) -> None:
    token = make_token("user-1", aud="anon")
    response = await client.get(
        "/api/v1/dashboard/stats", headers={"Authorization": f"Bearer {token}"}
    )
    assert response.status_code == 401


async def test_stats_returns_summary_state(
    client: AsyncClient,
    auth_headers: dict[str, str],
    fake_source,
) -> None:
    """Without wait the response carries the summary; details are still loading."""
    fake_source.counts["notes"] = 3
    fake_source.rpc_delays = {"get_user_activity_stats": 0.04}
    response = await client.get("/api/v1/dashboard/stats", headers=auth_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["stats"]["total_notes"] == 3
    assert body["loading"] is True
    assert body["phase"] in ("published_summary", "fetching_details")
    assert body["progress"] >= 20


async def test_stats_wait_returns_full_snapshot(
    client: AsyncClient,
    auth_headers: dict[str, str],
) -> None:
    response = await client.get("/api/v1/dashboard/stats?wait=true", headers=auth_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["phase"] == "published"
    assert body["progress"] == 100
    assert body["is_cached"] is True
    assert len(body["stats"]["activity_7_days"]) == 7
    assert len(body["stats"]["hourly_activity"]) == 24


async def test_stats_are_scoped_to_token_subject(
    client: AsyncClient,
    auth_headers: dict[str, str],
    make_token,
    stats_service,
) -> None:
    await client.get("/api/v1/dashboard/stats?wait=true", headers=auth_headers)
    other = {"Authorization": f"Bearer {make_token('user-2')}"}
    await client.get("/api/v1/dashboard/stats?wait=true", headers=other)
    assert stats_service.get_state("user-1").stats is not None
    assert stats_service.get_state("user-2").stats is not None
    assert stats_service.get_state("user-3").stats is None


async def test_refresh_refetches(
    client: AsyncClient,
    auth_headers: dict[str, str],
    fake_source,
) -> None:
    await client.get("/api/v1/dashboard/stats?wait=true", headers=auth_headers)
    fake_source.counts["documents"] = 8
    response = await client.post(
        "/api/v1/dashboard/stats/refresh?wait=true", headers=auth_headers
    )
    assert response.status_code == 202
    assert response.json()["stats"]["total_documents"] == 8


async def test_refresh_is_rate_limited(
    client: AsyncClient,
    auth_headers: dict[str, str],
) -> None:
    allowed = int(REFRESH_LIMIT.split("/")[0])
    statuses = []
    for _ in range(allowed + 1):
        response = await client.post(
            "/api/v1/dashboard/stats/refresh?wait=true", headers=auth_headers
        )
        statuses.append(response.status_code)
    assert statuses[:allowed] == [202] * allowed
    assert statuses[-1] == 429


async def test_clear_cache(
    client: AsyncClient,
    auth_headers: dict[str, str],
    stats_cache,
) -> None:
    await client.get("/api/v1/dashboard/stats?wait=true", headers=auth_headers)
    assert stats_cache.peek("user-1") is not None

    response = await client.delete("/api/v1/dashboard/stats/cache", headers=auth_headers)

    assert response.status_code == 204
    assert stats_cache.peek("user-1") is None
    state = await client.get("/api/v1/dashboard/stats", headers=auth_headers)
    assert state.json()["is_cached"] is False


async def test_stats_returns_503_without_service(
    client: AsyncClient,
    auth_headers: dict[str, str],
    app,
) -> None:
    app.state.stats_service = None
    response = await client.get("/api/v1/dashboard/stats", headers=auth_headers)
    assert response.status_code == 503


async def test_reload_charts_endpoint(
    client: AsyncClient,
    auth_headers: dict[str, str],
    fake_source,
) -> None:
    await client.get("/api/v1/dashboard/stats?wait=true", headers=auth_headers)
    fake_source.rows["chat_messages"] = [{"timestamp": "2024-05-15T08:15:00Z"}]

    response = await client.post("/api/v1/dashboard/stats/charts", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert len(body["stats"]["hourly_activity"]) == 24
    assert len(body["stats"]["activity_30_days"]) == 30
    assert body["phase"] == "published"


async def test_reload_charts_requires_token(client: AsyncClient) -> None:
    response = await client.post("/api/v1/dashboard/stats/charts")
    assert response.status_code == 401
