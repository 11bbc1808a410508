"""Tests for StatsCache (memory + durable mirror) and the Redis CacheService."""

import json
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock

import pytest
import redis.asyncio as redis

from app.application.dtos.analytics import ActivityBucket, DashboardStats, RecentNote
from app.infrastructure.cache.redis_cache import CacheService
from app.infrastructure.cache.stats_cache import StatsCache

NOW = datetime(2024, 5, 15, 12, 0, tzinfo=UTC)


class InMemoryDurableStore:
    """CacheProtocol implementation backed by a dict (values stored as JSON text)."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}

    def is_available(self) -> bool:
        return True

    async def get(self, key: str) -> Any:
        raw = self.data.get(key)
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        self.data[key] = json.dumps(value)
        self.ttls[key] = ttl
        return True

    async def delete(self, key: str) -> bool:
        self.data.pop(key, None)
        return True

    async def delete_pattern(self, pattern: str) -> int:
        prefix = pattern.rstrip("*")
        keys = [k for k in self.data if k.startswith(prefix)]
        for k in keys:
            del self.data[k]
        return len(keys)


@pytest.fixture
def durable() -> InMemoryDurableStore:
    return InMemoryDurableStore()


def _snapshot(**overrides: Any) -> DashboardStats:
    values: dict[str, Any] = {
        "total_notes": 3,
        "notes_with_ai": 1,
        "recent_notes": (RecentNote(id="n1", title="T", category=None, created_at="2024-05-15T10:00:00Z"),),
        "activity_7_days": (ActivityBucket.from_counts("2024-05-15", notes=2, messages=1),),
        "last_fetched": NOW,
    }
    values.update(overrides)
    return DashboardStats(**values)


async def test_set_persists_under_user_key(durable: InMemoryDurableStore) -> None:
    cache = StatsCache(durable, durable_ttl_seconds=600)
    await cache.set("user-1", _snapshot())
    assert "dashboard_stats_user-1" in durable.data
    assert durable.ttls["dashboard_stats_user-1"] == 600
    assert cache.peek("user-1") is not None


async def test_new_instance_warms_from_durable_store(durable: InMemoryDurableStore) -> None:
    """A restarted process reads the persisted snapshot back intact."""
    await StatsCache(durable).set("user-1", _snapshot())
    fresh = StatsCache(durable)
    assert fresh.peek("user-1") is None
    restored = await fresh.get("user-1")
    assert restored == _snapshot()
    assert restored.last_fetched == NOW
    assert "user-1" in fresh


async def test_corrupt_persisted_payload_is_discarded(durable: InMemoryDurableStore) -> None:
    durable.data["dashboard_stats_user-1"] = json.dumps({"total_notes": -4})
    cache = StatsCache(durable)
    assert await cache.get("user-1") is None
    assert "dashboard_stats_user-1" not in durable.data


async def test_memory_only_cache() -> None:
    cache = StatsCache()
    assert await cache.get("user-1") is None
    await cache.set("user-1", _snapshot())
    assert (await cache.get("user-1")).total_notes == 3


async def test_clear_one_user(durable: InMemoryDurableStore) -> None:
    cache = StatsCache(durable)
    await cache.set("user-1", _snapshot())
    await cache.set("user-2", _snapshot())
    await cache.clear("user-1")
    assert await cache.get("user-1") is None
    assert await cache.get("user-2") is not None


async def test_clear_all_users(durable: InMemoryDurableStore) -> None:
    cache = StatsCache(durable)
    await cache.set("user-1", _snapshot())
    await cache.set("user-2", _snapshot())
    await cache.clear()
    assert durable.data == {}
    assert cache.peek("user-2") is None


def test_freshness_uses_duration() -> None:
    cache = StatsCache(duration_seconds=3600)
    snapshot = _snapshot()
    assert cache.is_fresh(snapshot, NOW + timedelta(minutes=59))
    assert not cache.is_fresh(snapshot, NOW + timedelta(hours=1))


async def test_unsafe_user_id_is_rejected() -> None:
    cache = StatsCache()
    with pytest.raises(ValueError, match="forbidden"):
        await cache.set("user *", _snapshot())


# ---- CacheService (Redis) ----


@pytest.fixture
def redis_client() -> AsyncMock:
    return AsyncMock()


async def test_cache_service_get_decodes_json(redis_client: AsyncMock) -> None:
    redis_client.get.return_value = json.dumps({"total_notes": 2})
    service = CacheService(redis_client)
    assert await service.get("k") == {"total_notes": 2}
    redis_client.get.assert_awaited_once_with("k")


async def test_cache_service_set_with_ttl_uses_setex(redis_client: AsyncMock) -> None:
    service = CacheService(redis_client)
    assert await service.set("k", {"a": 1}, ttl=60) is True
    redis_client.setex.assert_awaited_once_with("k", 60, '{"a": 1}')


async def test_cache_service_set_without_ttl(redis_client: AsyncMock) -> None:
    service = CacheService(redis_client)
    await service.set("k", [1, 2])
    redis_client.set.assert_awaited_once_with("k", "[1, 2]")


async def test_cache_service_swallows_redis_errors(redis_client: AsyncMock) -> None:
    redis_client.get.side_effect = redis.ResponseError("WRONGTYPE")
    service = CacheService(redis_client)
    assert await service.get("k") is None


async def test_cache_service_non_json_value_is_a_miss(redis_client: AsyncMock) -> None:
    redis_client.get.return_value = "not json"
    assert await CacheService(redis_client).get("k") is None


async def test_cache_service_unavailable_returns_defaults() -> None:
    service = CacheService()
    assert not service.is_available()
    assert await service.get("k") is None
    assert await service.set("k", 1) is False
    assert await service.delete_pattern("k*") == 0
