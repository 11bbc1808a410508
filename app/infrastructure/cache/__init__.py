"""Cache: Redis durable store, dashboard snapshot cache, and key builders.

StatsCache is built in lifespan with the Redis CacheService as its durable
mirror; key format lives in keys.py.
"""

from app.infrastructure.cache.cache_protocol import CacheProtocol
from app.infrastructure.cache.keys import (
    dashboard_stats_key,
    dashboard_stats_pattern,
    db_changes_channel,
    db_changes_pattern,
)
from app.infrastructure.cache.redis_cache import CacheService
from app.infrastructure.cache.stats_cache import StatsCache

__all__ = [
    "CacheProtocol",
    "CacheService",
    "StatsCache",
    "dashboard_stats_key",
    "dashboard_stats_pattern",
    "db_changes_channel",
    "db_changes_pattern",
]
