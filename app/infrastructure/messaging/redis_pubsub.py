"""Redis Pub/Sub change feed for dashboard stats.

Database change payloads (Supabase webhook or Realtime shape) are published
to a per-user channel db_changes:<user_id>. Every app instance runs
run_change_feed_listener, which pattern-subscribes to db_changes:* and hands
each payload to the stats service so cached snapshots are patched in place.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import redis.asyncio as redis

from app.core.config import get_settings
from app.infrastructure.cache.keys import db_changes_channel, db_changes_pattern

logger = logging.getLogger(__name__)


class _RedisPubSubBase:
    """Shared Redis connection for the change feed."""

    def __init__(self, redis_client: redis.Redis | None = None) -> None:
        """Initialize. Pass redis_client for DI/testing."""
        self.redis = redis_client
        self.settings = get_settings()
        self._connected = redis_client is not None

    async def connect(self) -> None:
        """Establish Redis connection. Call on app startup."""
        if self._connected:
            return
        if self.redis is None:
            try:
                self.redis = redis.Redis(
                    host=self.settings.redis_host,
                    port=self.settings.redis_port,
                    db=self.settings.redis_db,
                    password=self.settings.redis_password.get_secret_value() if self.settings.redis_password else None,
                    decode_responses=True,
                    socket_connect_timeout=5,
                )
                await self.redis.ping()
                self._connected = True
                logger.info("Redis change feed connected")
            except (redis.ConnectionError, redis.TimeoutError) as e:
                logger.warning("Redis change feed connection failed: %s", e)
                self._connected = False
                self.redis = None

    async def disconnect(self) -> None:
        """Close Redis connection. Call on app shutdown."""
        if self.redis:
            await self.redis.aclose()
            self._connected = False
            logger.info("Redis change feed disconnected")

    def is_available(self) -> bool:
        return self._connected and self.redis is not None


class ChangeEventPublisher(_RedisPubSubBase):
    """Publishes raw change payloads to the owning user's channel."""

    async def publish(self, user_id: str, payload: dict[str, Any]) -> bool:
        """Publish a change payload for user_id.

        Returns:
            True if published, False if Redis is unavailable or the publish failed.
        """
        if not self.is_available() or self.redis is None:
            logger.debug("Redis not available, skipping change publish")
            return False
        try:
            channel = db_changes_channel(user_id)
            await self.redis.publish(channel, json.dumps(payload, default=str))
            logger.debug("Published change to %s", channel)
        except Exception:
            logger.exception("Failed to publish change event")
            return False
        else:
            return True


def _channel_user_id(channel: Any) -> str | None:
    """db_changes:<user_id> -> user_id (None for anything else)."""
    if isinstance(channel, bytes):
        channel = channel.decode(errors="replace")
    if not channel or not isinstance(channel, str) or ":" not in channel:
        return None
    user_id = channel.split(":", 1)[1]
    return user_id or None


async def dispatch_change_message(service: Any, message: dict[str, Any]) -> bool:
    """Apply one pmessage from the change feed. Returns True if it was handled."""
    if message.get("type") != "pmessage":
        return False
    user_id = _channel_user_id(message.get("channel"))
    if user_id is None:
        return False
    try:
        data = json.loads(message["data"])
    except (json.JSONDecodeError, KeyError, TypeError):
        logger.exception("Failed to parse change feed message")
        return False
    if not isinstance(data, dict):
        logger.warning("Ignoring non-object change payload for user %s", user_id)
        return False
    await service.handle_change_payload(user_id, data)
    return True


async def run_change_feed_listener(app: Any) -> None:
    """Subscribe to db_changes:* and patch stats for each message.

    Call as a background task from lifespan when Redis is enabled. Cancelling the task stops the loop.
    """
    subscriber = _RedisPubSubBase()
    await subscriber.connect()
    if not subscriber.is_available() or subscriber.redis is None:
        logger.warning("Redis not available, change feed listener not started")
        return
    pubsub = subscriber.redis.pubsub()
    try:
        await pubsub.psubscribe(db_changes_pattern())
        logger.info("Subscribed to %s for stats patching", db_changes_pattern())
        async for message in pubsub.listen():
            service = getattr(app.state, "stats_service", None)
            if service is None:
                continue
            try:
                await dispatch_change_message(service, message)
            except Exception:
                logger.exception("Change feed handler failed")
    except asyncio.CancelledError:
        logger.info("Change feed listener cancelled")
    except Exception:
        logger.exception("Change feed listener error")
    finally:
        await pubsub.punsubscribe()
        await pubsub.aclose()
        await subscriber.disconnect()
