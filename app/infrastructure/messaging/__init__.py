"""Messaging: Redis pub/sub change feed for stats patching."""

from app.infrastructure.messaging.redis_pubsub import (
    ChangeEventPublisher,
    dispatch_change_message,
    run_change_feed_listener,
)

__all__ = [
    "ChangeEventPublisher",
    "dispatch_change_message",
    "run_change_feed_listener",
]
