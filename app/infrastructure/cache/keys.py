"""Cache key and channel builders. Single place for key format.

User ids are Supabase auth UUIDs; they must be non-empty and free of
whitespace and glob characters so pattern deletes stay exact.
"""

import re

from app.core.constants import CACHE_PREFIX_DASHBOARD_STATS, CHANNEL_PREFIX_DB_CHANGES

_FORBIDDEN_CHARS = re.compile(r"[\s*?\[\]:]")


def _validate_user_id(user_id: str) -> None:
    """Raise ValueError if user_id is empty or contains forbidden characters."""
    if not user_id:
        raise ValueError("Cache key component 'user_id' must be non-empty")
    if _FORBIDDEN_CHARS.search(user_id):
        raise ValueError(
            f"Cache key component 'user_id' contains a forbidden character: {user_id!r}"
        )


def dashboard_stats_key(user_id: str) -> str:
    """Durable cache key for a user's dashboard snapshot: dashboard_stats_<userId>."""
    _validate_user_id(user_id)
    return f"{CACHE_PREFIX_DASHBOARD_STATS}_{user_id}"


def dashboard_stats_pattern() -> str:
    """Glob matching every dashboard snapshot key."""
    return f"{CACHE_PREFIX_DASHBOARD_STATS}_*"


def db_changes_channel(user_id: str) -> str:
    """Pub/sub channel carrying a user's database change events."""
    _validate_user_id(user_id)
    return f"{CHANNEL_PREFIX_DB_CHANGES}:{user_id}"


def db_changes_pattern() -> str:
    return f"{CHANNEL_PREFIX_DB_CHANGES}:*"
