"""Tests for cache key and channel builders."""

import pytest

from app.infrastructure.cache.keys import (
    dashboard_stats_key,
    dashboard_stats_pattern,
    db_changes_channel,
    db_changes_pattern,
)


def test_dashboard_stats_key() -> None:
    assert dashboard_stats_key("3f1c-uuid") == "dashboard_stats_3f1c-uuid"
    assert dashboard_stats_pattern() == "dashboard_stats_*"


def test_db_changes_channel() -> None:
    assert db_changes_channel("3f1c-uuid") == "db_changes:3f1c-uuid"
    assert db_changes_pattern() == "db_changes:*"


@pytest.mark.parametrize("user_id", ["", "a b", "a*", "a?", "a[0]", "a:b"])
def test_unsafe_user_ids_rejected(user_id: str) -> None:
    with pytest.raises(ValueError):
        dashboard_stats_key(user_id)
    with pytest.raises(ValueError):
        db_changes_channel(user_id)
