"""Shared utilities: UTC datetime helpers."""

from app.shared.utils.datetime import (
    ensure_utc,
    parse_timestamp,
    start_of_local_day,
    utc_now,
)

__all__ = [
    "ensure_utc",
    "parse_timestamp",
    "start_of_local_day",
    "utc_now",
]
