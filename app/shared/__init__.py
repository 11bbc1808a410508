"""Shared utilities: request context, telemetry, and datetime helpers.

Used by domain, application, and infrastructure. No business logic.
"""

from app.shared.context import (
    get_current_user_id,
    get_request_id,
    set_current_user_id,
    set_request_id,
)
from app.shared.utils import ensure_utc, parse_timestamp, utc_now

__all__ = [
    "ensure_utc",
    "get_current_user_id",
    "get_request_id",
    "parse_timestamp",
    "set_current_user_id",
    "set_request_id",
    "utc_now",
]
