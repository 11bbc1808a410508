"""Typed database change events consumed by the incremental stats patcher.

Two payload shapes are accepted:
- Supabase Realtime: {"eventType": "INSERT", "table": ..., "new": {...}, "old": {...}}
- Supabase database webhooks: {"type": "INSERT", "table": ..., "record": {...}, "old_record": {...}}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from app.domain.enums import ChangeType
from app.domain.exceptions import ChangeEventException


@dataclass(frozen=True)
class Inserted:
    """A row was inserted into table."""

    table: str
    record: dict[str, Any]

    @property
    def user_id(self) -> str | None:
        return self.record.get("user_id")


@dataclass(frozen=True)
class Deleted:
    """A row was deleted from table. old_record carries at least the id."""

    table: str
    old_record: dict[str, Any]

    @property
    def user_id(self) -> str | None:
        return self.old_record.get("user_id")


@dataclass(frozen=True)
class Unknown:
    """Anything the patcher cannot apply incrementally (updates, unexpected shapes)."""

    table: str | None
    event_type: str | None
    reason: str
    record: dict[str, Any] = field(default_factory=dict)

    @property
    def user_id(self) -> str | None:
        return self.record.get("user_id")


ChangeEvent = Union[Inserted, Deleted, Unknown]


def parse_change_payload(payload: dict[str, Any]) -> ChangeEvent:
    """Build a typed change event from a Realtime or webhook payload.

    UPDATE events and unrecognized event types become Unknown so the
    caller falls back to a refresh.

    Raises:
        ChangeEventException: If payload is not a dict or has no event type.
    """
    if not isinstance(payload, dict):
        raise ChangeEventException("payload must be a JSON object")
    raw_type = payload.get("eventType") or payload.get("type")
    if not raw_type or not isinstance(raw_type, str):
        raise ChangeEventException("missing event type", sorted(payload))
    table = payload.get("table")
    new = payload.get("new") if "new" in payload else payload.get("record")
    old = payload.get("old") if "old" in payload else payload.get("old_record")
    new = new if isinstance(new, dict) else {}
    old = old if isinstance(old, dict) else {}

    event_type = raw_type.upper()
    if not table or not isinstance(table, str):
        return Unknown(None, event_type, "missing table", new or old)
    if event_type == ChangeType.INSERT.value:
        if not new.get("id"):
            return Unknown(table, event_type, "insert without record id", new)
        return Inserted(table, new)
    if event_type == ChangeType.DELETE.value:
        if not old.get("id"):
            return Unknown(table, event_type, "delete without record id", old)
        return Deleted(table, old)
    return Unknown(table, event_type, f"unsupported event type {event_type}", new or old)
