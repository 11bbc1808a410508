"""Tests for incremental snapshot patching and the refresh debouncer."""

import asyncio
from datetime import UTC, datetime

import pytest

from app.application.dtos.analytics import DashboardStats, RecentNote
from app.application.dtos.changes import Deleted, Inserted, Unknown
from app.application.services.stats_patcher import RefreshDebouncer, apply_change

NOW = datetime(2024, 5, 15, 12, 0, tzinfo=UTC)


def _note(note_id: str) -> RecentNote:
    return RecentNote(id=note_id, title=f"Note {note_id}", category="math", created_at="2024-05-14T10:00:00Z")


@pytest.fixture
def snapshot() -> DashboardStats:
    return DashboardStats(
        total_notes=5,
        notes_with_ai=1,
        total_documents=1,
        recent_notes=(_note("n1"), _note("n2"), _note("n3")),
        last_fetched=NOW,
    )


def test_insert_note_increments_and_prepends(snapshot: DashboardStats) -> None:
    """A new note bumps the counter; the recent list keeps the 3 newest."""
    event = Inserted("notes", {"id": "n9", "title": "Fresh", "created_at": "2024-05-15T11:00:00Z", "user_id": "u1"})
    result = apply_change(snapshot, event)
    assert not result.needs_refresh
    patched = result.snapshot
    assert patched.total_notes == 6
    assert [n.id for n in patched.recent_notes] == ["n9", "n1", "n2"]
    assert patched.recent_notes[0].title == "Fresh"
    assert patched.notes_with_ai == 1
    assert patched.last_fetched == NOW


def test_insert_note_with_summary_counts_ai_usage(snapshot: DashboardStats) -> None:
    event = Inserted("notes", {"id": "n9", "title": "AI", "ai_summary": "tl;dr"})
    patched = apply_change(snapshot, event).snapshot
    assert patched.notes_with_ai == 2
    assert patched.ai_usage_rate == round(2 / 6 * 100, 2)


def test_patch_does_not_mutate_original(snapshot: DashboardStats) -> None:
    apply_change(snapshot, Inserted("notes", {"id": "n9"}))
    assert snapshot.total_notes == 5
    assert len(snapshot.recent_notes) == 3


def test_delete_floors_counter_at_zero() -> None:
    empty = DashboardStats(last_fetched=NOW)
    patched = apply_change(empty, Deleted("class_recordings", {"id": "r1"})).snapshot
    assert patched.total_recordings == 0


def test_delete_note_drops_it_from_recent(snapshot: DashboardStats) -> None:
    patched = apply_change(snapshot, Deleted("notes", {"id": "n2"})).snapshot
    assert patched.total_notes == 4
    assert [n.id for n in patched.recent_notes] == ["n1", "n3"]


def test_delete_keeps_ai_count_within_total() -> None:
    stats = DashboardStats(total_notes=1, notes_with_ai=1, last_fetched=NOW)
    patched = apply_change(stats, Deleted("notes", {"id": "n1"})).snapshot
    assert patched.total_notes == 0
    assert patched.notes_with_ai == 0
    assert patched.ai_usage_rate == 0.0


def test_same_insert_twice_counts_twice(snapshot: DashboardStats) -> None:
    """Change events are not deduplicated."""
    event = Inserted("chat_messages", {"id": "m1"})
    once = apply_change(snapshot, event).snapshot
    twice = apply_change(once, event).snapshot
    assert twice.total_messages == 2


def test_insert_schedule_item_has_no_recent_list(snapshot: DashboardStats) -> None:
    patched = apply_change(snapshot, Inserted("schedule_items", {"id": "s1"})).snapshot
    assert patched.total_schedule_items == 1
    assert patched.recent_notes == snapshot.recent_notes


def test_unknown_event_needs_refresh(snapshot: DashboardStats) -> None:
    result = apply_change(snapshot, Unknown("notes", "UPDATE", "unsupported event type UPDATE"))
    assert result.needs_refresh
    assert result.refresh_reason == "unsupported event type UPDATE"


def test_untracked_table_needs_refresh(snapshot: DashboardStats) -> None:
    result = apply_change(snapshot, Inserted("flashcards", {"id": "f1"}))
    assert result.needs_refresh
    assert "flashcards" in result.refresh_reason


def test_unreadable_row_needs_refresh(snapshot: DashboardStats) -> None:
    result = apply_change(snapshot, Inserted("class_recordings", {"id": "r1", "duration": "long"}))
    assert result.needs_refresh
    assert result.refresh_reason.startswith("patch error")


async def test_debouncer_collapses_bursts() -> None:
    calls: list[str] = []

    async def callback(user_id: str) -> None:
        calls.append(user_id)

    debouncer = RefreshDebouncer(callback, delay=0.02)
    for _ in range(5):
        debouncer.trigger("u1")
    debouncer.trigger("u2")
    assert debouncer.is_pending("u1")
    await asyncio.sleep(0.1)
    assert sorted(calls) == ["u1", "u2"]
    assert not debouncer.is_pending("u1")


async def test_debouncer_cancel_prevents_callback() -> None:
    calls: list[str] = []

    async def callback(user_id: str) -> None:
        calls.append(user_id)

    debouncer = RefreshDebouncer(callback, delay=0.02)
    debouncer.trigger("u1")
    await debouncer.cancel("u1")
    await asyncio.sleep(0.05)
    assert calls == []


async def test_debouncer_survives_failing_callback() -> None:
    async def callback(user_id: str) -> None:
        raise RuntimeError("refresh failed")

    debouncer = RefreshDebouncer(callback, delay=0)
    debouncer.trigger("u1")
    await asyncio.sleep(0.02)
    assert not debouncer.is_pending("u1")
    await debouncer.cancel_all()


def test_counters_never_negative_over_mixed_sequence(snapshot: DashboardStats) -> None:
    tables = ["notes", "class_recordings", "documents", "chat_messages", "schedule_items"]
    current = snapshot
    for step in range(40):
        table = tables[step % len(tables)]
        event = (
            Inserted(table, {"id": f"x{step}"})
            if step % 7 == 0
            else Deleted(table, {"id": f"x{step}"})
        )
        current = apply_change(current, event).snapshot
        assert current.total_notes >= 0
        assert current.total_recordings >= 0
        assert current.total_documents >= 0
        assert current.total_messages >= 0
        assert current.total_schedule_items >= 0
        assert 0 <= current.notes_with_ai <= current.total_notes
