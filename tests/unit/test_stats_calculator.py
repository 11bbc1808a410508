"""Tests for client-side dashboard aggregation (stats_calculator)."""

from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

import pytest

from app.application.dtos.analytics import ActivityBucket, DashboardStats
from app.application.services import stats_calculator as calc

TODAY = date(2024, 5, 15)  # Wednesday
NOW = datetime(2024, 5, 15, 12, 0, tzinfo=UTC)


def test_daily_activity_window_is_fixed_length_oldest_first() -> None:
    """7-day window ends today; rows before the window are ignored."""
    rows = {
        "notes": [
            {"created_at": "2024-05-15T10:00:00Z"},
            {"created_at": "2024-05-09T00:00:00Z"},
            {"created_at": "2024-05-08T23:59:59Z"},
        ],
        "messages": [{"timestamp": "2024-05-15T11:00:00+00:00"}],
    }
    series = calc.build_daily_activity(7, rows, UTC, TODAY)
    assert [b.label for b in series][0] == "2024-05-09"
    assert series[-1].label == "2024-05-15"
    assert len(series) == 7
    assert series[-1].notes == 1
    assert series[-1].messages == 1
    assert series[-1].total == 2
    assert series[0].notes == 1
    assert sum(b.total for b in series) == 3


def test_daily_activity_buckets_by_local_day() -> None:
    """02:00 UTC on the 15th is still the 14th in New York."""
    rows = {"notes": [{"created_at": "2024-05-15T02:00:00Z"}]}
    series = calc.build_daily_activity(7, rows, ZoneInfo("America/New_York"), TODAY)
    by_label = {b.label: b for b in series}
    assert by_label["2024-05-14"].notes == 1
    assert by_label["2024-05-15"].notes == 0


def test_daily_activity_skips_rows_without_timestamp() -> None:
    series = calc.build_daily_activity(7, {"documents": [{"created_at": None}, {}]}, UTC, TODAY)
    assert all(b.total == 0 for b in series)


def test_daily_activity_rejects_unknown_category() -> None:
    with pytest.raises(ValueError, match="Unknown activity category"):
        calc.build_daily_activity(7, {"quizzes": []}, UTC, TODAY)


def test_activity_from_rpc_zero_fills_and_recomputes_totals() -> None:
    """Missing days become zero buckets; the server's total is not trusted."""
    rows = [
        {"date": "2024-05-15", "notes": 2, "recordings": 1, "documents": 0, "messages": 0, "total": 99},
        {"date": "not-a-date", "notes": 5},
    ]
    series = calc.activity_from_rpc(rows, 7, TODAY)
    assert len(series) == 7
    assert series[-1].total == 3
    assert sum(b.total for b in series[:-1]) == 0


def test_hourly_activity_has_24_buckets() -> None:
    rows = {
        "notes": [{"created_at": "2024-05-15T14:05:00Z"}, {"created_at": "2024-05-14T14:59:00Z"}],
        "recordings": [{"created_at": "2024-05-15T03:00:00Z"}],
    }
    hourly = calc.build_hourly_activity(rows, UTC)
    assert len(hourly) == 24
    assert hourly[0].label == "0"
    assert hourly[14].notes == 2
    assert hourly[3].recordings == 1


def test_weekday_activity_folds_daily_series_sun_first() -> None:
    daily = (
        ActivityBucket.from_counts("2024-05-12", notes=1),  # Sunday
        ActivityBucket.from_counts("2024-05-13", notes=2),  # Monday
        ActivityBucket.from_counts("2024-05-20", recordings=3),  # Monday
    )
    weekday = calc.build_weekday_activity(daily)
    assert [b.label for b in weekday] == ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
    assert weekday[0].total == 1
    assert weekday[1].notes == 2
    assert weekday[1].recordings == 3
    assert weekday[1].total == 5


def test_streak_counts_back_from_today() -> None:
    days = [date(2024, 5, 13), date(2024, 5, 14), date(2024, 5, 15)]
    streak = calc.compute_streak(days, TODAY)
    assert streak.current == 3
    assert streak.longest == 3


def test_streak_counts_from_yesterday_when_today_is_empty() -> None:
    days = [date(2024, 5, 13), date(2024, 5, 14)]
    assert calc.compute_streak(days, TODAY).current == 2


def test_streak_broken_run_keeps_longest() -> None:
    days = [date(2024, 5, 1), date(2024, 5, 2), date(2024, 5, 3), date(2024, 5, 3), date(2024, 5, 10)]
    streak = calc.compute_streak(days, TODAY)
    assert streak.current == 0
    assert streak.longest == 3


def test_streak_without_activity_is_zero() -> None:
    streak = calc.compute_streak([], TODAY)
    assert (streak.current, streak.longest) == (0, 0)


def test_streak_from_rows_uses_local_days() -> None:
    rows = [{"created_at": "2024-05-15T09:00:00Z"}, {"created_at": "2024-05-14T09:00:00Z"}]
    assert calc.streak_from_rows(rows, UTC, TODAY).current == 2


@pytest.mark.parametrize(
    ("data", "expected"),
    [
        ([{"current_streak": 4, "max_streak": 9}], (4, 9)),
        ({"current_streak": 1, "max_streak": 2}, (1, 2)),
        ([], (0, 0)),
        ("garbage", (0, 0)),
    ],
)
def test_streak_from_rpc_shapes(data, expected) -> None:
    streak = calc.streak_from_rpc(data)
    assert (streak.current, streak.longest) == expected


def test_study_time_sums_by_window() -> None:
    rows = [
        {"duration": 600, "created_at": "2024-05-14T12:00:00Z"},
        {"duration": 1200, "created_at": "2024-05-01T12:00:00Z"},
        {"duration": 300, "created_at": "2024-03-01T12:00:00Z"},
        {"duration": None, "created_at": "2024-05-15T11:00:00Z"},
    ]
    summary = calc.summarize_study_time(rows, NOW)
    assert summary.total == 2100
    assert summary.this_week == 600
    assert summary.this_month == 1800


def test_documents_breakdown_by_status() -> None:
    rows = [
        {"processing_status": "completed", "file_size": 100},
        {"processing_status": "pending", "file_size": 50},
        {"processing_status": "processing", "file_size": None},
        {"processing_status": "failed", "file_size": 10},
        {"processing_status": None, "file_size": 1},
    ]
    breakdown = calc.summarize_documents(rows)
    assert breakdown.processed == 1
    assert breakdown.pending == 2
    assert breakdown.failed == 1
    assert breakdown.total_size == 161


def test_categories_capitalized_with_default() -> None:
    rows = [{"category": "math"}, {"category": "math"}, {"category": None}, {}]
    summary = calc.summarize_categories(rows)
    slices = {s.name: s.value for s in summary.category_data}
    assert slices == {"Math": 2, "General": 2}
    assert summary.top_categories[0].count == 2


def test_top_categories_capped_at_five() -> None:
    rows = [{"category": f"c{i}"} for i in range(8) for _ in range(i + 1)]
    summary = calc.summarize_categories(rows)
    assert len(summary.top_categories) == 5
    assert summary.top_categories[0].category == "c7"
    assert len(summary.category_data) == 8


def test_schedule_summary() -> None:
    rows = [
        # today, later: counts as today and upcoming
        {"start_time": "2024-05-15T15:00:00Z", "end_time": "2024-05-15T16:00:00Z"},
        # today, already finished
        {"start_time": "2024-05-15T08:00:00Z", "end_time": "2024-05-15T09:00:00Z"},
        # earlier day, still open
        {"start_time": "2024-05-10T08:00:00Z", "end_time": None},
        # next week
        {"start_time": "2024-05-22T08:00:00Z", "end_time": "2024-05-22T09:00:00Z"},
    ]
    summary = calc.summarize_schedule(rows, NOW, UTC)
    assert summary.today == 2
    assert summary.upcoming == 2
    assert summary.completed == 1
    assert summary.overdue == 1


def test_average_quiz_score_skips_empty_quizzes() -> None:
    rows = [
        {"score": 8, "total_questions": 10},
        {"score": 1, "total_questions": 2},
        {"score": 5, "total_questions": 0},
    ]
    assert calc.average_quiz_score(rows) == 65.0
    assert calc.average_quiz_score([]) == 0.0


def test_most_productive_defaults_without_activity() -> None:
    weekday = tuple(ActivityBucket.from_counts(label) for label in ("Sun", "Mon", "Tue"))
    hourly = tuple(ActivityBucket.from_counts(str(h)) for h in range(24))
    assert calc.most_productive(weekday, hourly) == ("Mon", 14)
    assert calc.most_productive((), ()) == ("Mon", 14)


def test_most_productive_first_maximum_wins() -> None:
    weekday = (
        ActivityBucket.from_counts("Sun", notes=1),
        ActivityBucket.from_counts("Mon", notes=3),
        ActivityBucket.from_counts("Tue", notes=3),
    )
    hourly = tuple(ActivityBucket.from_counts(str(h), notes=2 if h in (9, 20) else 0) for h in range(24))
    assert calc.most_productive(weekday, hourly) == ("Mon", 9)


def test_engagement_score_bounds() -> None:
    zero = calc.engagement_score(
        current_streak=0,
        avg_notes_per_day=0,
        ai_usage_rate=0,
        avg_daily_study_time=0,
        total_items=0,
        notes_this_week=0,
    )
    maxed = calc.engagement_score(
        current_streak=365,
        avg_notes_per_day=50,
        ai_usage_rate=100,
        avg_daily_study_time=36000,
        total_items=10_000,
        notes_this_week=70,
    )
    assert zero == 0
    assert maxed == 100


def test_ai_usage_rate() -> None:
    assert calc.ai_usage_rate(1, 4) == 25.0
    assert calc.ai_usage_rate(3, 0) == 0.0
    assert calc.ai_usage_rate(10, 5) == 100.0


def test_derive_rates_from_daily_series() -> None:
    daily = tuple(
        ActivityBucket.from_counts(f"2024-05-{d:02d}", notes=2 if d in (14, 15) else 0, recordings=1 if d == 15 else 0)
        for d in range(9, 16)
    )
    stats = DashboardStats(
        total_notes=4,
        notes_with_ai=2,
        study_time_this_month=7200,
        activity_7_days=daily,
        activity_30_days=daily,
        last_fetched=NOW,
    )
    derived = calc.derive_rates(stats)
    assert derived.notes_this_week == 4
    assert derived.recordings_this_week == 1
    assert derived.notes_this_month == 4
    assert derived.avg_notes_per_day == 2.0
    assert derived.avg_daily_study_time == 3600
    assert derived.ai_usage_rate == 50.0
    assert 0 <= derived.engagement_score <= 100
    assert derived.last_fetched == NOW


def test_derive_rates_keeps_period_counts_without_series() -> None:
    stats = DashboardStats(notes_this_week=3, recordings_this_month=2, last_fetched=NOW)
    derived = calc.derive_rates(stats)
    assert derived.notes_this_week == 3
    assert derived.recordings_this_month == 2
    assert derived.avg_notes_per_day == 0.0
    assert (derived.most_productive_day, derived.most_productive_hour) == ("Mon", 14)
