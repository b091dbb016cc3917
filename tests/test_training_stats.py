"""Tests for streaks, per-exercise history and E1RM tracking."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from liftcore.models import (
    PREvent,
    PRType,
    Session,
    SessionExercise,
    SessionStatus,
    SetLog,
    SetScheme,
    SetSchemeType,
    SetStatus,
)
from liftcore.services.training_stats import (
    best_estimated_max_by_exercise,
    completed_sessions,
    exercise_history,
    exercise_stats,
    previous_performance,
    update_e1rm_history,
    workout_stats,
    workout_streak,
)

NOW = datetime(2026, 3, 2, 18, 0, tzinfo=timezone.utc)


def _session(day: date, load=100.0, status=SessionStatus.COMPLETED, duration=60, exercise_id="bench") -> Session:
    sets = [
        SetLog(id=f"{day}-{i}", set_number=i, target_reps=5, actual_reps=5, actual_load=load, status=SetStatus.COMPLETED)
        for i in (1, 2)
    ]
    return Session(
        id=f"sess-{day.isoformat()}",
        program_id="p1",
        program_version="1.0",
        workout_template_id="t",
        workout_name="Push A",
        week_number=1,
        day_number=0,
        scheduled_date=day,
        status=status,
        exercises=[SessionExercise(
            id=f"occ-{day}",
            exercise_id=exercise_id,
            exercise_name="Bench Press",
            target_scheme=SetScheme(type=SetSchemeType.FIXED_REPS, sets=2, reps=5),
            sets=sets,
        )],
        total_sets=2,
        total_volume=load * 10,
        duration_minutes=duration,
        completed_at=datetime(day.year, day.month, day.day, 19, 0, tzinfo=timezone.utc)
        if status == SessionStatus.COMPLETED else None,
    )


def test_streak_empty():
    streak = workout_streak([], today=date(2026, 3, 2))
    assert streak.current == 0
    assert streak.longest == 0
    assert streak.last_workout_date is None


def test_streak_counts_consecutive_days():
    days = [date(2026, 2, d) for d in (20, 21, 22, 25, 26)]
    streak = workout_streak([_session(d) for d in days], today=date(2026, 2, 27))
    assert streak.current == 2
    assert streak.longest == 3
    assert streak.last_workout_date == date(2026, 2, 26)


def test_streak_lapses_after_missed_day():
    days = [date(2026, 2, d) for d in (24, 25, 26)]
    streak = workout_streak([_session(d) for d in days], today=date(2026, 2, 28))
    assert streak.current == 0
    assert streak.longest == 3


def test_streak_counts_one_session_per_day_and_ignores_open_sessions():
    sessions = [
        _session(date(2026, 3, 1)),
        _session(date(2026, 3, 1)),
        _session(date(2026, 3, 2), status=SessionStatus.ACTIVE),
    ]
    assert workout_streak(sessions, today=date(2026, 3, 2)).current == 1


def test_completed_sessions_most_recent_first():
    sessions = [_session(date(2026, 3, d)) for d in (1, 3, 2)]
    sessions.append(_session(date(2026, 3, 4), status=SessionStatus.SCHEDULED))
    assert [s.scheduled_date.day for s in completed_sessions(sessions)] == [3, 2, 1]


def test_exercise_history_and_previous_performance():
    sessions = [_session(date(2026, 3, d), load=90 + d) for d in (1, 2, 3)]
    sessions.append(_session(date(2026, 3, 4), exercise_id="squat"))

    history = exercise_history(sessions, "bench", limit=2)
    assert [ex.sets[0].actual_load for _, ex in history] == [93, 92]

    sets, when = previous_performance(sessions, "bench")
    assert [s.actual_load for s in sets] == [93, 93]
    assert when.date() == date(2026, 3, 3)
    assert previous_performance(sessions, "deadlift") is None


def test_best_estimated_max_by_exercise():
    sessions = [_session(date(2026, 3, 1), load=100), _session(date(2026, 3, 2), load=90)]
    sessions.append(_session(date(2026, 3, 3), load=200, status=SessionStatus.ACTIVE))
    assert best_estimated_max_by_exercise(sessions) == {"bench": pytest.approx(116.7)}


def test_update_e1rm_history_adds_and_skips_small_changes():
    histories = update_e1rm_history([], "bench", "Bench Press", 100.0, "kg", now=NOW)
    assert len(histories) == 1
    assert histories[0].current_e1rm == 100.0

    same = update_e1rm_history(histories, "bench", "Bench Press", 101.0, "kg", now=NOW)
    assert len(same[0].entries) == 1

    later = NOW + timedelta(days=7)
    grown = update_e1rm_history(histories, "bench", "Bench Press", 110.0, "kg", now=later)
    assert [e.e1rm for e in grown[0].entries] == [100.0, 110.0]
    assert grown[0].current_e1rm == 110.0
    assert grown[0].percent_change == 10.0
    assert histories[0].current_e1rm == 100.0


def test_workout_stats():
    sessions = [_session(date(2026, 3, 1), duration=50), _session(date(2026, 3, 2), duration=70)]
    sessions[1].pr_events.append(
        PREvent(type=PRType.VOLUME, new_value=1000, description="Volume PR", date=NOW)
    )
    sessions.append(_session(date(2026, 3, 3), status=SessionStatus.ACTIVE))

    stats = workout_stats(sessions, today=date(2026, 3, 2))
    assert stats.total_sessions == 2
    assert stats.total_volume == 2000
    assert stats.total_sets == 4
    assert stats.total_hours == 2.0
    assert stats.average_session_duration == 60
    assert stats.pr_count == 1
    assert stats.streak.current == 2


def test_exercise_stats_totals_best_set_and_recent_trail():
    sessions = [
        _session(date(2026, 3, 1), load=100),
        _session(date(2026, 3, 3), load=110),
        _session(date(2026, 3, 2), load=105),
        _session(date(2026, 3, 4), load=200, status=SessionStatus.ACTIVE),
        _session(date(2026, 3, 5), load=60, exercise_id="squat"),
    ]
    stats = exercise_stats(sessions, "bench", recent_limit=2)

    assert stats.total_sessions == 3
    assert stats.total_sets == 6
    assert stats.total_volume == pytest.approx(3150)
    assert stats.best_set.id == "2026-03-03-1"
    assert [r.volume for r in stats.recent_sessions] == [1100, 1050]
    assert stats.recent_sessions[0].date == datetime(2026, 3, 3, 19, 0, tzinfo=timezone.utc)
    assert stats.recent_sessions[0].e1rm == 128.3


def test_exercise_stats_skips_failed_sets_and_unknown_exercise():
    session = _session(date(2026, 3, 1))
    session.exercises[0].sets[1].status = SetStatus.FAILED
    stats = exercise_stats([session], "bench")
    assert stats.total_sets == 1
    assert stats.total_volume == 500

    empty = exercise_stats([session], "deadlift")
    assert empty.total_sessions == 0
    assert empty.best_set is None
    assert empty.recent_sessions == []
