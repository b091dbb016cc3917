"""Tests for the session lifecycle and set logging."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from liftcore.errors import ExerciseNotFoundError, SessionStateError, SetNotFoundError
from liftcore.models import (
    Session,
    SessionExercise,
    SessionStatus,
    SetLog,
    SetScheme,
    SetSchemeType,
    SetStatus,
)
from liftcore.services.session_log import (
    add_set,
    complete_session,
    correct_set,
    pause_session,
    record_set,
    resume_session,
    session_totals,
    skip_exercise,
    start_session,
    substitute_exercise,
)
from liftcore.validators import SetResultInput

T0 = datetime(2026, 3, 2, 17, 0, tzinfo=timezone.utc)


def _scheduled() -> Session:
    sets = [SetLog(id=f"set-{i}", set_number=i, target_reps=5) for i in range(1, 4)]
    return Session(
        id="sess-1",
        program_id="p1",
        program_version="1.0",
        workout_template_id="t-push",
        workout_name="Push A",
        week_number=1,
        day_number=1,
        scheduled_date=date(2026, 3, 2),
        exercises=[SessionExercise(
            id="occ-1",
            exercise_id="bench",
            exercise_name="Bench Press",
            target_scheme=SetScheme(type=SetSchemeType.FIXED_REPS, sets=3, reps=5),
            sets=sets,
        )],
    )


def _active() -> Session:
    return start_session(_scheduled(), now=T0)


def test_lifecycle_transitions():
    session = _active()
    assert session.status == SessionStatus.ACTIVE
    assert session.started_at == T0

    paused = pause_session(session, now=T0 + timedelta(minutes=10))
    assert paused.status == SessionStatus.PAUSED
    assert paused.paused_at == T0 + timedelta(minutes=10)
    assert resume_session(paused).status == SessionStatus.ACTIVE


def test_invalid_transitions_raise():
    with pytest.raises(SessionStateError):
        pause_session(_scheduled())
    with pytest.raises(SessionStateError):
        resume_session(_active())
    with pytest.raises(SessionStateError):
        start_session(_active())
    with pytest.raises(SessionStateError):
        complete_session(_scheduled())


def test_record_set_fills_actuals():
    stamp = T0 + timedelta(minutes=5)
    session = record_set(_active(), "bench", "set-1", {"actual_reps": 5, "actual_load": 100, "rpe": 7}, now=stamp)
    logged = session.exercises[0].sets[0]
    assert logged.status == SetStatus.COMPLETED
    assert logged.actual_reps == 5
    assert logged.actual_load == 100
    assert logged.rpe == 7
    assert logged.completed_at == stamp
    assert session.exercises[0].sets[1].status == SetStatus.PENDING


def test_record_set_leaves_input_untouched():
    session = _active()
    record_set(session, "bench", "set-1", SetResultInput(actual_reps=5, actual_load=100))
    assert session.exercises[0].sets[0].status == SetStatus.PENDING


def test_record_failed_set():
    session = record_set(_active(), "bench", "set-2", {"actual_reps": 2, "actual_load": 100, "status": "failed"})
    assert session.exercises[0].sets[1].status == SetStatus.FAILED


def test_record_set_requires_active_session():
    with pytest.raises(SessionStateError):
        record_set(_scheduled(), "bench", "set-1", {"actual_reps": 5, "actual_load": 100})


def test_record_set_twice_raises():
    session = record_set(_active(), "bench", "set-1", {"actual_reps": 5, "actual_load": 100})
    with pytest.raises(SessionStateError):
        record_set(session, "bench", "set-1", {"actual_reps": 6, "actual_load": 100})


def test_record_set_rejects_invalid_input():
    with pytest.raises(ValidationError):
        record_set(_active(), "bench", "set-1", {"actual_reps": -1, "actual_load": 100})
    with pytest.raises(ValidationError):
        record_set(_active(), "bench", "set-1", {"actual_reps": 5, "actual_load": 100, "rpe": 11})


def test_unknown_exercise_and_set_raise_typed_errors():
    with pytest.raises(ExerciseNotFoundError) as exc:
        record_set(_active(), "deadlift", "set-1", {"actual_reps": 5, "actual_load": 100})
    assert exc.value.exercise_id == "deadlift"
    assert exc.value.session_id == "sess-1"

    with pytest.raises(SetNotFoundError) as exc:
        record_set(_active(), "bench", "set-9", {"actual_reps": 5, "actual_load": 100})
    assert exc.value.set_id == "set-9"


def test_exercise_found_by_occurrence_id():
    session = record_set(_active(), "occ-1", "set-1", {"actual_reps": 5, "actual_load": 100})
    assert session.exercises[0].sets[0].is_completed


def test_correct_set():
    session = record_set(_active(), "bench", "set-1", {"actual_reps": 5, "actual_load": 100, "rpe": 7})
    fixed = correct_set(session, "bench", "set-1", {"actual_load": 102.5})
    logged = fixed.exercises[0].sets[0]
    assert logged.actual_load == 102.5
    assert logged.actual_reps == 5
    assert logged.rpe == 7


def test_correct_pending_set_raises():
    with pytest.raises(SessionStateError):
        correct_set(_active(), "bench", "set-1", {"actual_reps": 4})


def test_complete_session_computes_totals_and_duration():
    session = _active()
    session = record_set(session, "bench", "set-1", {"actual_reps": 5, "actual_load": 100})
    session = record_set(session, "bench", "set-2", {"actual_reps": 5, "actual_load": 100})
    session = record_set(session, "bench", "set-3", {"actual_reps": 3, "actual_load": 100, "status": "failed"})
    assert session_totals(session) == (2, 1000)

    done = complete_session(session, now=T0 + timedelta(minutes=52, seconds=40))
    assert done.status == SessionStatus.COMPLETED
    assert done.total_sets == 2
    assert done.total_volume == 1000
    assert done.duration_minutes == 53
    assert done.completed_at == T0 + timedelta(minutes=52, seconds=40)


def test_complete_from_paused():
    paused = pause_session(_active())
    assert complete_session(paused, now=T0 + timedelta(minutes=30)).duration_minutes == 30


def test_completed_session_is_read_only():
    done = complete_session(_active(), now=T0)
    with pytest.raises(SessionStateError):
        complete_session(done)
    with pytest.raises(SessionStateError):
        add_set(done, "bench")
    with pytest.raises(SessionStateError):
        skip_exercise(done, "bench")


def test_add_set_appends_pending_set():
    session = add_set(_active(), "bench", target_load=90)
    sets = session.exercises[0].sets
    assert len(sets) == 4
    assert sets[-1].set_number == 4
    assert sets[-1].target_reps == 5
    assert sets[-1].target_load == 90
    assert sets[-1].status == SetStatus.PENDING


def test_substitute_exercise_remembers_original():
    session = substitute_exercise(_active(), "bench", "db-bench", "Dumbbell Bench Press")
    ex = session.exercises[0]
    assert ex.exercise_id == "db-bench"
    assert ex.exercise_name == "Dumbbell Bench Press"
    assert ex.substituted_from == "bench"

    again = substitute_exercise(session, "db-bench", "machine-press", "")
    assert again.exercises[0].substituted_from == "bench"
    assert again.exercises[0].exercise_name == "machine-press"


def test_skip_exercise():
    assert skip_exercise(_active(), "bench").exercises[0].skipped is True
