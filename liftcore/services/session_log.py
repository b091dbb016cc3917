"""Session lifecycle and set logging.

scheduled -> active <-> paused -> completed. Completion computes totals and
duration exactly once; a completed session is never reopened or edited.
All functions return a new Session and leave the input untouched.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable

from liftcore.errors import ExerciseNotFoundError, SessionStateError, SetNotFoundError
from liftcore.logging_config import log_fields
from liftcore.models import Session, SessionExercise, SessionStatus, SetLog, SetStatus
from liftcore.validators import SetCorrectionInput, SetResultInput

logger = logging.getLogger(__name__)

_EDITABLE = {SessionStatus.SCHEDULED, SessionStatus.ACTIVE, SessionStatus.PAUSED}


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(timezone.utc)


def _require(session: Session, allowed: set[SessionStatus], action: str) -> None:
    if session.status not in allowed:
        raise SessionStateError(f"Cannot {action} session {session.id} in status {session.status.value}")


def _exercise(session: Session, exercise_id: str) -> SessionExercise:
    found = session.find_exercise(exercise_id)
    if found is None:
        raise ExerciseNotFoundError(exercise_id, session.id)
    return found


def _with_exercise(
    session: Session, exercise_id: str, change: Callable[[SessionExercise], SessionExercise]
) -> Session:
    target = _exercise(session, exercise_id)
    exercises = [change(ex) if ex is target else ex for ex in session.exercises]
    return replace(session, exercises=exercises)


def _with_set(exercise: SessionExercise, set_id: str, change: Callable[[SetLog], SetLog]) -> SessionExercise:
    if not any(s.id == set_id for s in exercise.sets):
        raise SetNotFoundError(set_id, exercise.exercise_id)
    return replace(exercise, sets=[change(s) if s.id == set_id else s for s in exercise.sets])


def start_session(session: Session, now: datetime | None = None) -> Session:
    _require(session, {SessionStatus.SCHEDULED}, "start")
    return replace(session, status=SessionStatus.ACTIVE, started_at=_now(now))


def pause_session(session: Session, now: datetime | None = None) -> Session:
    _require(session, {SessionStatus.ACTIVE}, "pause")
    return replace(session, status=SessionStatus.PAUSED, paused_at=_now(now))


def resume_session(session: Session) -> Session:
    _require(session, {SessionStatus.PAUSED}, "resume")
    return replace(session, status=SessionStatus.ACTIVE)


def session_totals(session: Session) -> tuple[int, float]:
    """(completed set count, sum of load x reps over completed sets)."""
    total_sets = sum(len(ex.completed_sets()) for ex in session.exercises)
    total_volume = sum(ex.completed_volume() for ex in session.exercises)
    return total_sets, total_volume


def complete_session(session: Session, now: datetime | None = None) -> Session:
    _require(session, {SessionStatus.ACTIVE, SessionStatus.PAUSED}, "complete")
    completed_at = _now(now)
    total_sets, total_volume = session_totals(session)
    duration = 0
    if session.started_at is not None:
        duration = max(0, round((completed_at - session.started_at).total_seconds() / 60))

    logger.info(
        "Session %s completed: %d sets, volume %.1f, %d min",
        session.id,
        total_sets,
        total_volume,
        duration,
        extra=log_fields(session_id=session.id),
    )
    return replace(
        session,
        status=SessionStatus.COMPLETED,
        completed_at=completed_at,
        duration_minutes=duration,
        total_sets=total_sets,
        total_volume=total_volume,
    )


def record_set(
    session: Session,
    exercise_id: str,
    set_id: str,
    result: SetResultInput | dict[str, Any],
    now: datetime | None = None,
) -> Session:
    """Finish a pending set as completed or failed."""
    _require(session, {SessionStatus.ACTIVE}, "log a set for")
    data = result if isinstance(result, SetResultInput) else SetResultInput.model_validate(result)
    stamp = _now(now)

    def finish(s: SetLog) -> SetLog:
        if s.status != SetStatus.PENDING:
            raise SessionStateError(f"Set {s.id} is already {s.status.value}; use correct_set")
        return replace(
            s,
            actual_reps=data.actual_reps,
            actual_load=data.actual_load,
            rpe=data.rpe,
            time_seconds=data.time_seconds,
            status=data.status,
            completed_at=stamp,
        )

    return _with_exercise(session, exercise_id, lambda ex: _with_set(ex, set_id, finish))


def correct_set(
    session: Session,
    exercise_id: str,
    set_id: str,
    correction: SetCorrectionInput | dict[str, Any],
) -> Session:
    """Corrective edit of an already-logged set in a session that is still open."""
    _require(session, _EDITABLE, "correct a set in")
    data = (
        correction if isinstance(correction, SetCorrectionInput)
        else SetCorrectionInput.model_validate(correction)
    )
    updates = data.model_dump(exclude_none=True)

    def amend(s: SetLog) -> SetLog:
        if s.status == SetStatus.PENDING:
            raise SessionStateError(f"Set {s.id} has not been logged yet; use record_set")
        return replace(s, **updates)

    return _with_exercise(session, exercise_id, lambda ex: _with_set(ex, set_id, amend))


def add_set(
    session: Session,
    exercise_id: str,
    target_reps: int | None = None,
    target_load: float | None = None,
) -> Session:
    _require(session, _EDITABLE, "add a set to")

    def append(ex: SessionExercise) -> SessionExercise:
        new_set = SetLog(
            id=f"set-{uuid.uuid4().hex[:12]}",
            set_number=len(ex.sets) + 1,
            target_reps=target_reps if target_reps is not None else ex.target_scheme.reps,
            target_load=target_load,
        )
        return replace(ex, sets=[*ex.sets, new_set])

    return _with_exercise(session, exercise_id, append)


def substitute_exercise(
    session: Session, exercise_id: str, new_exercise_id: str, new_exercise_name: str
) -> Session:
    """Swap the movement mid-session, remembering the originally prescribed id."""
    _require(session, _EDITABLE, "substitute an exercise in")

    def swap(ex: SessionExercise) -> SessionExercise:
        return replace(
            ex,
            exercise_id=new_exercise_id,
            exercise_name=new_exercise_name or new_exercise_id,
            substituted_from=ex.substituted_from or ex.exercise_id,
        )

    return _with_exercise(session, exercise_id, swap)


def skip_exercise(session: Session, exercise_id: str) -> Session:
    _require(session, _EDITABLE, "skip an exercise in")
    return _with_exercise(session, exercise_id, lambda ex: replace(ex, skipped=True))
