"""Personal-record detection for completed sessions.

Three per-exercise record types are checked against prior history:
- volume: total load x reps over completed sets
- e1rm: best estimated one-rep max among this session's sets
- rep: more reps than ever before at an equal or heavier load

A record only fires when the prior best is nonzero, so the first time an
exercise is logged never counts as a PR.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Mapping, Sequence

from liftcore.models import PREvent, PRType, Session, SessionExercise, SetLog
from liftcore.services.load_math import estimate_one_rep_max

STREAK_MILESTONES = (7, 14, 30, 60, 90, 180, 365)


def _exercise_history(prior_sessions: Sequence[Session], exercise_id: str) -> list[SessionExercise]:
    history: list[SessionExercise] = []
    for session in prior_sessions:
        for ex in session.exercises:
            if ex.exercise_id == exercise_id and ex.completed_sets():
                history.append(ex)
    return history


def _set_e1rm(s: SetLog) -> float:
    return estimate_one_rep_max(s.actual_load, s.actual_reps, s.rpe).value


def best_set_by_e1rm(sets: Sequence[SetLog]) -> SetLog | None:
    """First set with the highest estimated max (ties keep the earlier set)."""
    best: SetLog | None = None
    best_value = 0.0
    for s in sets:
        value = _set_e1rm(s)
        if best is None or value > best_value:
            best, best_value = s, value
    return best


def _volume_pr(exercise: SessionExercise, history: list[SessionExercise], now: datetime) -> PREvent | None:
    current = exercise.completed_volume()
    previous = max((ex.completed_volume() for ex in history), default=0.0)
    if previous > 0 and current > previous:
        return PREvent(
            type=PRType.VOLUME,
            exercise_id=exercise.exercise_id,
            exercise_name=exercise.exercise_name,
            previous_value=previous,
            new_value=current,
            description=f"Volume PR: {round(current)} total on {exercise.exercise_name}",
            date=now,
        )
    return None


def _e1rm_pr(exercise: SessionExercise, prior_best: float, now: datetime) -> PREvent | None:
    best = best_set_by_e1rm(exercise.completed_sets())
    if best is None:
        return None
    current = _set_e1rm(best)
    if prior_best > 0 and current > prior_best:
        return PREvent(
            type=PRType.E1RM,
            exercise_id=exercise.exercise_id,
            exercise_name=exercise.exercise_name,
            previous_value=prior_best,
            new_value=current,
            description=f"E1RM PR: {round(current)} on {exercise.exercise_name}",
            date=now,
        )
    return None


def _rep_prs(exercise: SessionExercise, history: list[SessionExercise], now: datetime) -> list[PREvent]:
    events: list[PREvent] = []
    for s in exercise.completed_sets():
        previous_best = 0
        for ex in history:
            for prior in ex.completed_sets():
                if prior.actual_load >= s.actual_load:
                    previous_best = max(previous_best, prior.actual_reps)
        if previous_best > 0 and s.actual_reps > previous_best:
            events.append(PREvent(
                type=PRType.REP,
                exercise_id=exercise.exercise_id,
                exercise_name=exercise.exercise_name,
                previous_value=float(previous_best),
                new_value=float(s.actual_reps),
                description=f"Rep PR: {s.actual_reps} reps @ {s.actual_load:g} on {exercise.exercise_name}",
                date=now,
            ))
    return events


def detect_prs(
    session: Session,
    prior_sessions: Sequence[Session],
    prior_max_by_exercise: Mapping[str, float],
    now: datetime | None = None,
) -> list[PREvent]:
    """Return every PR event the session earns against prior history."""
    now = now or datetime.now(timezone.utc)
    prior = [s for s in prior_sessions if s.id != session.id]
    events: list[PREvent] = []

    for exercise in session.exercises:
        history = _exercise_history(prior, exercise.exercise_id)

        volume = _volume_pr(exercise, history, now)
        if volume:
            events.append(volume)

        e1rm = _e1rm_pr(exercise, float(prior_max_by_exercise.get(exercise.exercise_id, 0.0) or 0.0), now)
        if e1rm:
            events.append(e1rm)

        events.extend(_rep_prs(exercise, history, now))

    return events


def detect_streak_milestone(current_streak: int, now: datetime | None = None) -> PREvent | None:
    if current_streak not in STREAK_MILESTONES:
        return None
    return PREvent(
        type=PRType.STREAK,
        new_value=float(current_streak),
        description=f"{current_streak} day workout streak!",
        date=now or datetime.now(timezone.utc),
    )


def celebration_message(event: PREvent) -> str:
    if event.type == PRType.VOLUME:
        return f"Volume PR on {event.exercise_name}!"
    if event.type == PRType.E1RM:
        improvement = 0
        if event.previous_value:
            improvement = round((event.new_value - event.previous_value) / event.previous_value * 100)
        return f"New E1RM PR: {round(event.new_value)} (+{improvement}%)"
    if event.type == PRType.REP:
        return f"Rep PR: {int(event.new_value)} reps on {event.exercise_name}!"
    if event.type == PRType.STREAK:
        return f"{int(event.new_value)} day streak! Keep it up!"
    return "Personal Record!"
