"""Aggregates over completed sessions: streaks, per-exercise history and stats, E1RM tracking."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field, replace
from typing import Sequence

from liftcore.models import Session, SessionExercise, SetLog
from liftcore.services.load_math import estimate_one_rep_max, has_changed_significantly


@dataclass
class WorkoutStreak:
    current: int
    longest: int
    last_workout_date: dt.date | None = None


@dataclass
class WorkoutStats:
    total_sessions: int
    total_volume: float
    total_sets: int
    total_hours: float
    average_session_duration: int  # minutes
    pr_count: int
    streak: WorkoutStreak


@dataclass(frozen=True)
class ExerciseSessionSummary:
    date: dt.datetime | None
    volume: float
    e1rm: float | None = None  # from the heaviest completed set


@dataclass
class ExerciseStats:
    exercise_id: str
    total_sessions: int
    total_sets: int
    total_volume: float
    best_set: SetLog | None = None  # highest load x reps
    recent_sessions: list[ExerciseSessionSummary] = field(default_factory=list)


@dataclass(frozen=True)
class E1RMEntry:
    exercise_id: str
    e1rm: float
    unit: str
    date: dt.datetime
    source: str = "calculated"  # calculated | tested | estimated


@dataclass
class E1RMHistory:
    exercise_id: str
    exercise_name: str
    current_e1rm: float
    unit: str
    entries: list[E1RMEntry] = field(default_factory=list)

    @property
    def percent_change(self) -> float:
        if not self.entries or not self.entries[0].e1rm:
            return 0.0
        start = self.entries[0].e1rm
        return round((self.current_e1rm - start) / start * 100, 1)


def _completion_date(session: Session) -> dt.date | None:
    if session.completed_at is not None:
        return session.completed_at.date()
    return None


def completed_sessions(sessions: Sequence[Session]) -> list[Session]:
    """Completed sessions, most recently completed first."""
    done = [s for s in sessions if s.is_completed]
    done.sort(
        key=lambda s: s.completed_at.timestamp() if s.completed_at else float("-inf"),
        reverse=True,
    )
    return done


def workout_streak(sessions: Sequence[Session], today: dt.date | None = None) -> WorkoutStreak:
    """Consecutive-day training streaks; the current streak lapses after a missed day."""
    today = today or dt.date.today()
    dates = sorted({d for d in (_completion_date(s) for s in sessions if s.is_completed) if d})
    if not dates:
        return WorkoutStreak(current=0, longest=0)

    longest = 1
    run = 1
    for i in range(1, len(dates)):
        if (dates[i] - dates[i - 1]).days == 1:
            run += 1
        else:
            longest = max(longest, run)
            run = 1
    longest = max(longest, run)

    current = run if (today - dates[-1]).days <= 1 else 0
    return WorkoutStreak(current=current, longest=longest, last_workout_date=dates[-1])


def exercise_history(
    sessions: Sequence[Session], exercise_id: str, limit: int = 10
) -> list[tuple[Session, SessionExercise]]:
    history = []
    for session in completed_sessions(sessions):
        ex = next((e for e in session.exercises if e.exercise_id == exercise_id), None)
        if ex is not None and ex.sets:
            history.append((session, ex))
            if len(history) >= limit:
                break
    return history


def previous_performance(
    sessions: Sequence[Session], exercise_id: str
) -> tuple[list[SetLog], dt.datetime | None] | None:
    """Completed sets from the most recent session that logged the exercise."""
    history = exercise_history(sessions, exercise_id, limit=1)
    if not history:
        return None
    session, ex = history[0]
    return ex.completed_sets(), session.completed_at


def best_estimated_max_by_exercise(sessions: Sequence[Session]) -> dict[str, float]:
    """Best E1RM per exercise over all completed sets; feeds PR detection."""
    best: dict[str, float] = {}
    for session in sessions:
        if not session.is_completed:
            continue
        for ex in session.exercises:
            for s in ex.completed_sets():
                value = estimate_one_rep_max(s.actual_load, s.actual_reps, s.rpe).value
                if value > best.get(ex.exercise_id, 0.0):
                    best[ex.exercise_id] = value
    return best


def update_e1rm_history(
    histories: Sequence[E1RMHistory],
    exercise_id: str,
    exercise_name: str,
    e1rm: float,
    unit: str,
    source: str = "calculated",
    now: dt.datetime | None = None,
) -> list[E1RMHistory]:
    """Append an E1RM entry; an existing exercise only records a significant change."""
    now = now or dt.datetime.now(dt.timezone.utc)
    entry = E1RMEntry(exercise_id=exercise_id, e1rm=e1rm, unit=unit, date=now, source=source)
    updated = list(histories)

    for i, history in enumerate(updated):
        if history.exercise_id != exercise_id:
            continue
        if not has_changed_significantly(history.current_e1rm, e1rm):
            return updated
        updated[i] = replace(history, entries=[*history.entries, entry], current_e1rm=e1rm, unit=unit)
        return updated

    updated.append(E1RMHistory(
        exercise_id=exercise_id,
        exercise_name=exercise_name,
        current_e1rm=e1rm,
        unit=unit,
        entries=[entry],
    ))
    return updated


def workout_stats(sessions: Sequence[Session], today: dt.date | None = None) -> WorkoutStats:
    done = completed_sessions(sessions)
    total_minutes = sum(s.duration_minutes or 0 for s in done)
    return WorkoutStats(
        total_sessions=len(done),
        total_volume=sum(s.total_volume for s in done),
        total_sets=sum(s.total_sets for s in done),
        total_hours=round(total_minutes / 60, 2),
        average_session_duration=round(total_minutes / len(done)) if done else 0,
        pr_count=sum(len(s.pr_events) for s in done),
        streak=workout_streak(done, today),
    )


def exercise_stats(
    sessions: Sequence[Session],
    exercise_id: str,
    history_limit: int = 100,
    recent_limit: int = 10,
) -> ExerciseStats:
    """Lifetime totals for one exercise plus a per-session volume/E1RM trail, newest first."""
    history = exercise_history(sessions, exercise_id, limit=history_limit)
    total_sets = 0
    total_volume = 0.0
    best_set: SetLog | None = None
    recent: list[ExerciseSessionSummary] = []

    for session, ex in history:
        done = ex.completed_sets()
        total_sets += len(done)
        session_volume = sum(s.volume for s in done)
        total_volume += session_volume

        for s in done:
            if best_set is None or s.volume > best_set.volume:
                best_set = s

        if len(recent) < recent_limit:
            e1rm = None
            if done:
                heaviest = max(done, key=lambda s: s.actual_load)
                e1rm = estimate_one_rep_max(heaviest.actual_load, heaviest.actual_reps).value
            recent.append(ExerciseSessionSummary(date=session.completed_at, volume=session_volume, e1rm=e1rm))

    return ExerciseStats(
        exercise_id=exercise_id,
        total_sessions=len(history),
        total_sets=total_sets,
        total_volume=total_volume,
        best_set=best_set,
        recent_sessions=recent,
    )
