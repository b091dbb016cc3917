"""Schedule resolution: which workout a program prescribes on a given date.

Day offsets are counted in calendar days from the program's anchor date
(its creation date). The split's 7-slot rotation pattern is indexed by
offset mod 7; a "Rest" label (any case) means no workout. Day labels are
matched to templates by case-insensitive substring, first match wins.

Nothing here raises on bad program data: a malformed rotation or a missing
template is reported through the reason string and a null template.
"""

from __future__ import annotations

import datetime as dt
import math
import uuid
from dataclasses import dataclass, field, replace
from typing import Sequence

from liftcore.models import (
    REST_LABEL,
    WEEK_LENGTH,
    ExerciseTarget,
    Program,
    Session,
    SessionExercise,
    SessionStatus,
    SetLog,
    SetStatus,
    TargetSource,
    WorkoutTemplate,
)
from liftcore.services.exercise_catalog import ExerciseCatalog, display_name

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
TREND_WINDOW_DAYS = 14

MISSED_SUGGESTIONS = {
    "none": "On track!",
    "few": "Consider doing a make-up session this weekend.",
    "some": "Try to get back on schedule. Don't worry about make-ups, just continue.",
    "many": "Significant time off. Consider restarting the program or adjusting expectations.",
}


@dataclass
class ScheduledWorkout:
    template: WorkoutTemplate | None
    week_number: int
    day_number: int  # calendar weekday, 0 = Sunday
    reason: str
    day_label: str | None = None

    @property
    def is_rest_day(self) -> bool:
        return self.day_label is not None and _is_rest(self.day_label)


@dataclass
class UpcomingWorkout:
    date: dt.date
    template: WorkoutTemplate | None
    day_name: str
    is_rest_day: bool


@dataclass
class MissedSessions:
    missed_count: int
    missed_dates: list[dt.date] = field(default_factory=list)
    suggestion: str = MISSED_SUGGESTIONS["none"]


@dataclass
class Adherence:
    rate: float  # 0-1
    completed_count: int
    expected_count: int
    trend: str  # improving | stable | declining


def _as_date(value: dt.date | dt.datetime) -> dt.date:
    if isinstance(value, dt.datetime):
        return value.date()
    return value


def _is_rest(label: str) -> bool:
    return (label or "").strip().lower() == REST_LABEL


def _weekday_index(day: dt.date) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return day.isoweekday() % 7


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def days_since_start(program: Program, day: dt.date | dt.datetime) -> int:
    return (_as_date(day) - program.anchor_date).days


def rotation_is_valid(program: Program) -> bool:
    return len(program.split.rotation_pattern) == WEEK_LENGTH


def template_for_label(program: Program, label: str) -> WorkoutTemplate | None:
    token = (label or "").strip().lower()
    if not token:
        return None
    for template in program.workout_templates:
        if token in template.name.lower():
            return template
    return None


def resolve_workout_for_date(program: Program, day: dt.date | dt.datetime) -> ScheduledWorkout:
    target = _as_date(day)
    offset = days_since_start(program, target)
    week_number = offset // WEEK_LENGTH + 1
    day_number = _weekday_index(target)

    if offset < 0:
        return ScheduledWorkout(None, week_number, day_number, "Program has not started yet")
    if week_number > program.duration_weeks:
        return ScheduledWorkout(None, week_number, day_number, "Program completed. Time to start a new one!")
    if not rotation_is_valid(program):
        return ScheduledWorkout(
            None,
            week_number,
            day_number,
            f"Malformed rotation pattern: expected {WEEK_LENGTH} days, got {len(program.split.rotation_pattern)}",
        )

    label = program.split.rotation_pattern[offset % WEEK_LENGTH]
    if _is_rest(label):
        return ScheduledWorkout(
            None, week_number, day_number, "Rest day - recovery is part of the process!", day_label=label
        )

    template = template_for_label(program, label)
    if template is None:
        return ScheduledWorkout(
            None, week_number, day_number, f'Workout "{label}" not found in program', day_label=label
        )

    return ScheduledWorkout(
        template,
        week_number,
        day_number,
        f"Week {week_number}, Day {day_number + 1}: {template.name}",
        day_label=label,
    )


def list_upcoming(program: Program, from_date: dt.date | dt.datetime, days: int) -> list[UpcomingWorkout]:
    start = _as_date(from_date)
    upcoming = []
    for i in range(max(0, days)):
        day = start + dt.timedelta(days=i)
        resolved = resolve_workout_for_date(program, day)
        upcoming.append(UpcomingWorkout(
            date=day,
            template=resolved.template,
            day_name=DAY_NAMES[_weekday_index(day)],
            is_rest_day=resolved.is_rest_day,
        ))
    return upcoming


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _build_exercise(
    target: ExerciseTarget,
    previous: Sequence[SessionExercise] | None,
    catalog: ExerciseCatalog | None,
) -> SessionExercise:
    last = None
    if previous:
        last = next((e for e in previous if e.exercise_id == target.exercise_id), None)

    sets = []
    for i in range(target.set_scheme.sets):
        last_set = last.sets[i] if last is not None and i < len(last.sets) else None
        sets.append(SetLog(
            id=_new_id("set"),
            set_number=i + 1,
            target_reps=target.set_scheme.reps,
            target_load=(last_set.actual_load or None) if last_set is not None else None,
            status=SetStatus.PENDING,
        ))

    return SessionExercise(
        id=_new_id("exercise"),
        exercise_id=target.exercise_id,
        exercise_name=display_name(catalog, target.exercise_id),
        target_scheme=target.set_scheme,
        sets=sets,
        order=target.order,
    )


def build_session(
    program: Program,
    template: WorkoutTemplate,
    scheduled_date: dt.date | dt.datetime,
    week_number: int,
    day_number: int,
    last_exercises: Sequence[SessionExercise] | None = None,
    catalog: ExerciseCatalog | None = None,
) -> Session:
    """Create a scheduled session skeleton with pending sets for every target.

    Target loads are pre-filled from the same-index set of the matching
    exercise in ``last_exercises`` when given.
    """
    return Session(
        id=_new_id("session"),
        program_id=program.id,
        program_version=program.version,
        workout_template_id=template.id,
        workout_name=template.name,
        week_number=week_number,
        day_number=day_number,
        scheduled_date=_as_date(scheduled_date),
        status=SessionStatus.SCHEDULED,
        exercises=[_build_exercise(t, last_exercises, catalog) for t in template.exercises],
    )


def _expected_days(program: Program, today: dt.date) -> list[dt.date]:
    """Non-rest program days strictly before ``today``, within the program duration."""
    if not rotation_is_valid(program):
        return []
    span = min(days_since_start(program, today), program.duration_weeks * WEEK_LENGTH)
    anchor = program.anchor_date
    return [
        anchor + dt.timedelta(days=i)
        for i in range(max(0, span))
        if not _is_rest(program.split.rotation_pattern[i % WEEK_LENGTH])
    ]


def _completed_for(program: Program, sessions: Sequence[Session]) -> list[Session]:
    return [s for s in sessions if s.is_completed and s.program_id == program.id]


def _missed_suggestion(missed: int) -> str:
    if missed == 0:
        return MISSED_SUGGESTIONS["none"]
    if missed <= 2:
        return MISSED_SUGGESTIONS["few"]
    if missed <= 4:
        return MISSED_SUGGESTIONS["some"]
    return MISSED_SUGGESTIONS["many"]


def count_missed_sessions(
    program: Program, sessions: Sequence[Session], today: dt.date | dt.datetime
) -> MissedSessions:
    completed_days = {_as_date(s.scheduled_date) for s in _completed_for(program, sessions)}
    missed = [d for d in _expected_days(program, _as_date(today)) if d not in completed_days]
    return MissedSessions(
        missed_count=len(missed),
        missed_dates=missed,
        suggestion=_missed_suggestion(len(missed)),
    )


def compute_adherence(
    program: Program, sessions: Sequence[Session], today: dt.date | dt.datetime
) -> Adherence:
    day = _as_date(today)
    expected = len(_expected_days(program, day))
    completed = _completed_for(program, sessions)
    completed_count = len([
        s for s in completed if program.anchor_date <= _as_date(s.scheduled_date) < day
    ])
    rate = min(1.0, completed_count / expected) if expected > 0 else 0.0

    recent_start = day - dt.timedelta(days=TREND_WINDOW_DAYS)
    older_start = day - dt.timedelta(days=2 * TREND_WINDOW_DAYS)
    recent = len([s for s in completed if recent_start <= _as_date(s.scheduled_date) <= day])
    older = len([s for s in completed if older_start <= _as_date(s.scheduled_date) < recent_start])

    # +-1 session band keeps single-session noise from flipping the trend
    if recent > older + 1:
        trend = "improving"
    elif recent < older - 1:
        trend = "declining"
    else:
        trend = "stable"

    return Adherence(
        rate=round(rate, 3),
        completed_count=completed_count,
        expected_count=expected,
        trend=trend,
    )


def apply_deload_modifiers(
    template: WorkoutTemplate, intensity_modifier: float, volume_modifier: float
) -> WorkoutTemplate:
    """Scale set counts and fixed loads for a deload week.

    Every exercise is switched to a fixed target source so the reduced load
    is what gets prescribed.
    """
    exercises = []
    for ex in template.exercises:
        scheme = replace(ex.set_scheme, sets=max(1, _round_half_up(ex.set_scheme.sets * volume_modifier)))
        fixed_load = None
        if ex.target_source == TargetSource.FIXED and ex.fixed_load is not None:
            fixed_load = round(ex.fixed_load * intensity_modifier, 1)
        exercises.append(replace(ex, set_scheme=scheme, target_source=TargetSource.FIXED, fixed_load=fixed_load))
    return replace(template, exercises=exercises)


def suggest_rest_day(program: Program) -> str:
    """Point at the day label whose template carries the most sets."""
    best_label, best_sets = "", 0
    for label in program.split.rotation_pattern:
        if _is_rest(label):
            continue
        template = template_for_label(program, label)
        if template is None:
            continue
        total = sum(ex.set_scheme.sets for ex in template.exercises)
        if total > best_sets:
            best_label, best_sets = label, total
    if not best_label:
        return "No scheduled workouts to place a rest day after"
    return f"Consider placing rest day after {best_label} (highest volume: {best_sets} sets)"
