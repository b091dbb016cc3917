"""Domain values for programs, sessions, personal records and progression.

Programs own their split and templates by value; sessions own their
exercises and set logs by value and reference the program/template that
spawned them by id only. PR events and progression results are facts the
caller appends to its own history collections.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from enum import Enum

REST_LABEL = "rest"
WEEK_LENGTH = 7


class WeightUnit(str, Enum):
    KG = "kg"
    LBS = "lbs"


class SplitType(str, Enum):
    PUSH_PULL_LEGS = "push-pull-legs"
    UPPER_LOWER = "upper-lower"
    FULL_BODY = "full-body"
    BRO_SPLIT = "bro-split"
    PUSH_PULL = "push-pull"
    CUSTOM = "custom"


class SetSchemeType(str, Enum):
    FIXED_REPS = "fixed-reps"
    REP_RANGE = "rep-range"
    TOP_SET_BACKOFFS = "top-set-backoffs"
    AMRAP = "amrap"
    TIME_BASED = "time-based"


class TargetSource(str, Enum):
    FIXED = "fixed"
    PERCENT_E1RM = "percent-e1rm"
    LAST_PLUS = "last-plus"
    RIR_TARGET = "rir-target"
    AI_SUGGESTED = "ai-suggested"


class ExperienceLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class SessionStatus(str, Enum):
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class SetStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PRType(str, Enum):
    VOLUME = "volume"
    E1RM = "e1rm"
    REP = "rep"
    STREAK = "streak"


class SubRegion(str, Enum):
    CHEST_UPPER = "chest-upper"
    CHEST_MID = "chest-mid"
    CHEST_LOWER = "chest-lower"
    BACK_LATS = "back-lats"
    BACK_UPPER = "back-upper"
    BACK_ERECTORS = "back-erectors"
    SHOULDERS_ANTERIOR = "shoulders-anterior"
    SHOULDERS_LATERAL = "shoulders-lateral"
    SHOULDERS_POSTERIOR = "shoulders-posterior"
    BICEPS = "biceps"
    TRICEPS = "triceps"
    FOREARMS = "forearms"
    QUADS = "quads"
    HAMSTRINGS = "hamstrings"
    GLUTES = "glutes"
    ADDUCTORS = "adductors"
    CALVES = "calves"
    CORE_UPPER = "core-upper"
    CORE_LOWER = "core-lower"
    OBLIQUES = "obliques"


# -- Program side --


@dataclass(frozen=True)
class SubRegionWeight:
    region: SubRegion
    weight: float  # 0-1 share of a set's stimulus


@dataclass
class SetScheme:
    type: SetSchemeType
    sets: int
    reps: int | None = None
    rep_range_min: int | None = None
    rep_range_max: int | None = None
    top_set_reps: int | None = None
    backoff_sets: int | None = None
    backoff_percent: float | None = None
    duration_seconds: int | None = None  # time-based holds
    rest_seconds: int | None = None


@dataclass
class ExerciseTarget:
    exercise_id: str
    set_scheme: SetScheme
    order: int = 0
    target_source: TargetSource = TargetSource.LAST_PLUS
    fixed_load: float | None = None
    e1rm_percent: float | None = None
    notes: str = ""


@dataclass
class WorkoutTemplate:
    id: str
    name: str
    exercises: list[ExerciseTarget] = field(default_factory=list)
    estimated_duration: int = 60  # minutes


@dataclass
class Split:
    id: str
    name: str
    type: SplitType
    days_per_week: int
    rotation_pattern: list[str]
    workout_template_ids: list[str] = field(default_factory=list)


@dataclass
class Program:
    id: str
    name: str
    split: Split
    workout_templates: list[WorkoutTemplate]
    created_at: dt.datetime  # schedule anchor, never moved once set
    duration_weeks: int = 8
    version: str = "1.0"
    experience_level: ExperienceLevel = ExperienceLevel.INTERMEDIATE
    goals: list[str] = field(default_factory=list)
    is_active: bool = False
    is_archived: bool = False

    @property
    def anchor_date(self) -> dt.date:
        if isinstance(self.created_at, dt.datetime):
            return self.created_at.date()
        return self.created_at


# -- Session side --


@dataclass
class SetLog:
    id: str
    set_number: int
    target_reps: int | None = None
    target_load: float | None = None
    actual_reps: int = 0
    actual_load: float = 0.0
    rpe: float | None = None
    time_seconds: int | None = None
    status: SetStatus = SetStatus.PENDING
    completed_at: dt.datetime | None = None

    @property
    def is_completed(self) -> bool:
        return self.status == SetStatus.COMPLETED

    @property
    def volume(self) -> float:
        return self.actual_load * self.actual_reps


@dataclass
class SessionExercise:
    id: str
    exercise_id: str
    exercise_name: str
    target_scheme: SetScheme
    sets: list[SetLog] = field(default_factory=list)
    order: int = 0
    skipped: bool = False
    substituted_from: str | None = None

    def completed_sets(self) -> list[SetLog]:
        return [s for s in self.sets if s.is_completed]

    def completed_volume(self) -> float:
        return sum(s.volume for s in self.completed_sets())


@dataclass(frozen=True)
class PREvent:
    type: PRType
    new_value: float
    description: str
    date: dt.datetime
    exercise_id: str | None = None
    exercise_name: str | None = None
    previous_value: float | None = None


@dataclass
class Session:
    id: str
    program_id: str
    program_version: str
    workout_template_id: str
    workout_name: str
    week_number: int
    day_number: int
    scheduled_date: dt.date
    status: SessionStatus = SessionStatus.SCHEDULED
    exercises: list[SessionExercise] = field(default_factory=list)
    total_sets: int = 0
    total_volume: float = 0.0
    pr_events: list[PREvent] = field(default_factory=list)
    started_at: dt.datetime | None = None
    paused_at: dt.datetime | None = None
    completed_at: dt.datetime | None = None
    duration_minutes: int | None = None
    notes: str = ""

    @property
    def is_completed(self) -> bool:
        return self.status == SessionStatus.COMPLETED

    def find_exercise(self, exercise_id: str) -> SessionExercise | None:
        """Look up by catalog exercise id, then by the occurrence id."""
        for ex in self.exercises:
            if ex.exercise_id == exercise_id:
                return ex
        for ex in self.exercises:
            if ex.id == exercise_id:
                return ex
        return None


# -- Progression --


@dataclass(frozen=True)
class ProgressionRule:
    """Versionable progression policy for one set-scheme type."""

    id: str
    name: str
    type: SetSchemeType
    description: str = ""
    increment: float | None = None  # None -> exercise-specific suggested increment
    decrease_on_miss: float = 5.0
    max_weekly_increase: float = 0.10
    max_absolute_increase: float | None = None
    duration_increment_seconds: int = 5
    advisory_assisted: bool = False


@dataclass(frozen=True)
class NextTarget:
    load: float | None = None
    reps: int | None = None
    rep_range_min: int | None = None
    rep_range_max: int | None = None
    duration_seconds: int | None = None


@dataclass(frozen=True)
class AdvisorySuggestion:
    action: str  # increase | hold | decrease | deload
    reason: str
    confidence: float
    suggested_load: float | None = None
    suggested_reps: int | None = None
    signals: tuple[str, ...] = ()


@dataclass(frozen=True)
class ProgressionResult:
    exercise_id: str
    next_target: NextTarget
    reason: str
    applied_rule: str
    timestamp: dt.datetime
    advisory: AdvisorySuggestion | None = None
    ruleset_version: str | None = None
