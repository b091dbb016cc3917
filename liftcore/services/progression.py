"""Deterministic load progression with optional advisory commentary.

Each set-scheme type has one rule applier. An exercise's completed
performance is summarized, the applier proposes the next load/reps, and the
proposal is clamped to a safe weekly increase and rounded down to plates,
always moving at least one plate step in the rule's direction. An
advisory suggestion, when requested, is attached for visibility but never
changes the deterministic target.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, Mapping, Sequence

from liftcore.config import Settings, get_settings
from liftcore.errors import AdvisoryError, ExerciseNotFoundError
from liftcore.logging_config import log_fields
from liftcore.models import (
    AdvisorySuggestion,
    NextTarget,
    ProgressionResult,
    ProgressionRule,
    Session,
    SessionExercise,
    SetSchemeType,
    SetStatus,
)
from liftcore.services.advisory import ProgressionAdvisor, history_payload
from liftcore.services.load_math import (
    clamp_increase_to_safe_max,
    plate_step,
    round_down_to_plate,
    round_to_nearest_plate,
    suggested_increment,
)

logger = logging.getLogger(__name__)

PROGRESSION_RULESET_VERSION = "liftcore_progression_v1"
DEFAULT_RPE = 7.0
DEFAULT_REP_RANGE = (8, 12)

DEFAULT_PROGRESSION_RULES: dict[SetSchemeType, ProgressionRule] = {
    SetSchemeType.FIXED_REPS: ProgressionRule(
        id="fixed-reps-default",
        name="Fixed Reps Progression",
        type=SetSchemeType.FIXED_REPS,
        description="If all reps completed comfortably (RPE <8), increase load",
        decrease_on_miss=5.0,
    ),
    SetSchemeType.REP_RANGE: ProgressionRule(
        id="rep-range-default",
        name="Rep Range Progression",
        type=SetSchemeType.REP_RANGE,
        description="Hit top of range comfortably? Increase load and reset to bottom",
    ),
    SetSchemeType.TOP_SET_BACKOFFS: ProgressionRule(
        id="top-set-default",
        name="Top Set Progression",
        type=SetSchemeType.TOP_SET_BACKOFFS,
        description="Top set progression with back-off sets",
    ),
    SetSchemeType.AMRAP: ProgressionRule(
        id="amrap-default",
        name="AMRAP Progression",
        type=SetSchemeType.AMRAP,
        description="Adjust load from reps achieved on the AMRAP set",
    ),
    SetSchemeType.TIME_BASED: ProgressionRule(
        id="time-based-default",
        name="Time-Based Progression",
        type=SetSchemeType.TIME_BASED,
        description="Extend hold duration once every hold is completed comfortably",
        duration_increment_seconds=5,
    ),
}


@dataclass(frozen=True)
class PerformanceSummary:
    all_targets_met: bool
    avg_rpe: float
    total_sets: int
    completed_sets: int
    failed_sets: int
    avg_reps_per_set: float


@dataclass(frozen=True)
class RuleOutcome:
    next_load: float
    reason: str
    next_reps: int | None = None
    next_duration: int | None = None


def summarize_performance(exercise: SessionExercise) -> PerformanceSummary:
    completed = exercise.completed_sets()
    failed = [s for s in exercise.sets if s.status == SetStatus.FAILED]

    # A failed set is a missed target even though it carries no completed reps.
    all_met = not failed and all(
        s.target_reps is None or s.actual_reps >= s.target_reps for s in completed
    )
    avg_rpe = (
        sum((s.rpe or DEFAULT_RPE) for s in completed) / len(completed) if completed else DEFAULT_RPE
    )
    avg_reps = sum(s.actual_reps for s in completed) / len(completed) if completed else 0.0

    return PerformanceSummary(
        all_targets_met=all_met,
        avg_rpe=avg_rpe,
        total_sets=len(exercise.sets),
        completed_sets=len(completed),
        failed_sets=len(failed),
        avg_reps_per_set=avg_reps,
    )


def current_load(exercise: SessionExercise) -> float:
    """Mean actual load of the first two completed sets (the top sets)."""
    top = exercise.completed_sets()[:2]
    if not top:
        return 0.0
    return sum(s.actual_load for s in top) / len(top)


def _increment(rule: ProgressionRule, exercise: SessionExercise, load: float, unit) -> float:
    if rule.increment is not None:
        return rule.increment
    return suggested_increment(exercise.exercise_name, load, unit)


def _unit_label(unit) -> str:
    return str(getattr(unit, "value", unit))


def _apply_fixed_reps(exercise, perf, rule, load, unit) -> RuleOutcome:
    if perf.all_targets_met and perf.avg_rpe < 8:
        inc = _increment(rule, exercise, load, unit)
        return RuleOutcome(
            load + inc,
            f"All reps completed comfortably (RPE {perf.avg_rpe:.1f}) -> +{inc:g}{_unit_label(unit)}",
        )
    if perf.all_targets_met and 8 <= perf.avg_rpe < 9.5:
        return RuleOutcome(load, f"All reps hit but high RPE ({perf.avg_rpe:.1f}) -> hold load")
    if not perf.all_targets_met or perf.failed_sets > 0:
        amount = rule.decrease_on_miss
        return RuleOutcome(
            max(load * 0.9, load - amount),
            f"Missed reps or failed sets -> -{amount:g}{_unit_label(unit)} (max 10%)",
        )
    return RuleOutcome(load, "Hold current load")


def _apply_rep_range(exercise, perf, rule, load, unit) -> RuleOutcome:
    scheme = exercise.target_scheme
    range_min = scheme.rep_range_min or DEFAULT_REP_RANGE[0]
    range_max = scheme.rep_range_max or DEFAULT_REP_RANGE[1]
    avg = perf.avg_reps_per_set

    if avg >= range_max and perf.avg_rpe < 8.5:
        inc = _increment(rule, exercise, load, unit)
        return RuleOutcome(
            load + inc,
            f"Hit {range_max} reps comfortably -> +{inc:g}{_unit_label(unit)}, reset to {range_min}-{range_max}",
            next_reps=range_min,
        )
    if range_min <= avg < range_max:
        return RuleOutcome(load, f"Building reps in range (avg {avg:.1f}) -> hold load")
    if avg < range_min:
        return RuleOutcome(load * 0.95, "Below target range -> -5% load")
    return RuleOutcome(load, "Hold current load")


def _apply_top_set(exercise, perf, rule, load, unit) -> RuleOutcome:
    top = next((s for s in exercise.sets if s.status == SetStatus.COMPLETED), None)
    if top is None:
        return RuleOutcome(load, "No completed sets: no data for top set, hold")

    hit = top.target_reps is None or top.actual_reps >= top.target_reps
    rpe = top.rpe or DEFAULT_RPE
    if hit and rpe < 8:
        inc = _increment(rule, exercise, load, unit)
        return RuleOutcome(load + inc, f"Top set hit comfortably (RPE {rpe:g}) -> +{inc:g}{_unit_label(unit)}")
    if hit:
        return RuleOutcome(load, "Top set hit but challenging -> hold")
    return RuleOutcome(load * 0.95, "Top set target missed -> -5%")


def _apply_amrap(exercise, perf, rule, load, unit) -> RuleOutcome:
    avg = perf.avg_reps_per_set
    if avg > 10 and perf.avg_rpe < 8:
        return RuleOutcome(load * 1.05, f"High reps ({avg:.0f}) at low RPE -> +5%")
    if avg < 6:
        return RuleOutcome(load * 0.95, f"Low reps ({avg:.0f}) -> -5%")
    return RuleOutcome(load, "AMRAP set tracking, hold load")


def _apply_time_based(exercise, perf, rule, load, unit) -> RuleOutcome:
    target = exercise.target_scheme.duration_seconds
    if not target:
        return RuleOutcome(load, "No target hold duration set -> hold")

    step = rule.duration_increment_seconds
    completed = exercise.completed_sets()
    short = [s for s in completed if (s.time_seconds or 0) < target]

    if perf.failed_sets > 0 or short:
        shorter = max(step, target - step)
        return RuleOutcome(load, f"Hold target not reached -> {shorter}s holds", next_duration=shorter)
    if perf.avg_rpe < 8:
        return RuleOutcome(
            load,
            f"All holds completed comfortably (RPE {perf.avg_rpe:.1f}) -> +{step}s",
            next_duration=target + step,
        )
    return RuleOutcome(load, f"Holds completed at high RPE ({perf.avg_rpe:.1f}) -> hold duration", next_duration=target)


RuleApplier = Callable[..., RuleOutcome]

_RULE_APPLIERS: dict[SetSchemeType, RuleApplier] = {
    SetSchemeType.FIXED_REPS: _apply_fixed_reps,
    SetSchemeType.REP_RANGE: _apply_rep_range,
    SetSchemeType.TOP_SET_BACKOFFS: _apply_top_set,
    SetSchemeType.AMRAP: _apply_amrap,
    SetSchemeType.TIME_BASED: _apply_time_based,
}

_unhandled = set(SetSchemeType) - set(_RULE_APPLIERS)
if _unhandled:
    raise RuntimeError(f"No progression applier for scheme types: {sorted(t.value for t in _unhandled)}")


def _consult_advisor(
    advisor: ProgressionAdvisor,
    exercise: SessionExercise,
    history: Sequence[tuple[Session, SessionExercise]],
) -> AdvisorySuggestion | None:
    try:
        return advisor.suggest(exercise.exercise_id, exercise.exercise_name, history_payload(history))
    except AdvisoryError as e:
        logger.warning(
            "Advisory suggestion unavailable for %s: %s",
            exercise.exercise_id,
            e,
            extra=log_fields(exercise_id=exercise.exercise_id),
        )
    except Exception as e:
        # Third-party advisors are never allowed to break the deterministic result.
        logger.warning(
            "Advisor raised %s for %s: %s",
            type(e).__name__,
            exercise.exercise_id,
            e,
            extra=log_fields(exercise_id=exercise.exercise_id),
        )
    return None


def plate_rounded_load(
    load: float,
    proposed: float,
    unit,
    plate_increments: Iterable[float] | None = None,
) -> float:
    """Round a proposed load to plates without undoing the rule's direction.

    Increases round down so the weekly cap holds; decreases round to the
    nearest plate. When rounding would wipe out the change, the load moves by
    one plate step instead, and a decrease never goes below one step.
    """
    step = plate_step(unit, plate_increments)
    if proposed > load:
        rounded = round_down_to_plate(proposed, unit, plate_increments)
        if rounded <= load:
            rounded = round_down_to_plate(load, unit, plate_increments) + step
        return round(rounded, 2)
    if proposed < load:
        rounded = round_to_nearest_plate(proposed, unit, plate_increments)
        if rounded >= load:
            rounded = round_down_to_plate(load, unit, plate_increments) - step
        return round(max(step, rounded), 2)
    return round_to_nearest_plate(proposed, unit, plate_increments)


def compute_progression(
    exercise: SessionExercise,
    history: Sequence[tuple[Session, SessionExercise]],
    rule: ProgressionRule,
    unit=None,
    plate_increments: Iterable[float] | None = None,
    use_advisory: bool = False,
    advisor: ProgressionAdvisor | None = None,
    now: datetime | None = None,
    settings: Settings | None = None,
) -> ProgressionResult:
    """Compute the next target for one exercise from its latest performance.

    ``history`` holds (session, occurrence) pairs of the same exercise, most
    recent first; it only feeds the advisory service. ``unit`` defaults to
    ``Settings.weight_unit`` and the weekly cap is the tighter of the rule's
    and ``Settings.max_weekly_increase``.
    """
    settings = settings or get_settings()
    unit = unit or settings.weight_unit
    now = now or datetime.now(timezone.utc)
    scheme = exercise.target_scheme

    if not exercise.completed_sets():
        return ProgressionResult(
            exercise_id=exercise.exercise_id,
            next_target=NextTarget(reps=scheme.reps, duration_seconds=scheme.duration_seconds),
            reason="No completed sets: no data to progress from, hold targets",
            applied_rule=rule.name,
            timestamp=now,
            ruleset_version=PROGRESSION_RULESET_VERSION,
        )

    perf = summarize_performance(exercise)
    load = current_load(exercise)
    outcome = _RULE_APPLIERS[rule.type](exercise, perf, rule, load, unit)

    weekly_cap = min(rule.max_weekly_increase, settings.max_weekly_increase)
    proposed = clamp_increase_to_safe_max(load, outcome.next_load, weekly_cap)
    if rule.max_absolute_increase is not None:
        proposed = min(proposed, load + rule.max_absolute_increase)
    next_load = plate_rounded_load(load, proposed, unit, plate_increments)

    if rule.type == SetSchemeType.REP_RANGE:
        next_reps = outcome.next_reps
        range_min, range_max = scheme.rep_range_min, scheme.rep_range_max
    else:
        next_reps = scheme.reps
        range_min = range_max = None

    reason = outcome.reason
    logger.debug(
        "Progression %s: %s -> %s (%s)",
        exercise.exercise_id,
        load,
        next_load,
        reason,
        extra=log_fields(exercise_id=exercise.exercise_id, rule=rule.id),
    )

    suggestion = None
    if use_advisory and rule.advisory_assisted and advisor is not None:
        suggestion = _consult_advisor(advisor, exercise, history)
        if (
            suggestion is not None
            and suggestion.suggested_load is not None
            and suggestion.confidence > settings.advisory_min_confidence
            and abs(suggestion.suggested_load - next_load) > next_load * settings.advisory_min_diff
        ):
            reason += f" | Advisor suggests: {suggestion.suggested_load:g}{_unit_label(unit)} ({suggestion.reason})"

    return ProgressionResult(
        exercise_id=exercise.exercise_id,
        next_target=NextTarget(
            load=next_load,
            reps=next_reps,
            rep_range_min=range_min,
            rep_range_max=range_max,
            duration_seconds=outcome.next_duration,
        ),
        reason=reason,
        applied_rule=rule.name,
        advisory=suggestion,
        timestamp=now,
        ruleset_version=PROGRESSION_RULESET_VERSION,
    )


def _completion_key(session: Session) -> float:
    stamp = session.completed_at
    return stamp.timestamp() if stamp is not None else float("-inf")


def recent_occurrences(
    exercise_id: str,
    all_sessions: Sequence[Session],
    exclude_session_id: str | None = None,
    limit: int = 5,
) -> list[tuple[Session, SessionExercise]]:
    """Prior completed (session, occurrence) pairs, most recently completed first."""
    completed = [
        s for s in all_sessions
        if s.is_completed and s.id != exclude_session_id
    ]
    completed.sort(key=_completion_key, reverse=True)
    found: list[tuple[Session, SessionExercise]] = []
    for session in completed:
        for ex in session.exercises:
            if ex.exercise_id == exercise_id:
                found.append((session, ex))
                if len(found) >= limit:
                    return found
    return found


def compute_session_progressions(
    completed_session: Session,
    all_sessions: Sequence[Session],
    unit=None,
    use_advisory: bool = False,
    advisor: ProgressionAdvisor | None = None,
    rules: Mapping[SetSchemeType, ProgressionRule] | None = None,
    plate_increments: Iterable[float] | None = None,
    settings: Settings | None = None,
    now: datetime | None = None,
) -> list[ProgressionResult]:
    """Progress every exercise of a just-completed session.

    Exercises whose scheme type has no registered rule, and skipped
    exercises, are left out of the result.
    """
    rules = DEFAULT_PROGRESSION_RULES if rules is None else rules
    settings = settings or get_settings()
    unit = unit or settings.weight_unit
    now = now or datetime.now(timezone.utc)
    results: list[ProgressionResult] = []

    for exercise in completed_session.exercises:
        if exercise.skipped:
            logger.debug("Skipping progression for skipped exercise %s", exercise.exercise_id)
            continue
        rule = rules.get(exercise.target_scheme.type)
        if rule is None:
            logger.debug(
                "No progression rule for scheme %s (%s)",
                exercise.target_scheme.type,
                exercise.exercise_id,
            )
            continue

        history = recent_occurrences(
            exercise.exercise_id,
            all_sessions,
            exclude_session_id=completed_session.id,
            limit=settings.history_window,
        )
        results.append(compute_progression(
            exercise,
            history,
            rule,
            unit,
            plate_increments=plate_increments,
            use_advisory=use_advisory,
            advisor=advisor,
            now=now,
            settings=settings,
        ))

    logger.info(
        "Computed %d progressions for session %s",
        len(results),
        completed_session.id,
        extra=log_fields(session_id=completed_session.id),
    )
    return results


def progression_for_exercise(
    session: Session,
    exercise_id: str,
    all_sessions: Sequence[Session],
    unit=None,
    rules: Mapping[SetSchemeType, ProgressionRule] | None = None,
    **kwargs,
) -> ProgressionResult:
    """Single-exercise entry point; raises ExerciseNotFoundError for an unknown id."""
    exercise = session.find_exercise(exercise_id)
    if exercise is None:
        raise ExerciseNotFoundError(exercise_id, session.id)
    rules = DEFAULT_PROGRESSION_RULES if rules is None else rules
    rule = rules.get(exercise.target_scheme.type)
    if rule is None:
        raise LookupError(f"No progression rule registered for {exercise.target_scheme.type.value}")
    history = recent_occurrences(exercise.exercise_id, all_sessions, exclude_session_id=session.id)
    return compute_progression(exercise, history, rule, unit, **kwargs)
