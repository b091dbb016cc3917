"""Per-set stimulus, sub-region weekly totals and set-quality ratios.

A completed set is worth 1.0 stimulus, nudged up for the top set and hard
efforts and down for easy ones, clamped to [0.8, 1.2]. An exercise spreads
each set's stimulus over muscle sub-regions by weight.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Iterable, Mapping, Sequence

from liftcore.models import Session, SessionExercise, SetLog, SubRegion, SubRegionWeight

logger = logging.getLogger(__name__)

BASE_STIMULUS = 1.0
MIN_STIMULUS = 0.8
MAX_STIMULUS = 1.2
HARD_RPE = 8
EASY_RPE = 6


def set_stimulus(set_log: SetLog, is_top_set: bool = False) -> float:
    if not set_log.is_completed:
        return 0.0

    stimulus = BASE_STIMULUS
    if is_top_set:
        stimulus += 0.1
    if set_log.rpe:
        if set_log.rpe >= HARD_RPE:
            stimulus += 0.1
        elif set_log.rpe <= EASY_RPE:
            stimulus -= 0.1
    return round(max(MIN_STIMULUS, min(MAX_STIMULUS, stimulus)), 6)


def exercise_region_stimulus(
    exercise: SessionExercise,
    region_weights: Sequence[SubRegionWeight],
) -> dict[SubRegion, float]:
    """Stimulus per sub-region for one exercise; the first logged set counts as the top set."""
    totals: dict[SubRegion, float] = {}
    for index, s in enumerate(exercise.sets):
        if not s.is_completed:
            continue
        stimulus = set_stimulus(s, is_top_set=index == 0)
        for rw in region_weights:
            totals[rw.region] = totals.get(rw.region, 0.0) + stimulus * rw.weight
    return totals


def week_boundaries(day: dt.date) -> tuple[dt.date, dt.date]:
    """Sunday-to-Saturday week containing ``day``."""
    if isinstance(day, dt.datetime):
        day = day.date()
    start = day - dt.timedelta(days=(day.weekday() + 1) % 7)
    return start, start + dt.timedelta(days=6)


def weekly_region_totals(
    sessions: Iterable[Session],
    region_map: Mapping[str, Sequence[SubRegionWeight]],
    week_start: dt.date,
    week_end: dt.date,
) -> dict[SubRegion, float]:
    """Sum sub-region stimulus over sessions completed within [week_start, week_end].

    Exercises missing from ``region_map`` contribute nothing.
    """
    totals: dict[SubRegion, float] = {}
    counted = 0
    for session in sessions:
        if session.completed_at is None:
            continue
        if not week_start <= session.completed_at.date() <= week_end:
            continue
        counted += 1
        for ex in session.exercises:
            weights = region_map.get(ex.exercise_id)
            if not weights:
                continue
            for region, value in exercise_region_stimulus(ex, weights).items():
                totals[region] = totals.get(region, 0.0) + value

    logger.debug("Sub-region totals for %s..%s from %d sessions", week_start, week_end, counted)
    return totals


def target_met(set_log: SetLog) -> bool:
    """A set with no rep or load target always counts as met."""
    if not set_log.target_reps or not set_log.target_load:
        return True
    return set_log.actual_reps >= set_log.target_reps and set_log.actual_load >= set_log.target_load


def completion_rate(sets: Sequence[SetLog]) -> int:
    """Percentage of sets that met their target, 0 for no sets."""
    if not sets:
        return 0
    met = sum(1 for s in sets if target_met(s))
    return round(met / len(sets) * 100)


def average_intensity(sets: Sequence[SetLog]) -> int:
    """Mean actual load as a percentage of target load over completed, loaded sets."""
    loaded = [s for s in sets if s.is_completed and s.target_load and s.target_load > 0]
    if not loaded:
        return 0
    return round(sum(s.actual_load / s.target_load * 100 for s in loaded) / len(loaded))


def average_volume_per_set(sets: Sequence[SetLog]) -> int:
    done = [s for s in sets if s.is_completed]
    if not done:
        return 0
    return round(sum(s.volume for s in done) / len(done))
