"""Load arithmetic: estimated one-rep max, plate rounding and safe increases.

E1RM uses the Epley formula, weight * (1 + reps / 30), with an optional RPE
adjustment: a set stopped short of failure implies a higher true max.

Reference: Epley (1985); RPE scaling after Tuchscherer's reps-in-reserve chart.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

KG_TO_LBS = 2.20462
LBS_TO_KG = 0.453592

DEFAULT_PLATE_INCREMENTS: dict[str, tuple[float, ...]] = {
    "kg": (1.25, 2.5, 5, 10, 15, 20, 25),
    "lbs": (2.5, 5, 10, 25, 35, 45),
}
DEFAULT_BAR_WEIGHT = {"kg": 20.0, "lbs": 45.0}

COMPOUND_KEYWORDS = ("squat", "deadlift", "bench", "press")
SMALL_MUSCLE_KEYWORDS = ("curl", "lateral", "fly", "extension")

# (compound below threshold, compound at/above threshold, small muscle, default)
_INCREMENTS = {
    "kg": (2.5, 5.0, 1.25, 2.5),
    "lbs": (5.0, 10.0, 2.5, 5.0),
}
_COMPOUND_THRESHOLD = {"kg": 60.0, "lbs": 135.0}


@dataclass(frozen=True)
class E1RMEstimate:
    value: float
    confidence: float  # 0-1, highest for 4-8 rep sets


def _unit_key(unit) -> str:
    return str(getattr(unit, "value", unit)).lower()


def rep_confidence(reps: int) -> float:
    """Reliability of an Epley estimate at a given rep count."""
    if reps == 1:
        return 0.95
    if 2 <= reps <= 3:
        return 0.9
    if 4 <= reps <= 8:
        return 1.0
    if 9 <= reps <= 12:
        return 0.85
    if reps > 12:
        return 0.6
    return 0.9


def estimate_one_rep_max(weight: float, reps: int, rpe: float | None = None) -> E1RMEstimate:
    """Estimate 1RM from a single set. Never raises; zero inputs give zero-ish output."""
    e1rm = weight * (1 + reps / 30)
    if rpe and rpe < 10:
        e1rm *= 1 + (10 - rpe) * 0.025

    confidence = rep_confidence(reps)
    if not rpe and reps > 8:
        confidence *= 0.9

    return E1RMEstimate(value=round(e1rm, 1), confidence=round(confidence, 3))


def working_weight_from_max(e1rm: float, fraction: float) -> float:
    return round(e1rm * fraction, 1)


def target_reps_for_weight(weight: float, e1rm: float) -> int:
    """Invert the Epley estimate: reps achievable at ``weight`` for a given max."""
    if weight >= e1rm:
        return 1
    if weight <= 0:
        return 1
    reps = 30 * (e1rm / weight - 1)
    return max(1, int(math.floor(reps + 0.5)))


def percentage_of_max(weight: float, e1rm: float) -> float:
    if e1rm == 0:
        return 0.0
    return min(1.0, weight / e1rm)


def average_estimated_max(sets: Sequence[tuple[float, int, float | None]]) -> float:
    """Confidence- and recency-weighted mean E1RM.

    ``sets`` holds (weight, reps, rpe) tuples, most recent first; entry i is
    weighted by confidence * exp(-0.1 * i).
    """
    if not sets:
        return 0.0

    weighted_total = 0.0
    weight_sum = 0.0
    for index, (weight, reps, rpe) in enumerate(sets):
        est = estimate_one_rep_max(weight, reps, rpe)
        w = est.confidence * math.exp(-0.1 * index)
        weighted_total += est.value * w
        weight_sum += w

    if weight_sum == 0:
        return 0.0
    return round(weighted_total / weight_sum, 1)


def has_changed_significantly(old: float, new: float, threshold: float = 0.025) -> bool:
    if old == 0:
        return True
    return abs((new - old) / old) >= threshold


def plate_step(unit, increments: Iterable[float] | None = None) -> float:
    """Smallest load change the available plates allow."""
    available = tuple(increments) if increments else DEFAULT_PLATE_INCREMENTS[_unit_key(unit)]
    return min(available)


def round_to_nearest_plate(
    weight: float,
    unit,
    increments: Iterable[float] | None = None,
    round_up: bool = False,
) -> float:
    """Round to a multiple of the smallest available increment (half-up, or ceiling)."""
    step = plate_step(unit, increments)
    ratio = weight / step
    steps = math.ceil(round(ratio, 9)) if round_up else math.floor(ratio + 0.5)
    return round(steps * step, 2)


def round_down_to_plate(weight: float, unit, increments: Iterable[float] | None = None) -> float:
    step = plate_step(unit, increments)
    return round(math.floor(round(weight / step, 9)) * step, 2)


def achievable_loaded_weight(
    target: float,
    unit,
    bar_weight: float | None = None,
    increments: Iterable[float] | None = None,
    prefer_round_up: bool = True,
) -> float:
    """Closest barbell load reachable by adding plate pairs to the bar."""
    bar = bar_weight or DEFAULT_BAR_WEIGHT[_unit_key(unit)]
    pair_step = 2 * plate_step(unit, increments)
    load = target - bar
    if load <= 0:
        return bar

    ratio = load / pair_step
    steps = math.ceil(round(ratio, 9)) if prefer_round_up else math.floor(ratio + 0.5)
    return round(bar + steps * pair_step, 2)


def convert_weight(weight: float, from_unit, to_unit) -> float:
    src, dst = _unit_key(from_unit), _unit_key(to_unit)
    if src == dst:
        return weight
    if src == "kg":
        return round(weight * KG_TO_LBS, 1)
    return round(weight * LBS_TO_KG, 1)


def format_weight(weight: float, unit, show_unit: bool = True) -> str:
    text = f"{weight:.1f}"
    return f"{text} {_unit_key(unit)}" if show_unit else text


def exercise_category(exercise_name: str) -> str:
    lowered = (exercise_name or "").lower()
    if any(k in lowered for k in COMPOUND_KEYWORDS):
        return "compound"
    if any(k in lowered for k in SMALL_MUSCLE_KEYWORDS):
        return "isolation"
    return "default"


def suggested_increment(exercise_name: str, current_weight: float, unit) -> float:
    """Per-step load increase by lift category; heavy compounds jump further."""
    key = _unit_key(unit)
    light_compound, heavy_compound, small, default = _INCREMENTS[key]
    category = exercise_category(exercise_name)
    if category == "compound":
        return light_compound if current_weight < _COMPOUND_THRESHOLD[key] else heavy_compound
    if category == "isolation":
        return small
    return default


def clamp_increase_to_safe_max(old: float, proposed: float, max_fraction: float = 0.10) -> float:
    if proposed <= old:
        return proposed
    return min(proposed, round(old * (1 + max_fraction), 6))


def is_increase_safe(old: float, new: float, max_fraction: float = 0.10) -> bool:
    if old == 0:
        return True
    if new <= old:
        return True
    return (new - old) / old <= max_fraction
