"""Post-session pipeline: PRs, streak milestone and next-session progressions.

The caller hands in a just-completed session plus its session history and
persists whatever comes back. The weight unit defaults to
``Settings.weight_unit``.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field, replace
from typing import Sequence

from liftcore.config import Settings, get_settings
from liftcore.errors import SessionStateError
from liftcore.models import PREvent, ProgressionResult, Session
from liftcore.services.advisory import ProgressionAdvisor
from liftcore.services.pr_detection import detect_prs, detect_streak_milestone
from liftcore.services.progression import compute_session_progressions
from liftcore.services.training_stats import best_estimated_max_by_exercise, workout_streak


@dataclass
class SessionReview:
    session: Session
    pr_events: list[PREvent] = field(default_factory=list)
    progressions: list[ProgressionResult] = field(default_factory=list)
    streak_event: PREvent | None = None


def review_completed_session(
    session: Session,
    all_sessions: Sequence[Session],
    unit=None,
    today: dt.date | None = None,
    use_advisory: bool = False,
    advisor: ProgressionAdvisor | None = None,
    settings: Settings | None = None,
    now: dt.datetime | None = None,
) -> SessionReview:
    if not session.is_completed:
        raise SessionStateError(f"Session {session.id} must be completed before review")

    settings = settings or get_settings()
    unit = unit or settings.weight_unit
    now = now or dt.datetime.now(dt.timezone.utc)
    prior = [s for s in all_sessions if s.id != session.id and s.is_completed]

    prs = detect_prs(session, prior, best_estimated_max_by_exercise(prior), now=now)
    streak = workout_streak([*prior, session], today or now.date())
    streak_event = detect_streak_milestone(streak.current, now=now)

    progressions = compute_session_progressions(
        session,
        prior,
        unit,
        use_advisory=use_advisory,
        advisor=advisor,
        settings=settings,
        now=now,
    )

    events = [*prs, streak_event] if streak_event else prs
    return SessionReview(
        session=replace(session, pr_events=[*session.pr_events, *events]),
        pr_events=prs,
        progressions=progressions,
        streak_event=streak_event,
    )
