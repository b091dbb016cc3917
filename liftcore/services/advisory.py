"""Advisory progression service boundary.

An external coach model can comment on a progression decision. Its output
is surfaced next to the deterministic result and never replaces it. Every
failure mode (bad URL, HTTP error, timeout, malformed payload) is reported as
AdvisoryError so the caller can drop the suggestion and carry on.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol, Sequence

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from liftcore.config import Settings, get_settings
from liftcore.errors import AdvisoryError
from liftcore.models import AdvisorySuggestion, Session, SessionExercise, SetStatus

logger = logging.getLogger(__name__)

ALLOWED_ACTIONS = {"increase", "hold", "decrease", "deload"}


class AdvisoryResponse(BaseModel):
    suggested_action: str = Field(alias="suggestedAction")
    suggested_load: Optional[float] = Field(default=None, alias="suggestedLoad", ge=0)
    suggested_reps: Optional[int] = Field(default=None, alias="suggestedReps", ge=0)
    reason: str = ""
    signals: list[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("suggested_action")
    @classmethod
    def valid_action(cls, v):
        token = str(v or "").strip().lower()
        if token not in ALLOWED_ACTIONS:
            raise ValueError(f"suggested_action must be one of {ALLOWED_ACTIONS}")
        return token

    def to_suggestion(self) -> AdvisorySuggestion:
        return AdvisorySuggestion(
            action=self.suggested_action,
            reason=self.reason,
            confidence=self.confidence,
            suggested_load=self.suggested_load,
            suggested_reps=self.suggested_reps,
            signals=tuple(self.signals),
        )


class ProgressionAdvisor(Protocol):
    def suggest(
        self,
        exercise_id: str,
        exercise_name: str,
        recent_sessions: Sequence[dict[str, Any]],
    ) -> AdvisorySuggestion:
        """Return a suggestion or raise AdvisoryError."""


def history_payload(history: Sequence[tuple[Session, SessionExercise]]) -> list[dict[str, Any]]:
    """Per-session date and rep/load/RPE summary, most recent first.

    ``history`` holds (session, occurrence) pairs.
    """
    payload = []
    for session, ex in history:
        sets = [
            {
                "reps": s.actual_reps,
                "load": s.actual_load,
                "rpe": s.rpe,
                "targetReps": s.target_reps,
            }
            for s in ex.sets
            if s.status != SetStatus.PENDING
        ]
        payload.append({
            "date": session.completed_at.isoformat() if session.completed_at else None,
            "sets": sets,
            "targetsMet": all(
                s["targetReps"] is None or s["reps"] >= s["targetReps"] for s in sets
            ),
        })
    return payload


def parse_suggestion(data: Any) -> AdvisorySuggestion:
    if not isinstance(data, dict):
        raise AdvisoryError("Advisory response is not a JSON object")
    try:
        return AdvisoryResponse.model_validate(data).to_suggestion()
    except ValidationError as e:
        raise AdvisoryError(f"Malformed advisory response: {e.error_count()} errors") from e


class HttpProgressionAdvisor:
    """Posts exercise history to a JSON endpoint and parses its suggestion."""

    def __init__(
        self,
        url: str,
        api_key: str = "",
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self._client = client

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def suggest(
        self,
        exercise_id: str,
        exercise_name: str,
        recent_sessions: Sequence[dict[str, Any]],
    ) -> AdvisorySuggestion:
        body = {
            "exerciseId": exercise_id,
            "exerciseName": exercise_name,
            "recentSessions": list(recent_sessions),
        }
        try:
            if self._client is not None:
                resp = self._client.post(self.url, json=body, headers=self._headers(), timeout=self.timeout)
            else:
                resp = httpx.post(self.url, json=body, headers=self._headers(), timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except httpx.TimeoutException as e:
            raise AdvisoryError(f"Advisory request timed out after {self.timeout}s") from e
        except httpx.InvalidURL as e:
            raise AdvisoryError(f"Invalid advisory URL: {e}") from e
        except httpx.HTTPError as e:
            raise AdvisoryError(f"Advisory request failed: {e}") from e
        except ValueError as e:
            raise AdvisoryError("Advisory response is not valid JSON") from e

        return parse_suggestion(data)


def advisor_from_settings(settings: Settings | None = None) -> HttpProgressionAdvisor | None:
    settings = settings or get_settings()
    if not settings.advisory_configured:
        return None
    logger.debug("Advisory service configured at %s", settings.advisory_url)
    return HttpProgressionAdvisor(
        url=settings.advisory_url,
        api_key=settings.advisory_api_key,
        timeout=settings.advisory_timeout_sec,
    )
