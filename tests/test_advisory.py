"""Tests for the advisory service client and payload parsing."""

from __future__ import annotations

import json
from datetime import date, datetime, timezone

import httpx
import pytest

from liftcore.config import Settings
from liftcore.errors import AdvisoryError
from liftcore.models import (
    Session,
    SessionExercise,
    SessionStatus,
    SetLog,
    SetScheme,
    SetSchemeType,
    SetStatus,
)
from liftcore.services.advisory import (
    HttpProgressionAdvisor,
    advisor_from_settings,
    history_payload,
    parse_suggestion,
)

URL = "https://coach.example.com/v1/progression"

GOOD_RESPONSE = {
    "suggestedAction": "Increase",
    "suggestedLoad": 107.5,
    "suggestedReps": 5,
    "reason": "Three sessions at RPE 7",
    "signals": ["low_rpe", "targets_met"],
    "confidence": 0.86,
}


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_parse_suggestion_normalizes_action():
    suggestion = parse_suggestion(GOOD_RESPONSE)
    assert suggestion.action == "increase"
    assert suggestion.suggested_load == 107.5
    assert suggestion.suggested_reps == 5
    assert suggestion.signals == ("low_rpe", "targets_met")
    assert suggestion.confidence == 0.86


@pytest.mark.parametrize("payload", [
    {**GOOD_RESPONSE, "suggestedAction": "yolo"},
    {**GOOD_RESPONSE, "confidence": 1.5},
    {k: v for k, v in GOOD_RESPONSE.items() if k != "confidence"},
    ["not", "an", "object"],
])
def test_parse_suggestion_rejects_malformed_payloads(payload):
    with pytest.raises(AdvisoryError):
        parse_suggestion(payload)


def test_history_payload_dates_sessions_and_skips_pending_sets():
    ex = SessionExercise(
        id="occ",
        exercise_id="bench",
        exercise_name="Bench Press",
        target_scheme=SetScheme(type=SetSchemeType.FIXED_REPS, sets=3, reps=5),
        sets=[
            SetLog(id="a", set_number=1, target_reps=5, actual_reps=5, actual_load=100, rpe=7,
                   status=SetStatus.COMPLETED),
            SetLog(id="b", set_number=2, target_reps=5, actual_reps=4, actual_load=100,
                   status=SetStatus.FAILED),
            SetLog(id="c", set_number=3, target_reps=5),
        ],
    )
    session = Session(
        id="s1", program_id="p1", program_version="1.0", workout_template_id="push",
        workout_name="Push", week_number=1, day_number=1, scheduled_date=date(2026, 3, 2),
        status=SessionStatus.COMPLETED, exercises=[ex],
        completed_at=datetime(2026, 3, 2, 18, 30, tzinfo=timezone.utc),
    )
    (entry,) = history_payload([(session, ex)])
    assert entry["date"] == "2026-03-02T18:30:00+00:00"
    assert entry["sets"] == [
        {"reps": 5, "load": 100, "rpe": 7, "targetReps": 5},
        {"reps": 4, "load": 100, "rpe": None, "targetReps": 5},
    ]
    assert entry["targetsMet"] is False


def test_http_advisor_posts_history_and_parses_response():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=GOOD_RESPONSE)

    advisor = HttpProgressionAdvisor(URL, api_key="k-123", client=_client(handler))
    suggestion = advisor.suggest("bench", "Bench Press", [{"sets": [], "targetsMet": True}])

    assert suggestion.action == "increase"
    assert seen["auth"] == "Bearer k-123"
    assert seen["body"] == {
        "exerciseId": "bench",
        "exerciseName": "Bench Press",
        "recentSessions": [{"sets": [], "targetsMet": True}],
    }


def test_http_advisor_timeout_is_advisory_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    advisor = HttpProgressionAdvisor(URL, timeout=0.5, client=_client(handler))
    with pytest.raises(AdvisoryError, match="timed out"):
        advisor.suggest("bench", "Bench Press", [])


def test_http_advisor_malformed_url_is_advisory_error():
    advisor = HttpProgressionAdvisor("http://[::1/advise")
    with pytest.raises(AdvisoryError, match="Invalid advisory URL"):
        advisor.suggest("bench", "Bench Press", [])


def test_http_advisor_server_error_is_advisory_error():
    advisor = HttpProgressionAdvisor(URL, client=_client(lambda request: httpx.Response(503)))
    with pytest.raises(AdvisoryError, match="failed"):
        advisor.suggest("bench", "Bench Press", [])


def test_http_advisor_non_json_body_is_advisory_error():
    advisor = HttpProgressionAdvisor(URL, client=_client(lambda request: httpx.Response(200, text="<html>")))
    with pytest.raises(AdvisoryError, match="not valid JSON"):
        advisor.suggest("bench", "Bench Press", [])


def test_advisor_from_settings():
    assert advisor_from_settings(Settings()) is None
    assert advisor_from_settings(Settings(advisory_enabled=True)) is None

    advisor = advisor_from_settings(
        Settings(advisory_enabled=True, advisory_url=URL, advisory_api_key="k", advisory_timeout_sec=3.0)
    )
    assert isinstance(advisor, HttpProgressionAdvisor)
    assert advisor.url == URL
    assert advisor.timeout == 3.0
