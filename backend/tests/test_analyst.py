"""Reasoning analyst: prompt routing, schema validation and per-prompt degradation."""
from __future__ import annotations

import json

import httpx
import pytest

from conftest import FakeClock, GeminiStub, gemini_response, make_client, make_event, present
from reasoning.analyst import ReasoningAnalyst
from reasoning.prompts import analysis_prompt, matchup_line
from shared.models.domain import Factor
from shared.models.enums import Advantage, SourceName

ANALYSIS = {
    "narrative": "Boston controls the glass and Miami is on the second night of a back-to-back.",
    "keyInsights": ["Miami on a back-to-back"],
    "sharpAngle": "Celtics first-half spread",
    "confidenceRating": 72,
    "riskFactors": ["Boston rests starters late"],
    "recommendedBet": {"type": "spread", "side": "home", "reasoning": "rest edge"},
}
SITUATIONS = {
    "situations": [{"name": "Back-to-back", "edge": "HOME", "strength": 7, "explanation": "Miami played last night"}],
    "hiddenEdge": "Miami's travel schedule",
    "marketBlindSpot": "Late-season rest patterns",
}
SENTIMENT = {
    "overallSentiment": {"home": "positive", "away": "negative"},
    "bettingImpact": "Line moves toward Boston",
    "contrarian": False,
}


def route(analysis=ANALYSIS, situations=SITUATIONS, sentiment=SENTIMENT):
    def handler(request: httpx.Request) -> httpx.Response:
        prompt = json.loads(request.content)["contents"][0]["parts"][0]["text"]
        if "full matchup analysis" in prompt:
            body = analysis
        elif "situational spot" in prompt:
            body = situations
        else:
            body = sentiment
        return gemini_response(body if isinstance(body, str) else json.dumps(body))

    return handler


REST_FACTOR = Factor(
    key="rest_schedule", name="Rest & Schedule", weight=0.1, advantage=Advantage.HOME, impact=7,
    available=True, insight="Boston rested", data={"home_rest_days": 2, "away_rest_days": 0},
)


@pytest.mark.asyncio
async def test_full_report(clock: FakeClock) -> None:
    stub = GeminiStub(clock, route())
    analyst = ReasoningAnalyst(make_client(clock, stub))
    records = {SourceName.NEWS: present(SourceName.NEWS, {"articles": [{"headline": "Heat star questionable"}]})}

    report = await analyst.analyze(make_event(), [REST_FACTOR], records)

    assert report.analysis.confidence_rating == 72
    assert report.analysis.recommended_bet.side == "home"
    assert report.situations.hidden_edge == "Miami's travel schedule"
    assert report.sentiment.overall_sentiment.away == "negative"
    assert len(stub.calls) == 3
    assert "rest days: 2" in stub.prompts()[1]


@pytest.mark.asyncio
async def test_sentiment_skipped_without_headlines(clock: FakeClock) -> None:
    stub = GeminiStub(clock, route())
    analyst = ReasoningAnalyst(make_client(clock, stub))

    report = await analyst.analyze(make_event(), [], {})

    assert report.sentiment is None
    assert len(stub.calls) == 2


@pytest.mark.asyncio
async def test_schema_mismatch_drops_only_that_part(clock: FakeClock) -> None:
    bad = {**ANALYSIS, "confidenceRating": 250}
    stub = GeminiStub(clock, route(analysis=bad))
    analyst = ReasoningAnalyst(make_client(clock, stub))

    report = await analyst.analyze(make_event(), [], {})

    assert report.analysis is None
    assert report.situations is not None


@pytest.mark.asyncio
async def test_prose_answer_yields_empty_analysis(clock: FakeClock) -> None:
    stub = GeminiStub(clock, route(analysis="I'd rather not pick this game."))
    analyst = ReasoningAnalyst(make_client(clock, stub))

    report = await analyst.analyze(make_event(), [], {})

    assert report.analysis is None


@pytest.mark.asyncio
async def test_unconfigured_client_returns_empty_report(clock: FakeClock) -> None:
    stub = GeminiStub(clock, route())
    analyst = ReasoningAnalyst(make_client(clock, stub, api_key=""))

    report = await analyst.analyze(make_event(), [REST_FACTOR], {})

    assert report.analysis is None
    assert report.situations is None
    assert stub.calls == []


@pytest.mark.asyncio
async def test_unexpected_error_is_contained(clock: FakeClock) -> None:
    def explode(request: httpx.Request) -> httpx.Response:
        raise RuntimeError("transport bug")

    analyst = ReasoningAnalyst(make_client(clock, GeminiStub(clock, explode)))

    report = await analyst.analyze(make_event(), [], {})

    assert report.analysis is None


def test_prompts_differ_per_event_within_cache_prefix() -> None:
    a, _ = analysis_prompt(make_event("401"), [])
    b, _ = analysis_prompt(make_event("402"), [])
    assert a[:200] != b[:200]
    assert matchup_line(make_event("401")).startswith("MATCHUP [NBA 401]")
