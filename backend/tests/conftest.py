"""Shared fixtures: fake clock, sample events, and a recording Gemini transport."""
from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Union

import httpx
import pytest

from reasoning.client import ReasoningClient
from reasoning.config import ReasoningSettings
from shared.models.domain import Event, SourceRecord, TeamRef
from shared.models.enums import SourceName
from shared.utils.clock import Clock

GAME_TIME = datetime(2025, 1, 15, 0, 30, tzinfo=timezone.utc)


class FakeClock(Clock):
    """Clock whose sleep() advances time instantly."""

    def __init__(self, start: float = 1000.0) -> None:
        self._now = start
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self._now += max(0.0, seconds)
        await asyncio.sleep(0)


def make_event(
    event_id: str = "401",
    home: str = "Boston Celtics",
    away: str = "Miami Heat",
    home_record: str = "30-10",
    away_record: str = "22-18",
    sport: str = "nba",
    home_abbr: str = "BOS",
    away_abbr: str = "MIA",
) -> Event:
    return Event(
        id=event_id,
        sport=sport,
        name=f"{away} at {home}",
        date=GAME_TIME,
        home=TeamRef(id="2", name=home, abbreviation=home_abbr, short_name=home.split()[-1], record=home_record),
        away=TeamRef(id="14", name=away, abbreviation=away_abbr, short_name=away.split()[-1], record=away_record),
    )


def present(source: SourceName, payload: dict[str, Any]) -> SourceRecord:
    return SourceRecord.found(source, payload)


def gemini_response(text: str) -> httpx.Response:
    return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})


def quota_response(retry_delay: Optional[str] = "10s") -> httpx.Response:
    details = []
    if retry_delay is not None:
        details.append({"@type": "type.googleapis.com/google.rpc.RetryInfo", "retryDelay": retry_delay})
    return httpx.Response(429, json={"error": {"code": 429, "status": "RESOURCE_EXHAUSTED", "details": details}})


Reply = Union[httpx.Response, Exception]


class GeminiStub:
    """Mock transport that replays scripted replies and records request times."""

    def __init__(self, clock: FakeClock, replies: Union[list[Reply], Callable[[httpx.Request], Reply]]) -> None:
        self._clock = clock
        self._replies = replies
        self.calls: list[tuple[float, dict[str, Any]]] = []

    def _handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append((self._clock.now(), json.loads(request.content)))
        if callable(self._replies):
            reply = self._replies(request)
        else:
            reply = self._replies.pop(0) if len(self._replies) > 1 else self._replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply

    @property
    def times(self) -> list[float]:
        return [t for t, _ in self.calls]

    def prompts(self) -> list[str]:
        return [body["contents"][0]["parts"][0]["text"] for _, body in self.calls]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handler)


def reasoning_settings(**overrides: Any) -> ReasoningSettings:
    values: dict[str, Any] = {
        "api_key": "test-key-0123456789",
        "window_s": 60.0,
        "max_requests_per_window": 14,
        "cooldown_margin_s": 5.0,
        "default_retry_delay_s": 60.0,
        "error_retry_delay_s": 5.0,
        "max_retries": 2,
        "cache_ttl_s": 600.0,
        "cache_max_size": 100,
        "cache_key_chars": 200,
        "request_timeout_s": 30.0,
        "max_concurrent": 2,
    }
    values.update(overrides)
    return ReasoningSettings(**values)


def make_client(clock: FakeClock, stub: GeminiStub, **overrides: Any) -> ReasoningClient:
    return ReasoningClient(
        reasoning_settings(**overrides),
        clock=clock,
        http_client=httpx.AsyncClient(transport=stub.transport()),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def event() -> Event:
    return make_event()
