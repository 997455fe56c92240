"""Source collection: every pair yields a record, failures stay local to their pair."""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional
from unittest.mock import MagicMock

import httpx
import pytest

from collector.collector import SourceCollector
from collector.sources.base import DataSource
from collector.sources.reddit import SUBREDDITS, RedditSource
from conftest import FakeClock, make_event
from shared.config import Settings
from shared.models.domain import Event
from shared.models.enums import SourceName
from shared.utils.circuit_breaker import CircuitState
from shared.utils.http_client import SourceHTTPClient


class ScriptedSource(DataSource):
    """Source whose payload comes from a callable; counts fetches."""

    def __init__(self, name: SourceName, behavior: Callable[[Event], Any]) -> None:
        super().__init__(MagicMock())
        self._name = name
        self._behavior = behavior
        self.calls = 0

    @property
    def name(self) -> SourceName:
        return self._name

    async def _fetch(self, event: Event) -> Optional[dict[str, Any]]:
        self.calls += 1
        result = self._behavior(event)
        if asyncio.iscoroutine(result):
            return await result
        return result


def crash(_event: Event) -> dict[str, Any]:
    raise RuntimeError("connector bug")


async def _hang(_event: Event) -> dict[str, Any]:
    await asyncio.sleep(5)
    return {"late": True}


def settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {"source_breaker_threshold": 5, "source_breaker_recovery_s": 60.0}
    values.update(overrides)
    return Settings(**values)


def ok(_event: Event) -> dict[str, Any]:
    return {"ok": True}


class TestFetch:
    @pytest.mark.asyncio
    async def test_present_payload(self) -> None:
        collector = SourceCollector([ScriptedSource(SourceName.SUMMARY, ok)], settings())
        record = await collector.fetch(collector.sources[0], make_event())
        assert record.present is True
        assert record.payload == {"ok": True}

    @pytest.mark.asyncio
    async def test_none_is_absent(self) -> None:
        collector = SourceCollector([ScriptedSource(SourceName.SUMMARY, lambda _e: None)], settings())
        record = await collector.fetch(collector.sources[0], make_event())
        assert record.present is False
        assert record.payload is None
        assert record.reason == "no data"

    @pytest.mark.asyncio
    async def test_error_inside_source_is_absent_with_cause(self) -> None:
        collector = SourceCollector([ScriptedSource(SourceName.NEWS, crash)], settings())
        record = await collector.fetch(collector.sources[0], make_event())
        assert record.present is False
        assert record.reason == "RuntimeError: connector bug"

    @pytest.mark.asyncio
    async def test_source_fetch_itself_never_raises(self) -> None:
        source = ScriptedSource(SourceName.NEWS, crash)
        assert await source.fetch(make_event()) is None

    @pytest.mark.asyncio
    async def test_timeout_is_absent(self) -> None:
        collector = SourceCollector([ScriptedSource(SourceName.SOCIAL, _hang)], settings(), timeout_s=0.05)
        record = await collector.fetch(collector.sources[0], make_event())
        assert record.present is False
        assert record.reason.startswith("timeout")


class TestCollect:
    @pytest.mark.asyncio
    async def test_failures_do_not_affect_other_pairs(self) -> None:
        sources = [
            ScriptedSource(SourceName.TEAM_STATS, ok),
            ScriptedSource(SourceName.SOCIAL, _hang),
            ScriptedSource(SourceName.NEWS, crash),
            ScriptedSource(SourceName.INJURIES, lambda _e: None),
        ]
        events = [make_event("401"), make_event("402")]
        collector = SourceCollector(sources, settings(), timeout_s=0.05)

        by_event = await collector.collect(events)

        assert set(by_event) == {"401", "402"}
        for records in by_event.values():
            assert set(records) == {s.name for s in sources}
            assert records[SourceName.TEAM_STATS].present is True
            assert records[SourceName.SOCIAL].present is False
            assert records[SourceName.NEWS].present is False
            assert records[SourceName.INJURIES].present is False

    @pytest.mark.asyncio
    async def test_pairs_run_concurrently(self) -> None:
        async def slow(_event: Event) -> dict[str, Any]:
            await asyncio.sleep(0.1)
            return {"ok": True}

        sources = [ScriptedSource(name, slow) for name in (SourceName.SUMMARY, SourceName.SCHEDULE)]
        events = [make_event(str(i)) for i in range(5)]
        collector = SourceCollector(sources, settings())

        loop = asyncio.get_running_loop()
        start = loop.time()
        await collector.collect(events)

        assert loop.time() - start < 0.5

    @pytest.mark.asyncio
    async def test_concurrency_bound_respected(self) -> None:
        active = 0
        peak = 0

        async def tracked(_event: Event) -> dict[str, Any]:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return {"ok": True}

        collector = SourceCollector(
            [ScriptedSource(SourceName.SUMMARY, tracked)], settings(), max_concurrency=2
        )
        await collector.collect([make_event(str(i)) for i in range(6)])

        assert peak <= 2

    @pytest.mark.asyncio
    async def test_empty_event_list(self) -> None:
        collector = SourceCollector([ScriptedSource(SourceName.SUMMARY, ok)], settings())
        assert await collector.collect([]) == {}


class TestBreaker:
    @pytest.mark.asyncio
    async def test_repeated_crashes_open_circuit_and_skip_io(self) -> None:
        clock = FakeClock()
        source = ScriptedSource(SourceName.SUMMARY, crash)
        collector = SourceCollector([source], settings(source_breaker_threshold=2), clock=clock)
        event = make_event()

        for _ in range(2):
            await collector.fetch(source, event)
        record = await collector.fetch(source, event)

        assert source.calls == 2
        assert record.present is False
        assert record.reason.startswith("circuit open")
        assert collector.breaker_stats()[0]["state"] == CircuitState.OPEN.value

    @pytest.mark.asyncio
    async def test_absent_answers_keep_circuit_closed(self) -> None:
        source = ScriptedSource(SourceName.SUMMARY, lambda _e: None)
        collector = SourceCollector([source], settings(source_breaker_threshold=1))

        for _ in range(3):
            await collector.fetch(source, make_event())

        assert source.calls == 3
        assert collector.breaker_stats()[0]["state"] == CircuitState.CLOSED.value

    @pytest.mark.asyncio
    async def test_successful_call_after_recovery_closes_circuit(self) -> None:
        clock = FakeClock()
        healthy = False

        def flaky(_event: Event) -> dict[str, Any]:
            if not healthy:
                raise ConnectionError("refused")
            return {"ok": True}

        source = ScriptedSource(SourceName.SUMMARY, flaky)
        collector = SourceCollector(
            [source], settings(source_breaker_threshold=1, source_breaker_recovery_s=30.0), clock=clock
        )
        event = make_event()

        await collector.fetch(source, event)
        assert (await collector.fetch(source, event)).reason.startswith("circuit open")

        healthy = True
        clock.advance(31)
        record = await collector.fetch(source, event)

        assert record.present is True
        assert collector.breaker_stats()[0]["state"] == CircuitState.CLOSED.value

    @pytest.mark.asyncio
    async def test_upstream_5xx_opens_circuit(self) -> None:
        requests = 0

        def unavailable(request: httpx.Request) -> httpx.Response:
            nonlocal requests
            requests += 1
            return httpx.Response(503)

        http = SourceHTTPClient("reddit", "https://reddit.test", max_retries=1, transport=httpx.MockTransport(unavailable))
        source = RedditSource(http)
        collector = SourceCollector([source], settings(source_breaker_threshold=2), clock=FakeClock())
        event = make_event()

        records = [await collector.fetch(source, event) for _ in range(5)]

        assert all(r.reason.startswith("SourceUnavailable") for r in records[:2])
        assert all(r.reason.startswith("circuit open") for r in records[2:])
        stats = collector.breaker_stats()[0]
        assert stats["state"] == CircuitState.OPEN.value
        assert stats["success_count"] == 0
        assert requests == 2 * len(SUBREDDITS["nba"])
        await http.close()
