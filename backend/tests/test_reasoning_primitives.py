"""JSON extraction, response cache and window limiter behavior."""
from __future__ import annotations

import asyncio

import pytest

from conftest import FakeClock
from reasoning.cache import ResponseCache, fingerprint
from reasoning.extraction import extract_json, parse_json_object
from reasoning.rate_limiter import WindowRateLimiter
from shared.errors import MalformedResponse


# ── Extraction ───────────────────────────────────────────────


class TestExtraction:
    def test_strips_markdown_fence(self) -> None:
        text = '```json\n{"narrative": "Celtics at home", "confidenceRating": 71}\n```'
        assert extract_json(text) == {"narrative": "Celtics at home", "confidenceRating": 71}

    def test_ignores_leading_prose(self) -> None:
        text = 'Here is the analysis you asked for:\n{"sharpAngle": "fade the road team"} Hope that helps.'
        assert extract_json(text) == {"sharpAngle": "fade the road team"}

    def test_nested_objects_survive(self) -> None:
        text = '{"recommendedBet": {"type": "spread", "pick": "BOS -4.5", "confidence": 0.7}}'
        assert extract_json(text)["recommendedBet"]["pick"] == "BOS -4.5"

    def test_no_braces_is_none(self) -> None:
        assert extract_json("The model declined to answer.") is None

    def test_empty_is_none(self) -> None:
        assert extract_json("") is None
        assert extract_json(None) is None

    def test_invalid_json_raises_typed_error(self) -> None:
        with pytest.raises(MalformedResponse):
            parse_json_object('{"narrative": "unterminated}')

    def test_object_inside_array_is_extracted(self) -> None:
        assert parse_json_object('[{"a": 1}]') == {"a": 1}


# ── Cache ────────────────────────────────────────────────────


class TestResponseCache:
    def test_fingerprint_uses_prefix_only(self) -> None:
        base = "x" * 200
        assert fingerprint(base + "tail one", 200) == fingerprint(base + "tail two", 200)
        assert fingerprint("a" + base, 200) != fingerprint("b" + base, 200)

    def test_entry_expires_on_read(self, clock: FakeClock) -> None:
        cache = ResponseCache(ttl_s=600, max_size=10, clock=clock)
        cache.set("k", "v")

        clock.advance(599)
        assert cache.get("k") == "v"
        clock.advance(1)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_evicts_oldest_inserted(self, clock: FakeClock) -> None:
        cache = ResponseCache(ttl_s=600, max_size=2, clock=clock)
        cache.set("a", "1")
        cache.set("b", "2")
        cache.get("a")
        cache.set("c", "3")

        assert cache.get("a") is None
        assert cache.get("b") == "2"
        assert cache.get("c") == "3"

    def test_discard(self, clock: FakeClock) -> None:
        cache = ResponseCache(ttl_s=600, max_size=2, clock=clock)
        cache.set("a", "1")
        cache.discard("a")
        cache.discard("missing")
        assert len(cache) == 0


# ── Rate limiter ─────────────────────────────────────────────


class TestWindowRateLimiter:
    @pytest.mark.asyncio
    async def test_admits_up_to_ceiling_without_waiting(self, clock: FakeClock) -> None:
        limiter = WindowRateLimiter(max_requests=3, window_s=60, clock=clock)
        for _ in range(3):
            await limiter.wait_for_slot()
            limiter.consume()

        assert clock.sleeps == []
        assert limiter.requests_in_window() == 3

    @pytest.mark.asyncio
    async def test_blocks_until_window_resets(self, clock: FakeClock) -> None:
        start = clock.now()
        limiter = WindowRateLimiter(max_requests=1, window_s=60, clock=clock)
        await limiter.wait_for_slot()
        limiter.consume()
        clock.advance(20)

        await limiter.wait_for_slot()

        assert clock.now() >= start + 60
        assert limiter.requests_in_window() == 0

    @pytest.mark.asyncio
    async def test_cooldown_blocks_even_with_window_room(self, clock: FakeClock) -> None:
        limiter = WindowRateLimiter(max_requests=14, window_s=60, clock=clock)
        until = limiter.enter_cooldown(15)

        await limiter.wait_for_slot()

        assert clock.now() >= until
        assert limiter.cooldown_remaining() == 0

    def test_cooldown_never_shortened(self, clock: FakeClock) -> None:
        limiter = WindowRateLimiter(max_requests=14, window_s=60, clock=clock)
        long_until = limiter.enter_cooldown(65)
        assert limiter.enter_cooldown(5) == long_until
        assert limiter.cooldown_remaining() == pytest.approx(65)

    @pytest.mark.asyncio
    async def test_concurrent_waiters_never_exceed_ceiling(self, clock: FakeClock) -> None:
        limiter = WindowRateLimiter(max_requests=2, window_s=60, clock=clock)
        admitted: list[float] = []

        async def take() -> None:
            await limiter.wait_for_slot()
            limiter.consume()
            admitted.append(clock.now())

        await asyncio.gather(*(take() for _ in range(5)))

        windows: dict[int, int] = {}
        for t in admitted:
            bucket = int((t - 1000.0) // 60)
            windows[bucket] = windows.get(bucket, 0) + 1
        assert max(windows.values()) <= 2
