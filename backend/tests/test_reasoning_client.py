"""Reasoning client tests: window limiting, quota cooldown, caching, degradation to None."""
from __future__ import annotations

import httpx
import pytest

from conftest import FakeClock, GeminiStub, gemini_response, make_client, quota_response
from reasoning.client import parse_retry_delay


class TestCaching:
    @pytest.mark.asyncio
    async def test_same_prefix_structured_calls_hit_network_once(self, clock: FakeClock) -> None:
        stub = GeminiStub(clock, [gemini_response('```json\n{"edge": "home"}\n```')])
        client = make_client(clock, stub)

        first = await client.generate_structured("Analyze Celtics vs Heat", {"edge": "home|away"})
        second = await client.generate_structured("Analyze Celtics vs Heat", {"edge": "home|away"})

        assert first == {"edge": "home"}
        assert second == {"edge": "home"}
        assert len(stub.calls) == 1

    @pytest.mark.asyncio
    async def test_prompts_differing_only_after_prefix_share_entry(self, clock: FakeClock) -> None:
        stub = GeminiStub(clock, [gemini_response('{"edge": "away"}')])
        client = make_client(clock, stub)
        shared = "MATCHUP [NBA 401] Heat at Celtics. " + "Context line. " * 20
        assert len(shared) > 200

        first = await client.generate_structured(shared + "Focus on rest.", {"edge": "home|away"})
        second = await client.generate_structured(shared + "Focus on officiating.", {"edge": "home|away"})

        assert first == second == {"edge": "away"}
        assert len(stub.calls) == 1

    @pytest.mark.asyncio
    async def test_cache_expires_after_ttl(self, clock: FakeClock) -> None:
        stub = GeminiStub(clock, [gemini_response("fresh text")])
        client = make_client(clock, stub, cache_ttl_s=600.0)

        await client.generate("same prompt")
        clock.advance(601)
        await client.generate("same prompt")

        assert len(stub.calls) == 2

    @pytest.mark.asyncio
    async def test_cache_hit_does_not_count_against_window(self, clock: FakeClock) -> None:
        stub = GeminiStub(clock, [gemini_response("cached")])
        client = make_client(clock, stub)

        await client.generate("prompt")
        for _ in range(5):
            await client.generate("prompt")

        assert client.limiter.requests_in_window() == 1

    @pytest.mark.asyncio
    async def test_unparseable_output_is_not_cached(self, clock: FakeClock) -> None:
        stub = GeminiStub(clock, [gemini_response("I cannot answer that in JSON.")])
        client = make_client(clock, stub)

        assert await client.generate_structured("prompt", "{}") is None
        assert len(client.cache) == 0


class TestWindowLimit:
    @pytest.mark.asyncio
    async def test_call_after_ceiling_waits_for_window_reset(self, clock: FakeClock) -> None:
        stub = GeminiStub(clock, [gemini_response("ok")])
        client = make_client(clock, stub, max_requests_per_window=2, window_s=60.0)

        for i in range(3):
            await client.generate(f"distinct prompt {i}")

        assert len(stub.calls) == 3
        assert stub.times[1] == stub.times[0]
        assert stub.times[2] >= stub.times[0] + 60.0


class TestQuotaCooldown:
    @pytest.mark.asyncio
    async def test_no_request_before_retry_delay_plus_margin(self, clock: FakeClock) -> None:
        stub = GeminiStub(clock, [quota_response("10s"), gemini_response("recovered")])
        client = make_client(clock, stub, cooldown_margin_s=5.0)

        result = await client.generate("prompt")

        assert result == "recovered"
        assert len(stub.calls) == 2
        assert stub.times[1] - stub.times[0] >= 15.0

    @pytest.mark.asyncio
    async def test_returns_none_after_max_retries(self, clock: FakeClock) -> None:
        stub = GeminiStub(clock, [quota_response("10s")])
        client = make_client(clock, stub, max_retries=2)

        assert await client.generate("prompt") is None
        assert len(stub.calls) == 3
        gaps = [b - a for a, b in zip(stub.times, stub.times[1:])]
        assert all(gap >= 15.0 for gap in gaps)

    @pytest.mark.asyncio
    async def test_missing_retry_delay_uses_default(self, clock: FakeClock) -> None:
        stub = GeminiStub(clock, [quota_response(None), gemini_response("ok")])
        client = make_client(clock, stub, default_retry_delay_s=60.0, cooldown_margin_s=5.0)

        assert await client.generate("prompt") == "ok"
        assert stub.times[1] - stub.times[0] >= 65.0

    @pytest.mark.asyncio
    async def test_cooldown_blocks_other_callers(self, clock: FakeClock) -> None:
        stub = GeminiStub(clock, [quota_response("10s"), gemini_response("a"), gemini_response("b")])
        client = make_client(clock, stub, max_retries=0)

        assert await client.generate("first") is None
        assert await client.generate("second") == "a"
        assert stub.times[1] - stub.times[0] >= 15.0


class TestTransientFailures:
    @pytest.mark.asyncio
    async def test_timeout_retries_without_cooldown(self, clock: FakeClock) -> None:
        stub = GeminiStub(clock, [httpx.ReadTimeout("slow"), gemini_response("ok")])
        client = make_client(clock, stub, error_retry_delay_s=5.0)

        assert await client.generate("prompt") == "ok"
        assert client.limiter.cooldown_remaining() == 0
        assert 5.0 in clock.sleeps

    @pytest.mark.asyncio
    async def test_server_error_is_retried(self, clock: FakeClock) -> None:
        stub = GeminiStub(clock, [httpx.Response(503), gemini_response("ok")])
        client = make_client(clock, stub)

        assert await client.generate("prompt") == "ok"
        assert len(stub.calls) == 2

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self, clock: FakeClock) -> None:
        stub = GeminiStub(clock, [httpx.Response(400, json={"error": {"message": "bad"}})])
        client = make_client(clock, stub)

        assert await client.generate("prompt") is None
        assert len(stub.calls) == 1

    @pytest.mark.asyncio
    async def test_empty_candidates_return_none(self, clock: FakeClock) -> None:
        stub = GeminiStub(clock, [httpx.Response(200, json={"candidates": []})])
        client = make_client(clock, stub)

        assert await client.generate("prompt") is None

    @pytest.mark.asyncio
    async def test_unconfigured_client_never_dispatches(self, clock: FakeClock) -> None:
        stub = GeminiStub(clock, [gemini_response("ok")])
        client = make_client(clock, stub, api_key="")

        assert await client.generate("prompt") is None
        assert stub.calls == []


class TestWireFormat:
    @pytest.mark.asyncio
    async def test_request_body_shape(self, clock: FakeClock) -> None:
        stub = GeminiStub(clock, [gemini_response("ok")])
        client = make_client(clock, stub)

        await client.generate("hello", "be terse", temperature=0.4, max_output_tokens=1500)

        body = stub.calls[0][1]
        assert body["contents"][0]["parts"][0]["text"] == "hello"
        assert body["systemInstruction"]["parts"][0]["text"] == "be terse"
        assert body["generationConfig"] == {"temperature": 0.4, "maxOutputTokens": 1500, "topP": 0.8}

    @pytest.mark.asyncio
    async def test_structured_prompt_keeps_caller_text_first(self, clock: FakeClock) -> None:
        stub = GeminiStub(clock, [gemini_response("{}")])
        client = make_client(clock, stub)

        await client.generate_structured("MATCHUP: A @ B", {"x": "y"})

        prompt = stub.prompts()[0]
        assert prompt.startswith("MATCHUP: A @ B")
        assert "Respond ONLY with valid JSON" in prompt

    def test_status_reports_window_and_cache(self, clock: FakeClock) -> None:
        stub = GeminiStub(clock, [gemini_response("ok")])
        client = make_client(clock, stub, max_requests_per_window=14)

        status = client.status()

        assert status["configured"] is True
        assert status["max_requests_per_window"] == 14
        assert status["requests_this_window"] == 0
        assert status["cache_size"] == 0


def test_parse_retry_delay_prefers_retry_info() -> None:
    resp = quota_response("12.5s")
    assert parse_retry_delay(resp) == 12.5


def test_parse_retry_delay_falls_back_to_header() -> None:
    resp = httpx.Response(429, headers={"Retry-After": "7"}, text="slow down")
    assert parse_retry_delay(resp) == 7.0


def test_parse_retry_delay_none_when_absent() -> None:
    assert parse_retry_delay(httpx.Response(429, json={"error": {}})) is None
