"""
Rate-limited, cached, retrying client for the Gemini generateContent API.

Per call, in order:
  1. wait out any quota cooldown
  2. wait for room in the fixed request window
  3. serve from the response cache if the prompt fingerprint is fresh
  4. dispatch with a hard timeout; a 429 sets a cooldown of the provider's
     retry delay plus a margin and the call is retried
  5. cache and return the text

Every failure (quota exhausted, timeout, transport, non-2xx, empty or
malformed output) degrades to None. Nothing here raises to the caller.
"""
from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Optional, Union

import httpx

from reasoning.cache import ResponseCache, fingerprint
from reasoning.config import ReasoningSettings, get_reasoning_settings
from reasoning.extraction import extract_json
from reasoning.rate_limiter import WindowRateLimiter
from shared.errors import MalformedResponse, QuotaExceeded, ReasoningTimeout
from shared.utils.clock import SYSTEM_CLOCK, Clock
from shared.utils.logging import get_logger
from shared.utils.metrics import REASONING_CACHE, REASONING_LATENCY, REASONING_REQUESTS

logger = get_logger(__name__)

JSON_ONLY_INSTRUCTION = (
    "Respond ONLY with valid JSON. No markdown, no code blocks, no explanation outside the JSON."
)


def build_request_body(
    prompt: str,
    *,
    system_instruction: Optional[str],
    temperature: float,
    max_output_tokens: int,
    top_p: float,
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "generationConfig": {
            "temperature": temperature,
            "maxOutputTokens": max_output_tokens,
            "topP": top_p,
        },
    }
    if system_instruction:
        body["systemInstruction"] = {"parts": [{"text": system_instruction}]}
    return body


def candidate_text(payload: dict[str, Any]) -> str:
    """
    Pull the generated text out of a generateContent response.

    Raises:
        MalformedResponse: no candidates, or the first candidate has no text.
    """
    try:
        parts = payload["candidates"][0]["content"]["parts"]
        text = "".join(p.get("text", "") for p in parts if isinstance(p, dict))
    except (KeyError, IndexError, TypeError) as exc:
        raise MalformedResponse(f"no candidate text: {exc!r}") from exc
    if not text.strip():
        raise MalformedResponse("empty candidate text")
    return text


def parse_retry_delay(response: httpx.Response) -> Optional[float]:
    """
    Seconds the provider asked us to wait, from a 429 response.

    Gemini puts it in ``error.details[]`` under the RetryInfo detail as a
    duration string (``"10s"``, ``"1.5s"``); generic gateways use Retry-After.
    """
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        details = (body.get("error") or {}).get("details") or []
        for detail in details:
            if not isinstance(detail, dict) or "RetryInfo" not in str(detail.get("@type", "")):
                continue
            raw = str(detail.get("retryDelay", "")).strip().rstrip("s")
            try:
                return float(raw)
            except ValueError:
                break
    header = response.headers.get("Retry-After")
    if header:
        try:
            return float(header)
        except ValueError:
            return None
    return None


def _transient_outcome(exc: Exception) -> str:
    if isinstance(exc, ReasoningTimeout):
        return "timeout"
    if isinstance(exc, httpx.HTTPStatusError):
        return "server_error"
    return "transport"


class ReasoningClient:
    """
    Process-wide gateway to the reasoning service.

    The limiter, cache and semaphore are shared by every concurrent caller;
    construct one client per process and pass it around.
    """

    def __init__(
        self,
        settings: Optional[ReasoningSettings] = None,
        *,
        limiter: Optional[WindowRateLimiter] = None,
        cache: Optional[ResponseCache] = None,
        clock: Optional[Clock] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._settings = settings or get_reasoning_settings()
        self._clock = clock or SYSTEM_CLOCK
        self._limiter = limiter or WindowRateLimiter(
            max_requests=self._settings.max_requests_per_window,
            window_s=self._settings.window_s,
            clock=self._clock,
        )
        self._cache = cache or ResponseCache(
            ttl_s=self._settings.cache_ttl_s,
            max_size=self._settings.cache_max_size,
            clock=self._clock,
        )
        self._semaphore = asyncio.Semaphore(self._settings.max_concurrent)
        self._http = http_client
        self._owns_http = http_client is None

    @property
    def is_configured(self) -> bool:
        return self._settings.is_configured

    @property
    def limiter(self) -> WindowRateLimiter:
        return self._limiter

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    @property
    def endpoint(self) -> str:
        return f"{self._settings.base_url.rstrip('/')}/{self._settings.model}:generateContent"

    async def start(self) -> None:
        if self._http is None:
            self._http = httpx.AsyncClient(
                timeout=httpx.Timeout(self._settings.request_timeout_s, connect=5.0),
                limits=httpx.Limits(max_connections=self._settings.max_concurrent * 2),
            )
            self._owns_http = True

    async def close(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    def status(self) -> dict[str, Any]:
        return {
            "configured": self.is_configured,
            "model": self._settings.model,
            "requests_this_window": self._limiter.requests_in_window(),
            "max_requests_per_window": self._limiter.max_requests,
            "window_s": self._settings.window_s,
            "cooldown_remaining_s": round(self._limiter.cooldown_remaining(), 1),
            "cache_size": len(self._cache),
        }

    async def generate(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        *,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
    ) -> Optional[str]:
        """Return generated text for ``prompt``, or None on any failure."""
        if not self.is_configured:
            logger.debug("reasoning_not_configured")
            return None

        key = fingerprint(prompt, self._settings.cache_key_chars)
        body = build_request_body(
            prompt,
            system_instruction=system_instruction,
            temperature=self._settings.temperature if temperature is None else temperature,
            max_output_tokens=max_output_tokens or self._settings.max_output_tokens,
            top_p=self._settings.top_p,
        )
        attempts = self._settings.max_retries + 1

        for attempt in range(1, attempts + 1):
            try:
                async with self._semaphore:
                    await self._limiter.wait_for_slot()
                    cached = self._cache.get(key)
                    if cached is not None:
                        REASONING_CACHE.labels(result="hit").inc()
                        logger.debug("reasoning_cache_hit", key=key[:12])
                        return cached
                    if attempt == 1:
                        REASONING_CACHE.labels(result="miss").inc()
                    self._limiter.consume()
                    text = await self._dispatch(body)
            except QuotaExceeded as exc:
                delay = exc.retry_after_s
                if delay is None:
                    delay = self._settings.default_retry_delay_s
                self._limiter.enter_cooldown(delay + self._settings.cooldown_margin_s)
                REASONING_REQUESTS.labels(outcome="quota").inc()
                logger.warning(
                    "reasoning_quota_exceeded",
                    attempt=attempt,
                    max_attempts=attempts,
                    retry_delay_s=delay,
                )
                continue
            except (ReasoningTimeout, httpx.TransportError, httpx.HTTPStatusError) as exc:
                REASONING_REQUESTS.labels(outcome=_transient_outcome(exc)).inc()
                logger.warning(
                    "reasoning_transient_error",
                    attempt=attempt,
                    max_attempts=attempts,
                    error=str(exc) or type(exc).__name__,
                )
                if attempt < attempts:
                    await self._clock.sleep(self._settings.error_retry_delay_s)
                continue
            except MalformedResponse as exc:
                REASONING_REQUESTS.labels(outcome="malformed").inc()
                logger.warning("reasoning_malformed_response", error=str(exc))
                return None

            if text is None:
                return None
            REASONING_REQUESTS.labels(outcome="success").inc()
            self._cache.set(key, text)
            return text

        logger.error("reasoning_retries_exhausted", attempts=attempts)
        return None

    async def generate_structured(
        self,
        prompt: str,
        schema_hint: Union[str, dict[str, Any]],
        *,
        system_instruction: Optional[str] = None,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
    ) -> Optional[dict[str, Any]]:
        """
        Ask for a JSON object shaped like ``schema_hint`` and parse it.

        The hint and JSON-only instruction are appended after the prompt, so
        the cache fingerprint is taken from the caller's own text.
        """
        hint = schema_hint if isinstance(schema_hint, str) else json.dumps(schema_hint, indent=2)
        full_prompt = (
            f"{prompt}\n\nReturn a JSON object with exactly this shape:\n{hint}\n\n{JSON_ONLY_INSTRUCTION}"
        )
        text = await self.generate(
            full_prompt,
            system_instruction,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
        )
        if text is None:
            return None
        parsed = extract_json(text)
        if parsed is None:
            # Keep unparseable output out of the cache so the next cycle asks again
            self._cache.discard(fingerprint(full_prompt, self._settings.cache_key_chars))
        return parsed

    async def _dispatch(self, body: dict[str, Any]) -> Optional[str]:
        """
        Issue one request.

        Returns the candidate text, or None for a non-retryable HTTP error.

        Raises:
            QuotaExceeded: on 429.
            ReasoningTimeout: on deadline expiry.
            httpx.HTTPStatusError: on a 5xx answer.
            MalformedResponse: 2xx without usable text.
            httpx.TransportError: connection-level failures.
        """
        if self._http is None:
            await self.start()
        assert self._http is not None

        start = time.perf_counter()
        try:
            resp = await asyncio.wait_for(
                self._http.post(
                    self.endpoint,
                    json=body,
                    headers={"x-goog-api-key": self._settings.api_key},
                ),
                timeout=self._settings.request_timeout_s,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise ReasoningTimeout(f"no response within {self._settings.request_timeout_s}s") from exc
        finally:
            REASONING_LATENCY.observe(time.perf_counter() - start)

        if resp.status_code == 429:
            raise QuotaExceeded(parse_retry_delay(resp))
        if resp.status_code >= 500:
            resp.raise_for_status()
        if resp.status_code >= 400:
            REASONING_REQUESTS.labels(outcome="http_error").inc()
            logger.error(
                "reasoning_http_error",
                status=resp.status_code,
                body=resp.text[:200],
            )
            return None

        try:
            payload = resp.json()
        except ValueError as exc:
            raise MalformedResponse("response body is not JSON") from exc
        return candidate_text(payload)
