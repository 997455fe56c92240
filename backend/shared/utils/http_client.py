"""
Async HTTP client wrapper for data source requests.
Includes retry logic, timeout management, and metrics collection.
"""
from __future__ import annotations

import asyncio
import time
from typing import Any, Optional

import httpx

from shared.config import get_settings
from shared.utils.logging import get_logger
from shared.utils.metrics import SOURCE_HTTP_REQUESTS

logger = get_logger(__name__)

MAX_RETRY_AFTER_S = 10.0


class SourceHTTPClient:
    """
    Async HTTP client shared by the data sources of one upstream host.
    Retries 429/5xx/timeouts a bounded number of times and records metrics
    per request.
    """

    def __init__(
        self,
        source_name: str,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout_s: float | None = None,
        max_retries: int = 2,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        settings = get_settings()
        self._source = source_name
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_s or settings.source_request_timeout_s
        self._max_retries = max(1, max_retries)
        self._default_headers = headers or {}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def started(self) -> bool:
        return self._client is not None

    async def start(self) -> None:
        """Initialize the underlying httpx client."""
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._default_headers,
            timeout=httpx.Timeout(self._timeout, connect=5.0),
            follow_redirects=True,
            limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        extra_headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """
        Perform a GET request with retry, metrics, and structured logging.

        Raises:
            httpx.HTTPStatusError: On non-retryable HTTP errors or exhausted retries.
            httpx.TransportError: If all retries fail at the transport level.
        """
        if not self._client:
            await self.start()
        assert self._client is not None

        last_exc: Optional[Exception] = None
        for attempt in range(1, self._max_retries + 1):
            start_time = time.perf_counter()
            status = "unknown"
            try:
                resp = await self._client.get(path, params=params, headers=extra_headers)
                status = str(resp.status_code)

                if resp.status_code == 429 and attempt < self._max_retries:
                    logger.warning("source_rate_limited", source=self._source, path=path, attempt=attempt)
                    try:
                        retry_after = float(resp.headers.get("Retry-After", "2"))
                    except ValueError:
                        retry_after = 2.0
                    await asyncio.sleep(min(retry_after, MAX_RETRY_AFTER_S))
                    continue

                if resp.status_code >= 500 and attempt < self._max_retries:
                    logger.warning(
                        "source_server_error",
                        source=self._source,
                        path=path,
                        status=resp.status_code,
                        attempt=attempt,
                    )
                    await asyncio.sleep(1.0 * attempt)
                    continue

                resp.raise_for_status()
                logger.debug(
                    "source_request_success",
                    source=self._source,
                    path=path,
                    status=resp.status_code,
                    latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
                )
                return resp

            except httpx.TimeoutException as exc:
                status = "timeout"
                last_exc = exc
                logger.warning("source_timeout", source=self._source, path=path, attempt=attempt)
                if attempt < self._max_retries:
                    await asyncio.sleep(1.0 * attempt)

            except httpx.TransportError as exc:
                status = "error"
                last_exc = exc
                logger.warning("source_transport_error", source=self._source, path=path, error=str(exc))
                if attempt < self._max_retries:
                    await asyncio.sleep(1.0 * attempt)

            finally:
                SOURCE_HTTP_REQUESTS.labels(source=self._source, status=status).inc()

        if last_exc:
            raise last_exc
        raise RuntimeError(f"{self._source} request failed after {self._max_retries} attempts")

    async def get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        resp = await self.get(path, params=params)
        return resp.json()
