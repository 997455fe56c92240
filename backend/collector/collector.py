"""
Concurrent, partial-failure-tolerant source collection.

fetch() turns one source call into a SourceRecord and never raises; source
errors and timeouts count against that source's circuit breaker. collect()
fans out every (event, source) pair at once and waits for all of them;
an absent record for one pair never holds up or cancels another.
"""
from __future__ import annotations

import asyncio
import time
from contextlib import AsyncExitStack
from typing import Any, Optional, Sequence

from collector.sources.base import DataSource
from shared.config import Settings, get_settings
from shared.models.domain import Event, SourceRecord
from shared.models.enums import SourceName
from shared.utils.circuit_breaker import CircuitBreaker, CircuitBreakerOpen
from shared.utils.clock import Clock
from shared.utils.logging import get_logger
from shared.utils.metrics import SOURCE_FETCHES, SOURCE_LATENCY

logger = get_logger(__name__)

EventRecords = dict[str, dict[SourceName, SourceRecord]]


class SourceCollector:
    """
    Args:
        sources: Sources fetched for every event.
        timeout_s: Hard per-call deadline; defaults to settings.
        max_concurrency: In-flight fetch bound; None means unbounded.
    """

    def __init__(
        self,
        sources: Sequence[DataSource],
        settings: Optional[Settings] = None,
        *,
        timeout_s: Optional[float] = None,
        max_concurrency: Optional[int] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._sources = list(sources)
        self._timeout_s = timeout_s or self._settings.source_timeout_s
        limit = max_concurrency if max_concurrency is not None else self._settings.source_concurrency_limit
        self._semaphore: Optional[asyncio.Semaphore] = asyncio.Semaphore(limit) if limit else None
        self._breakers = {
            s.name: CircuitBreaker(
                name=f"source:{s.name.value}",
                failure_threshold=self._settings.source_breaker_threshold,
                recovery_timeout_s=self._settings.source_breaker_recovery_s,
                clock=clock,
            )
            for s in self._sources
        }

    @property
    def sources(self) -> list[DataSource]:
        return list(self._sources)

    def breaker_stats(self) -> list[dict[str, Any]]:
        return [b.stats for b in self._breakers.values()]

    async def start(self) -> None:
        for source in self._sources:
            await source.start()

    async def close(self) -> None:
        async with AsyncExitStack() as stack:
            for source in self._sources:
                stack.push_async_callback(source.close)

    async def _call(self, source: DataSource, event: Event) -> Optional[dict[str, Any]]:
        return await asyncio.wait_for(source.fetch_or_raise(event), timeout=self._timeout_s)

    async def fetch(self, source: DataSource, event: Event) -> SourceRecord:
        """One (event, source) pair as a SourceRecord. Never raises."""
        name = source.name
        start = time.perf_counter()
        outcome = "present"
        try:
            breaker = self._breakers.get(name)
            if breaker is None:
                payload = await self._call(source, event)
            else:
                payload = await breaker.call(self._call, source, event)
            elapsed_ms = (time.perf_counter() - start) * 1000
            if payload is None:
                outcome = "absent"
                return SourceRecord.missing(name, "no data", latency_ms=elapsed_ms)
            return SourceRecord.found(name, payload, latency_ms=elapsed_ms)
        except asyncio.TimeoutError:
            outcome = "timeout"
            reason = f"timeout after {self._timeout_s}s"
        except CircuitBreakerOpen as exc:
            outcome = "circuit_open"
            reason = f"circuit open, retry in {exc.retry_after:.0f}s"
        except Exception as exc:
            outcome = "error"
            reason = f"{type(exc).__name__}: {exc}"
        finally:
            SOURCE_FETCHES.labels(source=name.value, outcome=outcome).inc()
            SOURCE_LATENCY.labels(source=name.value).observe(time.perf_counter() - start)

        logger.info("source_absent", source=name.value, event_id=event.id, reason=reason)
        return SourceRecord.missing(name, reason, latency_ms=(time.perf_counter() - start) * 1000)

    async def _bounded_fetch(self, source: DataSource, event: Event) -> SourceRecord:
        if self._semaphore is None:
            return await self.fetch(source, event)
        async with self._semaphore:
            return await self.fetch(source, event)

    async def collect(
        self,
        events: Sequence[Event],
        sources: Optional[Sequence[DataSource]] = None,
    ) -> EventRecords:
        """Fetch every source for every event; returns ``{event_id: {source: record}}``."""
        chosen = list(sources) if sources is not None else self._sources
        pairs = [(event, source) for event in events for source in chosen]
        records = await asyncio.gather(*(self._bounded_fetch(s, e) for e, s in pairs))

        by_event: EventRecords = {event.id: {} for event in events}
        for (event, _), record in zip(pairs, records):
            by_event[event.id][record.source] = record

        present = sum(1 for r in records if r.present)
        logger.info(
            "collection_complete",
            events=len(events),
            fetches=len(records),
            present=present,
            absent=len(records) - present,
        )
        return by_event
