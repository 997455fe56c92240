"""
Intel orchestrator.

One cycle per batch key walks idle -> collecting -> reasoning -> aggregating
-> merged -> idle:

  collecting   fetch the event list, fan out every (event, source) fetch
  reasoning    score factors per event, then fan out reasoning calls across
               events (all contending on the shared reasoning limiter)
  aggregating  merge records, factors, verdict and reasoning per event
  merged       publish the batch to the store in one swap

Cycles are single-flight per batch key. A caller arriving while a cycle is
running either joins it or, with ``wait=False``, is served the last
completed snapshot.
"""
from __future__ import annotations

import asyncio
import time
import uuid
from typing import Optional

from collector.collector import SourceCollector
from collector.sources.espn import ESPNScoreboardFeed
from factors.engine import FactorEngine, FactorReport
from reasoning.analyst import AnalystReport, ReasoningAnalyst
from shared.config import Settings, get_settings
from shared.errors import CycleFailure
from shared.models.domain import CycleResult, Event, EventIntel, SourceRecord, StoreSnapshot
from shared.models.enums import CyclePhase, SourceName
from shared.utils.logging import get_logger
from shared.utils.metrics import CYCLE_DURATION, CYCLES, CYCLES_IN_FLIGHT

from pipeline.store import IntelStore

logger = get_logger(__name__)


def merge_event(
    event: Event,
    records: dict[SourceName, SourceRecord],
    report: FactorReport,
    analysis: AnalystReport,
    cycle_id: str,
) -> EventIntel:
    insights = list(report.verdict.key_insights)
    if analysis.analysis is not None:
        insights.extend(analysis.analysis.key_insights)
        if analysis.analysis.sharp_angle:
            insights.append(f"Sharp angle: {analysis.analysis.sharp_angle}")
    if analysis.situations is not None and analysis.situations.hidden_edge:
        insights.append(f"Hidden edge: {analysis.situations.hidden_edge}")

    return EventIntel(
        event=event,
        records=records,
        factors=report.active,
        unavailable_factors=report.unavailable,
        verdict=report.verdict,
        reasoning=analysis.analysis,
        situations=analysis.situations,
        sentiment=analysis.sentiment,
        key_insights=list(dict.fromkeys(i for i in insights if i)),
        cycle_id=cycle_id,
    )


class IntelOrchestrator:
    def __init__(
        self,
        feed: ESPNScoreboardFeed,
        collector: SourceCollector,
        engine: FactorEngine,
        store: IntelStore,
        analyst: Optional[ReasoningAnalyst] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._feed = feed
        self._collector = collector
        self._engine = engine
        self._store = store
        self._analyst = analyst
        self._settings = settings or get_settings()
        self._inflight: dict[str, asyncio.Task[CycleResult]] = {}
        self._phases: dict[str, CyclePhase] = {}

    @property
    def store(self) -> IntelStore:
        return self._store

    def phase(self, batch_key: str) -> CyclePhase:
        return self._phases.get(batch_key, CyclePhase.IDLE)

    def in_flight(self, batch_key: str) -> bool:
        return batch_key in self._inflight

    def _key(self, batch_key: Optional[str]) -> str:
        return (batch_key or self._settings.default_sport).lower()

    async def run_cycle(self, batch_key: Optional[str] = None, *, wait: bool = True) -> CycleResult:
        """
        Run (or join) the cycle for ``batch_key``.

        With ``wait=False`` and a cycle already running, returns the last
        completed snapshot immediately, marked stale. Without a previous
        snapshot there is nothing to serve, so the caller joins instead.
        """
        key = self._key(batch_key)
        task = self._inflight.get(key)
        if task is not None:
            previous = self._store.snapshot(key)
            if not wait and previous is not None:
                return CycleResult(success=True, data=previous, stale=True)
            logger.debug("cycle_joined", batch=key)
            return await asyncio.shield(task)

        task = asyncio.create_task(self._cycle(key), name=f"intel-cycle:{key}")
        self._inflight[key] = task

        def _release(done: asyncio.Task[CycleResult], k: str = key) -> None:
            if self._inflight.get(k) is done:
                del self._inflight[k]

        task.add_done_callback(_release)
        return await asyncio.shield(task)

    async def get_or_run(self, batch_key: Optional[str] = None) -> CycleResult:
        """Serve a fresh snapshot if there is one; otherwise refresh (or join a refresh)."""
        key = self._key(batch_key)
        snapshot = self._store.snapshot(key)
        if snapshot is not None and snapshot.age_s() < self._settings.snapshot_ttl_s:
            return CycleResult(success=True, data=snapshot)
        return await self.run_cycle(key, wait=False)

    async def _cycle(self, batch_key: str) -> CycleResult:
        cycle_id = uuid.uuid4().hex[:12]
        start = time.perf_counter()
        CYCLES_IN_FLIGHT.inc()
        logger.info("cycle_started", batch=batch_key, cycle_id=cycle_id)
        try:
            snapshot = await self._run_phases(batch_key, cycle_id)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            failure = CycleFailure(batch_key, exc)
            CYCLES.labels(batch=batch_key, outcome="failure").inc()
            logger.exception("cycle_failed", batch=batch_key, cycle_id=cycle_id, error=str(failure))
            return CycleResult(
                success=False,
                data=self._store.snapshot(batch_key),
                error=str(failure),
                stale=True,
            )
        finally:
            self._phases[batch_key] = CyclePhase.IDLE
            CYCLES_IN_FLIGHT.dec()
            CYCLE_DURATION.labels(batch=batch_key).observe(time.perf_counter() - start)

        CYCLES.labels(batch=batch_key, outcome="success").inc()
        logger.info(
            "cycle_completed",
            batch=batch_key,
            cycle_id=cycle_id,
            events=len(snapshot.events),
            duration_s=round(time.perf_counter() - start, 2),
        )
        return CycleResult(success=True, data=snapshot)

    async def _reason(
        self,
        event: Event,
        report: FactorReport,
        records: dict[SourceName, SourceRecord],
    ) -> AnalystReport:
        if self._analyst is None:
            return AnalystReport()
        return await self._analyst.analyze(event, report.active, records)

    async def _run_phases(self, batch_key: str, cycle_id: str) -> StoreSnapshot:
        self._phases[batch_key] = CyclePhase.COLLECTING
        events = await self._feed.fetch_events(batch_key)
        records = await self._collector.collect(events)

        self._phases[batch_key] = CyclePhase.REASONING
        reports = {event.id: self._engine.score(event, records[event.id]) for event in events}
        analyses = await asyncio.gather(
            *(self._reason(event, reports[event.id], records[event.id]) for event in events)
        )

        self._phases[batch_key] = CyclePhase.AGGREGATING
        merged = {
            event.id: merge_event(event, records[event.id], reports[event.id], analysis, cycle_id)
            for event, analysis in zip(events, analyses)
        }

        self._phases[batch_key] = CyclePhase.MERGED
        return self._store.publish(batch_key, cycle_id, merged)
