"""
Intel REST endpoints.

GET  /v1/intel              Latest batch for a sport (refreshed when stale)
GET  /v1/intel/{event_id}   One event from the latest batch
POST /v1/intel/refresh      Run (or join) a cycle and return its result
GET  /v1/pipeline/status    Cycle phase and snapshot freshness per sport
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from shared.models.domain import CycleResult, EventIntel
from shared.models.enums import Sport

from api.dependencies import get_orchestrator
from pipeline.orchestrator import IntelOrchestrator

router = APIRouter(prefix="/v1", tags=["intel"])


def _batch_key(sport: Optional[Sport]) -> Optional[str]:
    return sport.value if sport is not None else None


def _require_data(result: CycleResult) -> CycleResult:
    if result.data is None:
        raise HTTPException(status_code=503, detail=result.error or "No intel available yet")
    return result


@router.get("/intel", response_model=CycleResult)
async def get_intel(
    sport: Optional[Sport] = Query(default=None, description="Batch to read; defaults to SL_DEFAULT_SPORT"),
    orchestrator: IntelOrchestrator = Depends(get_orchestrator),
) -> CycleResult:
    return _require_data(await orchestrator.get_or_run(_batch_key(sport)))


@router.get("/intel/{event_id}", response_model=EventIntel)
async def get_event_intel(
    event_id: str,
    sport: Optional[Sport] = Query(default=None),
    orchestrator: IntelOrchestrator = Depends(get_orchestrator),
) -> EventIntel:
    result = _require_data(await orchestrator.get_or_run(_batch_key(sport)))
    intel = result.data.events.get(event_id) if result.data else None
    if intel is None:
        raise HTTPException(status_code=404, detail=f"Event {event_id} not in the current batch")
    return intel


@router.post("/intel/refresh", response_model=CycleResult)
async def refresh_intel(
    sport: Optional[Sport] = Query(default=None),
    orchestrator: IntelOrchestrator = Depends(get_orchestrator),
) -> CycleResult:
    return await orchestrator.run_cycle(_batch_key(sport))


@router.get("/pipeline/status")
async def pipeline_status(
    orchestrator: IntelOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    batches: dict[str, Any] = {}
    for sport in Sport:
        snapshot = orchestrator.store.snapshot(sport.value)
        batches[sport.value] = {
            "phase": orchestrator.phase(sport.value).value,
            "in_flight": orchestrator.in_flight(sport.value),
            "events": len(snapshot.events) if snapshot else 0,
            "cycle_id": snapshot.cycle_id if snapshot else None,
            "age_s": round(snapshot.age_s(), 1) if snapshot else None,
        }
    return {"batches": batches}
