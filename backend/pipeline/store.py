"""
In-memory intel store.

Holds the latest completed snapshot per batch key. A cycle publishes by
swapping in a whole new immutable snapshot, so readers see either the old
batch or the new one and never a mix.
"""
from __future__ import annotations

from typing import Optional

from shared.models.domain import EventIntel, StoreSnapshot
from shared.utils.logging import get_logger
from shared.utils.metrics import EVENTS_TRACKED

logger = get_logger(__name__)


class IntelStore:
    def __init__(self) -> None:
        self._snapshots: dict[str, StoreSnapshot] = {}

    def publish(self, batch_key: str, cycle_id: str, events: dict[str, EventIntel]) -> StoreSnapshot:
        snapshot = StoreSnapshot(batch_key=batch_key, cycle_id=cycle_id, events=dict(events))
        self._snapshots[batch_key] = snapshot
        EVENTS_TRACKED.labels(batch=batch_key).set(len(events))
        logger.info("store_published", batch=batch_key, cycle_id=cycle_id, events=len(events))
        return snapshot

    def snapshot(self, batch_key: str) -> Optional[StoreSnapshot]:
        return self._snapshots.get(batch_key)

    def get(self, batch_key: str, event_id: str) -> Optional[EventIntel]:
        snapshot = self._snapshots.get(batch_key)
        if snapshot is None:
            return None
        return snapshot.events.get(event_id)

    def batch_keys(self) -> list[str]:
        return sorted(self._snapshots)
