"""
Factor result variants and the per-factor input bundle.

A factor function returns exactly one of Available or Unavailable. The engine
turns both into Factor models; Unavailable becomes the neutral, zero-weight
placeholder and nothing else is allowed to build one.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

from shared.models.domain import Event, SourceRecord
from shared.models.enums import Advantage, SourceName


@dataclass(frozen=True)
class Available:
    advantage: Advantage
    impact: int
    insight: str
    prob_adjustment: float = 0.0
    data: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # impact is a 0-10 scale everywhere downstream
        object.__setattr__(self, "impact", max(0, min(10, int(self.impact))))


@dataclass(frozen=True)
class Unavailable:
    reason: str


FactorResult = Union[Available, Unavailable]


@dataclass(frozen=True)
class FactorInputs:
    """What a factor may look at: the event and this cycle's present records."""

    event: Event
    records: dict[SourceName, SourceRecord]

    def payload(self, source: SourceName) -> Optional[dict[str, Any]]:
        record = self.records.get(source)
        if record is None or not record.present:
            return None
        return record.payload

    def reason_missing(self, source: SourceName) -> str:
        record = self.records.get(source)
        if record is None:
            return f"{source.value} not collected"
        return f"{source.value} unavailable: {record.reason or 'no data'}"


FactorFn = Callable[[FactorInputs], FactorResult]


@dataclass(frozen=True)
class FactorSpec:
    """One catalog entry. ``compute`` is None for factors with no wired feed."""

    key: str
    name: str
    weight: float
    requires: tuple[str, ...]
    compute: Optional[FactorFn] = None
    missing_reason: str = ""
