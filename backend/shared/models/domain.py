"""
Pydantic v2 domain models shared across all Sharpline services.
These are the canonical wire/internal representations of one pipeline cycle.
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from shared.models.enums import (
    Advantage,
    DataStatus,
    EventStatus,
    SourceName,
    TotalsLean,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class FrozenModel(DomainModel):
    """Cycle-owned value: superseded by the next cycle, never mutated."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True, frozen=True)


# ── Events ──────────────────────────────────────────────────────────────
class TeamRef(FrozenModel):
    id: str
    name: str
    abbreviation: str = ""
    short_name: str = ""
    record: str = ""

    def mentioned_in(self, text: str) -> bool:
        """True if ``text`` names this team as a whole word or by its uppercase abbreviation."""
        return _mention_pattern(self.name, self.short_name, self.abbreviation).search(text) is not None


@lru_cache(maxsize=512)
def _mention_pattern(name: str, short_name: str, abbreviation: str) -> re.Pattern[str]:
    names = sorted({n.strip() for n in (name, short_name) if n.strip()}, key=len, reverse=True)
    parts = []
    if names:
        parts.append(r"(?i:\b(?:" + "|".join(re.escape(n) for n in names) + r")\b)")
    # Case-sensitive: "MIN" is Minnesota, "min" is minutes.
    if len(abbreviation) >= 3:
        parts.append(r"\b" + re.escape(abbreviation.upper()) + r"\b")
    return re.compile("|".join(parts) or r"(?!)")


class Event(FrozenModel):
    id: str
    sport: str
    name: str
    date: datetime
    home: TeamRef
    away: TeamRef
    venue: Optional[str] = None
    status: EventStatus = EventStatus.SCHEDULED


# ── Source records ──────────────────────────────────────────────────────
class SourceRecord(FrozenModel):
    """Outcome of one (event, source) fetch. Absence is a value, not an error."""

    source: SourceName
    present: bool
    payload: Optional[dict[str, Any]] = None
    reason: Optional[str] = None
    latency_ms: float = 0.0

    @model_validator(mode="after")
    def _payload_matches_presence(self) -> "SourceRecord":
        if self.present and self.payload is None:
            raise ValueError("present record requires a payload")
        if not self.present and self.payload is not None:
            raise ValueError("absent record cannot carry a payload")
        return self

    @classmethod
    def found(cls, source: SourceName, payload: dict[str, Any], latency_ms: float = 0.0) -> "SourceRecord":
        return cls(source=source, present=True, payload=payload, latency_ms=latency_ms)

    @classmethod
    def missing(cls, source: SourceName, reason: str, latency_ms: float = 0.0) -> "SourceRecord":
        return cls(source=source, present=False, reason=reason, latency_ms=latency_ms)


# ── Factors ─────────────────────────────────────────────────────────────
class Factor(FrozenModel):
    key: str
    name: str
    weight: float
    advantage: Advantage = Advantage.NEUTRAL
    impact: int = Field(default=0, ge=0, le=10)
    available: bool
    insight: str = ""
    prob_adjustment: float = 0.0
    data: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _unavailable_is_neutral(self) -> "Factor":
        if not self.available and (self.advantage != Advantage.NEUTRAL or self.prob_adjustment != 0):
            raise ValueError(f"unavailable factor '{self.key}' must be neutral with zero adjustment")
        return self


class AggregateVerdict(FrozenModel):
    overall_advantage: Advantage
    total_prob_adjustment: float
    home_advantages: int
    away_advantages: int
    over_advantages: int
    under_advantages: int
    neutral_factors: int
    totals_lean: TotalsLean
    active_factors: int
    catalog_size: int
    confidence: int = Field(ge=0, le=100)
    data_status: DataStatus
    required_sources: list[str] = Field(default_factory=list)
    key_insights: list[str] = Field(default_factory=list)


# ── Reasoning ───────────────────────────────────────────────────────────
class RecommendedBet(FrozenModel):
    type: str
    side: str
    reasoning: str = ""


class ReasoningResult(FrozenModel):
    """Structured matchup analysis returned by the reasoning service."""

    narrative: str = Field(min_length=1)
    confidence_rating: float = Field(alias="confidenceRating", ge=0, le=100)
    key_insights: list[str] = Field(default_factory=list, alias="keyInsights")
    sharp_angle: Optional[str] = Field(default=None, alias="sharpAngle")
    risk_factors: list[str] = Field(default_factory=list, alias="riskFactors")
    recommended_bet: Optional[RecommendedBet] = Field(default=None, alias="recommendedBet")


class Situation(FrozenModel):
    name: str
    edge: str = "NEUTRAL"
    strength: float = Field(default=0, ge=0, le=10)
    explanation: str = ""


class SituationalAnalysis(FrozenModel):
    situations: list[Situation] = Field(default_factory=list)
    hidden_edge: Optional[str] = Field(default=None, alias="hiddenEdge")
    market_blind_spot: Optional[str] = Field(default=None, alias="marketBlindSpot")


class TeamSentiment(FrozenModel):
    home: str = "neutral"
    away: str = "neutral"


class SentimentAnalysis(FrozenModel):
    overall_sentiment: TeamSentiment = Field(default_factory=TeamSentiment, alias="overallSentiment")
    betting_impact: Optional[str] = Field(default=None, alias="bettingImpact")
    line_movement_prediction: Optional[str] = Field(default=None, alias="lineMovementPrediction")
    public_perception: Optional[str] = Field(default=None, alias="publicPerception")
    contrarian: bool = False
    contrarian_reason: Optional[str] = Field(default=None, alias="contrarianReason")


# ── Merged output ───────────────────────────────────────────────────────
class EventIntel(FrozenModel):
    event: Event
    records: dict[SourceName, SourceRecord] = Field(default_factory=dict)
    factors: list[Factor] = Field(default_factory=list)
    unavailable_factors: list[Factor] = Field(default_factory=list)
    verdict: AggregateVerdict
    reasoning: Optional[ReasoningResult] = None
    situations: Optional[SituationalAnalysis] = None
    sentiment: Optional[SentimentAnalysis] = None
    key_insights: list[str] = Field(default_factory=list)
    cycle_id: str
    generated_at: datetime = Field(default_factory=utcnow)

    @property
    def reasoning_available(self) -> bool:
        return self.reasoning is not None


class StoreSnapshot(FrozenModel):
    batch_key: str
    cycle_id: str
    completed_at: datetime = Field(default_factory=utcnow)
    events: dict[str, EventIntel] = Field(default_factory=dict)

    def age_s(self, now: Optional[datetime] = None) -> float:
        return ((now or utcnow()) - self.completed_at).total_seconds()


class CycleResult(DomainModel):
    success: bool
    data: Optional[StoreSnapshot] = None
    error: Optional[str] = None
    stale: bool = False
