"""
Per-event reasoning: runs the analysis, situational and sentiment prompts
through the shared ReasoningClient and validates each answer.

Prompts for one event run sequentially so a single event never claims more
than one window slot at a time; events run concurrently with each other and
contend on the client's limiter. Each prompt degrades to None on its own.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from reasoning.client import ReasoningClient
from reasoning.prompts import (
    ANALYST_SYSTEM_INSTRUCTION,
    analysis_prompt,
    sentiment_prompt,
    situation_prompt,
)
from shared.models.domain import (
    Event,
    Factor,
    ReasoningResult,
    SentimentAnalysis,
    SituationalAnalysis,
    SourceRecord,
)
from shared.models.enums import SourceName
from shared.utils.logging import get_logger

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class AnalystReport:
    analysis: Optional[ReasoningResult] = None
    situations: Optional[SituationalAnalysis] = None
    sentiment: Optional[SentimentAnalysis] = None


def _validate(model: Type[M], raw: Optional[dict[str, Any]], *, event_id: str, kind: str) -> Optional[M]:
    if raw is None:
        return None
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        logger.warning(
            "reasoning_schema_mismatch",
            event_id=event_id,
            kind=kind,
            errors=exc.error_count(),
        )
        return None


def _payload(records: dict[SourceName, SourceRecord], source: SourceName) -> Optional[dict[str, Any]]:
    record = records.get(source)
    if record is None or not record.present:
        return None
    return record.payload


class ReasoningAnalyst:
    def __init__(self, client: ReasoningClient) -> None:
        self._client = client

    async def analyze(
        self,
        event: Event,
        factors: list[Factor],
        records: dict[SourceName, SourceRecord],
    ) -> AnalystReport:
        if not self._client.is_configured:
            return AnalystReport()
        try:
            return await self._analyze(event, factors, records)
        except Exception:
            logger.exception("reasoning_analyst_error", event_id=event.id)
            return AnalystReport()

    async def _analyze(
        self,
        event: Event,
        factors: list[Factor],
        records: dict[SourceName, SourceRecord],
    ) -> AnalystReport:
        prompt, schema = analysis_prompt(event, factors, _payload(records, SourceName.INJURIES))
        analysis = _validate(
            ReasoningResult,
            await self._client.generate_structured(
                prompt,
                schema,
                system_instruction=ANALYST_SYSTEM_INSTRUCTION,
                temperature=0.4,
                max_output_tokens=1500,
            ),
            event_id=event.id,
            kind="analysis",
        )

        rest = next((f.data for f in factors if f.key == "rest_schedule" and f.available), None)
        prompt, schema = situation_prompt(event, rest)
        situations = _validate(
            SituationalAnalysis,
            await self._client.generate_structured(prompt, schema, system_instruction=ANALYST_SYSTEM_INSTRUCTION),
            event_id=event.id,
            kind="situations",
        )

        sentiment = None
        news = _payload(records, SourceName.NEWS) or {}
        headlines = [a.get("headline", "") for a in news.get("articles", []) if a.get("headline")]
        if headlines:
            prompt, schema = sentiment_prompt(event, headlines)
            sentiment = _validate(
                SentimentAnalysis,
                await self._client.generate_structured(prompt, schema, system_instruction=ANALYST_SYSTEM_INSTRUCTION),
                event_id=event.id,
                kind="sentiment",
            )

        logger.info(
            "reasoning_event_analyzed",
            event_id=event.id,
            analysis=analysis is not None,
            situations=situations is not None,
            sentiment=sentiment is not None,
            confidence=analysis.confidence_rating if analysis else None,
        )
        return AnalystReport(analysis=analysis, situations=situations, sentiment=sentiment)
