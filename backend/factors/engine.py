"""
Factor evaluation and aggregation.

evaluate() runs every catalog entry independently against one event's
collected records. aggregate() folds the resulting factors into a verdict:
only data-backed factors vote, counts go through a deadband before the
verdict commits to a side, and confidence falls as factors drop out.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from factors.base import Available, FactorInputs, FactorResult, FactorSpec, Unavailable
from factors.catalog import CATALOG
from shared.models.domain import AggregateVerdict, Event, Factor, SourceRecord
from shared.models.enums import Advantage, DataStatus, SourceName, TotalsLean
from shared.utils.logging import get_logger
from shared.utils.metrics import ACTIVE_FACTORS, FACTOR_ERRORS

logger = get_logger(__name__)

SIDE_MARGIN = 2
TOTALS_MARGIN = 1
FULL_DATA_MIN_ACTIVE = 6
KEY_INSIGHT_MIN_IMPACT = 5


def overall_advantage(home: int, away: int, margin: int = SIDE_MARGIN) -> Advantage:
    if home > away + margin:
        return Advantage.HOME
    if away > home + margin:
        return Advantage.AWAY
    return Advantage.NEUTRAL


def totals_lean(over: int, under: int, margin: int = TOTALS_MARGIN) -> TotalsLean:
    if over > under + margin:
        return TotalsLean.OVER
    if under > over + margin:
        return TotalsLean.UNDER
    return TotalsLean.NO_EDGE


def data_status(active: int) -> DataStatus:
    if active == 0:
        return DataStatus.NONE
    if active < FULL_DATA_MIN_ACTIVE:
        return DataStatus.LIMITED
    return DataStatus.FULL


def coverage_confidence(active: int, catalog_size: int) -> int:
    """Share of the catalog backed by real data, 0-100."""
    if catalog_size <= 0:
        return 0
    return round(100 * min(active, catalog_size) / catalog_size)


def to_factor(spec: FactorSpec, result: FactorResult) -> Factor:
    if isinstance(result, Available):
        return Factor(
            key=spec.key,
            name=spec.name,
            weight=spec.weight,
            advantage=result.advantage,
            impact=result.impact,
            available=True,
            insight=result.insight,
            prob_adjustment=round(result.prob_adjustment, 2),
            data=result.data,
        )
    return Factor(
        key=spec.key,
        name=spec.name,
        weight=spec.weight,
        available=False,
        insight=f"Data unavailable: {result.reason}",
        data={"requires": list(spec.requires), "reason": result.reason},
    )


@dataclass(frozen=True)
class FactorReport:
    active: list[Factor]
    unavailable: list[Factor]
    verdict: AggregateVerdict

    @property
    def factors(self) -> list[Factor]:
        return [*self.active, *self.unavailable]


class FactorEngine:
    def __init__(self, catalog: Optional[Sequence[FactorSpec]] = None) -> None:
        self._catalog = tuple(catalog if catalog is not None else CATALOG)
        self._specs = {spec.key: spec for spec in self._catalog}

    @property
    def catalog_size(self) -> int:
        return len(self._catalog)

    def _run(self, spec: FactorSpec, inputs: FactorInputs) -> FactorResult:
        if spec.compute is None:
            return Unavailable(spec.missing_reason or "no data source configured")
        try:
            return spec.compute(inputs)
        except Exception as exc:
            FACTOR_ERRORS.labels(factor=spec.key).inc()
            logger.exception("factor_compute_error", factor=spec.key, event_id=inputs.event.id)
            return Unavailable(f"computation error: {type(exc).__name__}")

    def evaluate(self, event: Event, records: dict[SourceName, SourceRecord]) -> list[Factor]:
        """One Factor per catalog entry, in catalog order."""
        inputs = FactorInputs(event=event, records=records)
        return [to_factor(spec, self._run(spec, inputs)) for spec in self._catalog]

    def aggregate(self, factors: Sequence[Factor]) -> AggregateVerdict:
        active = [f for f in factors if f.available]
        unavailable = [f for f in factors if not f.available]

        counts = {adv: 0 for adv in Advantage}
        for f in active:
            counts[f.advantage] += 1

        required: list[str] = []
        for f in unavailable:
            spec = self._specs.get(f.key)
            for source in spec.requires if spec else ():
                if source not in required:
                    required.append(source)

        key_insights = [
            f"{f.name}: {f.insight}" for f in active if f.impact > KEY_INSIGHT_MIN_IMPACT
        ]

        ACTIVE_FACTORS.observe(len(active))
        return AggregateVerdict(
            overall_advantage=overall_advantage(counts[Advantage.HOME], counts[Advantage.AWAY]),
            total_prob_adjustment=round(sum(f.prob_adjustment for f in active), 1),
            home_advantages=counts[Advantage.HOME],
            away_advantages=counts[Advantage.AWAY],
            over_advantages=counts[Advantage.OVER],
            under_advantages=counts[Advantage.UNDER],
            neutral_factors=counts[Advantage.NEUTRAL],
            totals_lean=totals_lean(counts[Advantage.OVER], counts[Advantage.UNDER]),
            active_factors=len(active),
            catalog_size=self.catalog_size,
            confidence=coverage_confidence(len(active), self.catalog_size),
            data_status=data_status(len(active)),
            required_sources=required,
            key_insights=key_insights,
        )

    def score(self, event: Event, records: dict[SourceName, SourceRecord]) -> FactorReport:
        factors = self.evaluate(event, records)
        verdict = self.aggregate(factors)
        logger.debug(
            "factors_scored",
            event_id=event.id,
            active=verdict.active_factors,
            advantage=verdict.overall_advantage.value,
            prob_adjustment=verdict.total_prob_adjustment,
        )
        return FactorReport(
            active=[f for f in factors if f.available],
            unavailable=[f for f in factors if not f.available],
            verdict=verdict,
        )
