"""
Prompt builders for matchup analysis.

Each builder returns ``(prompt, schema_hint)``. The prompt opens with the
matchup line so the cache fingerprint, taken from the prompt's prefix,
differs per event and per prompt kind.
"""
from __future__ import annotations

from typing import Any, Iterable, Optional

from shared.models.domain import Event, Factor

ANALYST_SYSTEM_INSTRUCTION = (
    "You are an elite sports betting analyst. Be specific, cite numbers from the data "
    "you are given, and never invent statistics that are not in the prompt."
)

ANALYSIS_SCHEMA: dict[str, Any] = {
    "narrative": "2-3 paragraph sharp analysis explaining the edge",
    "keyInsights": ["most important factor in one sentence", "..."],
    "sharpAngle": "the specific angle a sharp bettor would take",
    "confidenceRating": "integer 0-100",
    "riskFactors": ["risk 1", "risk 2"],
    "recommendedBet": {
        "type": "spread|moneyline|total|pass",
        "side": "home|away|over|under",
        "reasoning": "why this bet",
    },
}

SITUATION_SCHEMA: dict[str, Any] = {
    "situations": [
        {
            "name": "situation name",
            "edge": "HOME|AWAY|OVER|UNDER|NEUTRAL",
            "strength": "integer 1-10",
            "explanation": "why this matters",
        }
    ],
    "hiddenEdge": "something the market might be missing",
    "marketBlindSpot": "what casual bettors overlook in this game",
}

SENTIMENT_SCHEMA: dict[str, Any] = {
    "overallSentiment": {"home": "positive|negative|neutral", "away": "positive|negative|neutral"},
    "bettingImpact": "how the news should move the line",
    "lineMovementPrediction": "expected direction of line movement",
    "publicPerception": "how the public views this game",
    "contrarian": "true|false",
    "contrarianReason": "why fading the public might work here",
}


def matchup_line(event: Event) -> str:
    away, home = event.away, event.home
    return (
        f"MATCHUP [{event.sport.upper()} {event.id}]: "
        f"{away.name} ({away.record or 'N/A'}) @ {home.name} ({home.record or 'N/A'}) "
        f"on {event.date:%Y-%m-%d}"
    )


def _factor_lines(factors: Iterable[Factor]) -> str:
    lines = [
        f"- {f.name}: {f.insight or 'N/A'} (impact {f.impact}/10, advantage {f.advantage.value})"
        for f in factors
    ]
    return "\n".join(lines) or "No factor data available"


def _injury_lines(event: Event, injuries: Optional[dict[str, Any]]) -> str:
    if not injuries:
        return "No injury data available"
    lines = []
    for side, team in (("home", event.home), ("away", event.away)):
        players = injuries.get(side) or []
        if not players:
            lines.append(f"{team.name}: Healthy")
            continue
        listed = ", ".join(f"{p.get('name', '?')} ({p.get('status', '?')})" for p in players[:8])
        lines.append(f"{team.name}: {listed}")
    return "\n".join(lines)


def analysis_prompt(
    event: Event,
    factors: list[Factor],
    injuries: Optional[dict[str, Any]] = None,
) -> tuple[str, dict[str, Any]]:
    prompt = (
        f"{matchup_line(event)}\n"
        "TASK: full matchup analysis with a clear betting recommendation.\n\n"
        f"ADVANCED FACTORS:\n{_factor_lines(factors)}\n\n"
        f"INJURIES:\n{_injury_lines(event, injuries)}\n\n"
        "Generate a betting analysis. confidenceRating is your confidence in the "
        "recommendation on a 0-100 scale; use 'pass' when there is no edge."
    )
    return prompt, ANALYSIS_SCHEMA


def situation_prompt(event: Event, rest: Optional[dict[str, Any]] = None) -> tuple[str, dict[str, Any]]:
    rest_line = "Schedule data unavailable"
    if rest:
        rest_line = (
            f"{event.home.name} rest days: {rest.get('home_rest_days', '?')}, "
            f"{event.away.name} rest days: {rest.get('away_rest_days', '?')}"
        )
    prompt = (
        f"{matchup_line(event)}\n"
        "TASK: situational spot analysis.\n\n"
        f"SCHEDULE: {rest_line}\n\n"
        "Consider: lookahead and letdown spots, revenge games, travel, rest "
        "advantages, divisional familiarity and motivation. Identify any "
        "situations that create a betting edge."
    )
    return prompt, SITUATION_SCHEMA


def sentiment_prompt(event: Event, headlines: list[str]) -> tuple[str, dict[str, Any]]:
    news = "\n".join(f"- {h}" for h in headlines[:10])
    prompt = (
        f"{matchup_line(event)}\n"
        "TASK: news sentiment and betting impact.\n\n"
        f"RECENT NEWS:\n{news}\n\n"
        "Assess how this news shifts perception of each team and whether the "
        "public is likely to overreact."
    )
    return prompt, SENTIMENT_SCHEMA
