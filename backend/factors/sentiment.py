"""
Social and news sentiment factor.

Counts team mentions across recent Reddit posts and news headlines and
scores them with a small keyword lexicon. This is a coarse signal; the
reasoning analyst does the nuanced read of the same headlines.
"""
from __future__ import annotations

import re
from typing import Any, Iterable

from factors.base import Available, FactorInputs, FactorResult, Unavailable
from shared.models.domain import TeamRef
from shared.models.enums import Advantage, SourceName

SENTIMENT_EDGE = 2
SENTIMENT_ADJUSTMENT = 1.0

POSITIVE_TERMS = frozenset({
    "win", "wins", "streak", "return", "returns", "returning", "healthy", "cleared",
    "dominant", "dominates", "hot", "surging", "upgrade", "available", "rolling",
})
NEGATIVE_TERMS = frozenset({
    "injury", "injured", "out", "doubtful", "questionable", "suspended", "loss",
    "losses", "slump", "skid", "struggling", "fined", "trade", "benched", "sidelined",
})

_WORD_RE = re.compile(r"[a-z']+")


def hype_level(mentions: int) -> str:
    if mentions > 5:
        return "High"
    if mentions > 2:
        return "Medium"
    return "Low"


def _polarity(text: str) -> int:
    words = _WORD_RE.findall(text.lower())
    return sum(1 for w in words if w in POSITIVE_TERMS) - sum(1 for w in words if w in NEGATIVE_TERMS)


def _texts(inputs: FactorInputs) -> list[str]:
    texts: list[str] = []
    social = inputs.payload(SourceName.SOCIAL) or {}
    for post in social.get("posts") or []:
        texts.append(str(post.get("title", "")))
    news = inputs.payload(SourceName.NEWS) or {}
    for article in news.get("articles") or []:
        texts.append(f"{article.get('headline', '')} {article.get('description', '')}")
    return [t for t in texts if t.strip()]


def _score_team(team: TeamRef, texts: Iterable[str]) -> dict[str, Any]:
    mentions = 0
    score = 0
    for text in texts:
        if team.mentioned_in(text):
            mentions += 1
            score += _polarity(text)
    return {"mentions": mentions, "score": score, "hype_level": hype_level(mentions)}


def social_sentiment(inputs: FactorInputs) -> FactorResult:
    if inputs.payload(SourceName.SOCIAL) is None and inputs.payload(SourceName.NEWS) is None:
        return Unavailable(
            f"{inputs.reason_missing(SourceName.SOCIAL)}; {inputs.reason_missing(SourceName.NEWS)}"
        )
    texts = _texts(inputs)
    event = inputs.event
    home = _score_team(event.home, texts)
    away = _score_team(event.away, texts)
    if home["mentions"] == 0 and away["mentions"] == 0:
        return Unavailable("no team mentions in social or news feeds")

    data = {"home": home, "away": away, "texts_scanned": len(texts)}
    diff = home["score"] - away["score"]
    impact = 3 + min(3, abs(diff))
    if diff >= SENTIMENT_EDGE:
        return Available(
            Advantage.HOME, impact,
            f"Chatter favors {event.home.name} ({home['mentions']} mentions, score {home['score']:+d}).",
            SENTIMENT_ADJUSTMENT, data,
        )
    if diff <= -SENTIMENT_EDGE:
        return Available(
            Advantage.AWAY, impact,
            f"Chatter favors {event.away.name} ({away['mentions']} mentions, score {away['score']:+d}).",
            -SENTIMENT_ADJUSTMENT, data,
        )
    return Available(
        Advantage.NEUTRAL, 3,
        f"Mixed chatter: {event.home.name} hype {home['hype_level']}, {event.away.name} hype {away['hype_level']}.",
        0.0, data,
    )
