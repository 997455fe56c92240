"""
Factors computed from team statistics and season-series results.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

from factors.base import Available, FactorInputs, FactorResult, Unavailable
from shared.models.enums import Advantage, SourceName

PACE_OVER_THRESHOLD = 100.0
PACE_UNDER_THRESHOLD = 96.0
PROJECTED_TOTAL_PER_POSSESSION = 2.1
NET_RATING_EDGE = 3.0
MAX_EFFICIENCY_ADJUSTMENT = 8.0
H2H_EDGE_PCT = 0.6
H2H_ADJUSTMENT = 3.0

_PACE_KEYS = ("pace", "possessions", "avgPossessions")
_FGA_KEYS = ("avgFieldGoalsAttempted", "fieldGoalsAttempted")
_FTA_KEYS = ("avgFreeThrowsAttempted", "freeThrowsAttempted")
_OFFENSE_KEYS = ("offensiveRating", "avgPoints", "points")
_DEFENSE_KEYS = ("defensiveRating", "avgPointsAgainst", "pointsAllowed", "avgPointsAllowed")


def stat(stats: Mapping[str, Any], *keys: str) -> Optional[float]:
    """First numeric value found under any of ``keys``."""
    for key in keys:
        value = stats.get(key)
        if value is None:
            continue
        try:
            return float(value)
        except (TypeError, ValueError):
            continue
    return None


def _team_stats(inputs: FactorInputs) -> tuple[Optional[dict[str, Any]], Optional[dict[str, Any]]]:
    payload = inputs.payload(SourceName.TEAM_STATS) or {}
    return payload.get("home"), payload.get("away")


def _pace(stats: Mapping[str, Any]) -> Optional[float]:
    pace = stat(stats, *_PACE_KEYS)
    if pace:
        return pace
    fga, fta = stat(stats, *_FGA_KEYS), stat(stats, *_FTA_KEYS)
    if fga is None or fta is None:
        return None
    return fga + 0.44 * fta


def head_to_head(inputs: FactorInputs) -> FactorResult:
    summary = inputs.payload(SourceName.SUMMARY)
    if summary is None:
        return Unavailable(inputs.reason_missing(SourceName.SUMMARY))
    series = summary.get("season_series") or {}
    total = int(series.get("total_games") or 0)
    if total == 0:
        return Unavailable("no completed meetings this season")

    event = inputs.event
    home_wins = int(series.get("home_wins") or 0)
    away_wins = int(series.get("away_wins") or 0)
    home_pct = home_wins / total
    data = {"home_wins": home_wins, "away_wins": away_wins, "total_games": total, "home_win_pct": round(home_pct, 3)}

    if home_pct > H2H_EDGE_PCT:
        return Available(
            Advantage.HOME, 6,
            f"{event.home.abbreviation or event.home.name} leads the season series {home_wins}-{away_wins}.",
            H2H_ADJUSTMENT, data,
        )
    if home_pct < 1 - H2H_EDGE_PCT:
        return Available(
            Advantage.AWAY, 6,
            f"{event.away.abbreviation or event.away.name} leads the season series {away_wins}-{home_wins}.",
            -H2H_ADJUSTMENT, data,
        )
    return Available(Advantage.NEUTRAL, 3, f"Season series is even at {home_wins}-{away_wins}.", 0.0, data)


def pace_of_play(inputs: FactorInputs) -> FactorResult:
    home, away = _team_stats(inputs)
    if home is None or away is None:
        return Unavailable(inputs.reason_missing(SourceName.TEAM_STATS))
    home_pace, away_pace = _pace(home), _pace(away)
    if home_pace is None or away_pace is None:
        return Unavailable("pace not derivable from team stats")

    avg = (home_pace + away_pace) / 2
    data = {
        "home_pace": round(home_pace, 1),
        "away_pace": round(away_pace, 1),
        "projected_total": round(avg * PROJECTED_TOTAL_PER_POSSESSION),
    }
    if avg > PACE_OVER_THRESHOLD:
        return Available(Advantage.OVER, 5, f"Projected pace {avg:.1f}. Fast-paced matchup favors the over.", 0.0, data)
    if avg < PACE_UNDER_THRESHOLD:
        return Available(Advantage.UNDER, 5, f"Projected pace {avg:.1f}. Slow-paced grind favors the under.", 0.0, data)
    return Available(Advantage.NEUTRAL, 3, f"Projected pace {avg:.1f}. No tempo edge.", 0.0, data)


def advanced_efficiency(inputs: FactorInputs) -> FactorResult:
    home, away = _team_stats(inputs)
    if home is None or away is None:
        return Unavailable(inputs.reason_missing(SourceName.TEAM_STATS))
    h_off, h_def = stat(home, *_OFFENSE_KEYS), stat(home, *_DEFENSE_KEYS)
    a_off, a_def = stat(away, *_OFFENSE_KEYS), stat(away, *_DEFENSE_KEYS)
    if None in (h_off, h_def, a_off, a_def):
        return Unavailable("offensive/defensive ratings missing from team stats")

    net_diff = (h_off - h_def) - (a_off - a_def)
    data = {
        "net_rating_diff": round(net_diff, 1),
        "offense_diff": round(h_off - a_off, 1),
        "defense_diff": round(a_def - h_def, 1),
    }
    event = inputs.event
    if net_diff > NET_RATING_EDGE:
        return Available(
            Advantage.HOME,
            min(10, round(net_diff)),
            f"{event.home.abbreviation or event.home.name} has the better efficiency differential (+{net_diff:.1f}).",
            min(MAX_EFFICIENCY_ADJUSTMENT, net_diff * 0.5),
            data,
        )
    if net_diff < -NET_RATING_EDGE:
        return Available(
            Advantage.AWAY,
            min(10, round(abs(net_diff))),
            f"{event.away.abbreviation or event.away.name} has the efficiency edge (+{abs(net_diff):.1f}).",
            max(-MAX_EFFICIENCY_ADJUSTMENT, net_diff * 0.5),
            data,
        )
    return Available(Advantage.NEUTRAL, 2, "Teams are evenly matched in efficiency metrics.", 0.0, data)
