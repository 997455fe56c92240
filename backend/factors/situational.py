"""
Factors computed from schedule context: rest, officiating crew and
season standing.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Optional

from factors.base import Available, FactorInputs, FactorResult, Unavailable
from shared.models.enums import Advantage, SourceName

REST_EDGE_DAYS = 1
REST_ADJUSTMENT = 1.5
HOME_WHISTLE_ADJUSTMENT = 2.0

# Crews with a documented lean; everyone else is treated as neutral
HOME_FRIENDLY_OFFICIALS = frozenset({"Scott Foster", "Tony Brothers"})
UNDER_LEAN_OFFICIALS = frozenset({"Zach Zarba", "Courtney Kirkland"})


def parse_date(value: str) -> Optional[datetime]:
    raw = (value or "").strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        return None


def rest_days(game_dates: Iterable[str], before: date) -> Optional[int]:
    """Full days off between the last game before ``before`` and ``before``."""
    played = [d.date() for d in (parse_date(g) for g in game_dates) if d is not None]
    prior = [d for d in played if d < before]
    if not prior:
        return None
    return max(0, (before - max(prior)).days - 1)


def parse_record(record: str) -> Optional[tuple[int, int]]:
    parts = (record or "").split("-")
    if len(parts) < 2:
        return None
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        return None


def rest_schedule(inputs: FactorInputs) -> FactorResult:
    schedule = inputs.payload(SourceName.SCHEDULE)
    if schedule is None:
        return Unavailable(inputs.reason_missing(SourceName.SCHEDULE))
    event = inputs.event
    game_day = event.date.date()
    home_rest = rest_days(schedule.get("home") or [], game_day)
    away_rest = rest_days(schedule.get("away") or [], game_day)
    if home_rest is None or away_rest is None:
        return Unavailable("no prior completed game for one of the teams")

    data = {
        "home_rest_days": home_rest,
        "away_rest_days": away_rest,
        "home_back_to_back": home_rest == 0,
        "away_back_to_back": away_rest == 0,
    }
    notes = []
    if home_rest == 0:
        notes.append(f"{event.home.name} on a back-to-back.")
    if away_rest == 0:
        notes.append(f"{event.away.name} on a back-to-back.")
    suffix = (" " + " ".join(notes)) if notes else ""

    diff = home_rest - away_rest
    if diff > REST_EDGE_DAYS:
        return Available(
            Advantage.HOME, 7,
            f"{event.home.name} has {home_rest} days rest vs {away_rest}.{suffix}",
            REST_ADJUSTMENT, data,
        )
    if diff < -REST_EDGE_DAYS:
        return Available(
            Advantage.AWAY, 7,
            f"{event.away.name} has {away_rest} days rest vs {home_rest}.{suffix}",
            -REST_ADJUSTMENT, data,
        )
    return Available(Advantage.NEUTRAL, 5, f"Comparable rest ({home_rest} vs {away_rest} days).{suffix}", 0.0, data)


def referee_tendencies(inputs: FactorInputs) -> FactorResult:
    summary = inputs.payload(SourceName.SUMMARY)
    if summary is None:
        return Unavailable(inputs.reason_missing(SourceName.SUMMARY))
    officials = [o for o in summary.get("officials") or [] if o]
    if not officials:
        return Unavailable("officiating crew not yet assigned")

    crew = ", ".join(officials[:3])
    data = {"officials": officials}
    if any(o in HOME_FRIENDLY_OFFICIALS for o in officials):
        return Available(
            Advantage.HOME, 7, f"Crew: {crew}. Known home-team whistle.", HOME_WHISTLE_ADJUSTMENT, data
        )
    if any(o in UNDER_LEAN_OFFICIALS for o in officials):
        return Available(Advantage.UNDER, 4, f"Crew: {crew}. Defensive-minded crew, under lean.", 0.0, data)
    return Available(Advantage.NEUTRAL, 4, f"Crew: {crew}. No strong tendency.", 0.0, data)


def motivation(inputs: FactorInputs) -> FactorResult:
    event = inputs.event
    home, away = parse_record(event.home.record), parse_record(event.away.record)
    if home is None or away is None:
        return Unavailable("team records not available")
    return Available(
        Advantage.NEUTRAL,
        4,
        f"Standing context: {event.home.name} {event.home.record} vs {event.away.name} {event.away.record}.",
        0.0,
        {"home_record": event.home.record, "away_record": event.away.record},
    )
