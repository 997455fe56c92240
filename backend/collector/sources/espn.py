"""
ESPN site API sources: scoreboard event feed, team statistics, team
schedules, game summaries (officials and season series) and injuries.
Uses structured JSON endpoints; no HTML scraping.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

import httpx

from collector.sources.base import DataSource
from shared.errors import EventFeedUnavailable
from shared.models.domain import Event, TeamRef
from shared.models.enums import EventStatus, SourceName, Sport
from shared.utils.http_client import SourceHTTPClient
from shared.utils.logging import get_logger

logger = get_logger(__name__)

ESPN_STATE_TO_STATUS: dict[str, EventStatus] = {
    "pre": EventStatus.SCHEDULED,
    "in": EventStatus.IN_PROGRESS,
    "post": EventStatus.FINAL,
}


def _parse_espn_date(value: str) -> Optional[datetime]:
    raw = (value or "").strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        return None


def _team_ref(competitor: dict[str, Any]) -> TeamRef:
    team = competitor.get("team") or {}
    records = competitor.get("records") or []
    record = records[0].get("summary", "") if records and isinstance(records[0], dict) else ""
    return TeamRef(
        id=str(team.get("id", "")),
        name=(team.get("displayName") or team.get("name") or "").strip(),
        abbreviation=team.get("abbreviation", "") or "",
        short_name=team.get("shortDisplayName", "") or team.get("name", "") or "",
        record=record,
    )


def parse_scoreboard_event(raw: dict[str, Any], sport: str) -> Optional[Event]:
    """Normalize one scoreboard entry. Returns None for completed or malformed events."""
    competitions = raw.get("competitions") or [{}]
    comp = competitions[0]
    status_type = (comp.get("status") or raw.get("status") or {}).get("type") or {}
    if status_type.get("completed"):
        return None

    competitors = comp.get("competitors") or []
    home = next((c for c in competitors if c.get("homeAway") == "home"), None)
    away = next((c for c in competitors if c.get("homeAway") == "away"), None)
    date = _parse_espn_date(raw.get("date", ""))
    if home is None or away is None or date is None or not raw.get("id"):
        return None

    home_ref, away_ref = _team_ref(home), _team_ref(away)
    return Event(
        id=str(raw["id"]),
        sport=sport,
        name=raw.get("name") or f"{away_ref.name} at {home_ref.name}",
        date=date,
        home=home_ref,
        away=away_ref,
        venue=(comp.get("venue") or {}).get("fullName"),
        status=ESPN_STATE_TO_STATUS.get(status_type.get("state", ""), EventStatus.UNKNOWN),
    )


def flatten_team_stats(payload: dict[str, Any]) -> dict[str, float]:
    """Collapse ESPN's category/stat nesting into ``{stat_name: value}``."""
    results = payload.get("results") or {}
    container = (
        results.get("stats")
        or payload.get("splits")
        or (payload.get("statistics") or {}).get("splits")
        or {}
    )
    flat: dict[str, float] = {}
    for category in container.get("categories") or []:
        for item in category.get("stats") or []:
            name, value = item.get("name"), item.get("value")
            if not name or value is None:
                continue
            try:
                flat[name] = float(value)
            except (TypeError, ValueError):
                continue
    return flat


def completed_game_dates(payload: dict[str, Any], before: datetime) -> list[str]:
    """ISO dates of the team's completed games that started before ``before``."""
    dates: list[str] = []
    for raw in payload.get("events") or []:
        comp = (raw.get("competitions") or [{}])[0]
        status_type = (comp.get("status") or raw.get("status") or {}).get("type") or {}
        if not status_type.get("completed"):
            continue
        played = _parse_espn_date(raw.get("date", ""))
        if played is not None and played < before:
            dates.append(played.isoformat())
    return sorted(dates)


def parse_officials(payload: dict[str, Any]) -> list[str]:
    officials = (payload.get("gameInfo") or {}).get("officials") or []
    names = [(o.get("displayName") or o.get("fullName") or "").strip() for o in officials]
    return [n for n in names if n]


def _winner_team_id(competitor: dict[str, Any]) -> str:
    return str((competitor.get("team") or {}).get("id") or competitor.get("id") or "")


def parse_season_series(payload: dict[str, Any], event: Event) -> dict[str, int]:
    home_wins = away_wins = 0
    for series in payload.get("seasonseries") or []:
        for game in series.get("events") or []:
            status_type = game.get("statusType") or (game.get("status") or {}).get("type") or {}
            if not status_type.get("completed"):
                continue
            winner = next((c for c in game.get("competitors") or [] if c.get("winner")), None)
            if winner is None:
                continue
            winner_id = _winner_team_id(winner)
            if winner_id == event.home.id:
                home_wins += 1
            elif winner_id == event.away.id:
                away_wins += 1
        break  # first series is the regular season
    return {"home_wins": home_wins, "away_wins": away_wins, "total_games": home_wins + away_wins}


def parse_injuries(payload: dict[str, Any], event: Event) -> dict[str, list[dict[str, str]]]:
    by_side: dict[str, list[dict[str, str]]] = {"home": [], "away": []}
    sides = {
        event.home.id: "home",
        event.home.name.lower(): "home",
        event.away.id: "away",
        event.away.name.lower(): "away",
    }
    for team_block in payload.get("injuries") or []:
        key = str(team_block.get("id", ""))
        side = sides.get(key) or sides.get((team_block.get("displayName") or "").lower())
        if side is None:
            continue
        for item in team_block.get("injuries") or []:
            by_side[side].append({
                "name": ((item.get("athlete") or {}).get("displayName") or "").strip(),
                "status": item.get("status", ""),
                "injury": ((item.get("details") or {}).get("type") or item.get("shortComment") or "")[:120],
            })
    return by_side


def _sport_path(sport: str) -> str:
    return Sport(sport).espn_path


class ESPNScoreboardFeed:
    """Defines a batch: the upcoming and in-progress events for one sport."""

    def __init__(self, http_client: SourceHTTPClient) -> None:
        self._http = http_client

    async def start(self) -> None:
        await self._http.start()

    async def close(self) -> None:
        await self._http.close()

    async def fetch_events(self, sport: str) -> list[Event]:
        """
        Raises:
            EventFeedUnavailable: the scoreboard could not be fetched or decoded.
        """
        try:
            data = await self._http.get_json(f"/{_sport_path(sport)}/scoreboard")
        except (httpx.HTTPError, ValueError) as exc:
            raise EventFeedUnavailable("scoreboard", str(exc) or type(exc).__name__) from exc

        events = []
        for raw in data.get("events") or []:
            event = parse_scoreboard_event(raw, sport)
            if event is not None:
                events.append(event)
        logger.info("scoreboard_fetched", sport=sport, events=len(events), raw=len(data.get("events") or []))
        return events


class TeamStatsSource(DataSource):
    @property
    def name(self) -> SourceName:
        return SourceName.TEAM_STATS

    async def _team(self, sport: str, team_id: str) -> dict[str, float]:
        data = await self._http.get_json(f"/{_sport_path(sport)}/teams/{team_id}/statistics")
        return flatten_team_stats(data)

    async def _fetch(self, event: Event) -> Optional[dict[str, Any]]:
        home = await self._team(event.sport, event.home.id)
        away = await self._team(event.sport, event.away.id)
        if not home or not away:
            return None
        return {"home": home, "away": away}


class ScheduleSource(DataSource):
    @property
    def name(self) -> SourceName:
        return SourceName.SCHEDULE

    async def _fetch(self, event: Event) -> Optional[dict[str, Any]]:
        path = _sport_path(event.sport)
        home = await self._http.get_json(f"/{path}/teams/{event.home.id}/schedule")
        away = await self._http.get_json(f"/{path}/teams/{event.away.id}/schedule")
        return {
            "home": completed_game_dates(home, event.date),
            "away": completed_game_dates(away, event.date),
        }


class SummarySource(DataSource):
    @property
    def name(self) -> SourceName:
        return SourceName.SUMMARY

    async def _fetch(self, event: Event) -> Optional[dict[str, Any]]:
        data = await self._http.get_json(f"/{_sport_path(event.sport)}/summary", params={"event": event.id})
        return {
            "officials": parse_officials(data),
            "season_series": parse_season_series(data, event),
        }


class InjuriesSource(DataSource):
    @property
    def name(self) -> SourceName:
        return SourceName.INJURIES

    async def _fetch(self, event: Event) -> Optional[dict[str, Any]]:
        data = await self._http.get_json(f"/{_sport_path(event.sport)}/injuries")
        return parse_injuries(data, event)
