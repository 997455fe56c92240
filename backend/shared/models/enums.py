"""Domain enumerations for the Sharpline pipeline."""
from __future__ import annotations

from enum import Enum


class Sport(str, Enum):
    NBA = "nba"
    NFL = "nfl"
    MLB = "mlb"
    NHL = "nhl"

    @property
    def espn_path(self) -> str:
        return _ESPN_PATHS[self]


_ESPN_PATHS = {
    Sport.NBA: "basketball/nba",
    Sport.NFL: "football/nfl",
    Sport.MLB: "baseball/mlb",
    Sport.NHL: "hockey/nhl",
}


class SourceName(str, Enum):
    TEAM_STATS = "team_stats"
    SCHEDULE = "schedule"
    SUMMARY = "summary"
    INJURIES = "injuries"
    NEWS = "news"
    SOCIAL = "social"


class Advantage(str, Enum):
    HOME = "home"
    AWAY = "away"
    OVER = "over"
    UNDER = "under"
    NEUTRAL = "neutral"


class TotalsLean(str, Enum):
    OVER = "OVER"
    UNDER = "UNDER"
    NO_EDGE = "NO EDGE"


class DataStatus(str, Enum):
    NONE = "none"
    LIMITED = "limited"
    FULL = "full"


class CyclePhase(str, Enum):
    IDLE = "idle"
    COLLECTING = "collecting"
    REASONING = "reasoning"
    AGGREGATING = "aggregating"
    MERGED = "merged"


class EventStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    FINAL = "final"
    UNKNOWN = "unknown"
