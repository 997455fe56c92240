"""
The fixed factor catalog. Order is presentation order; weights are per type.
"""
from __future__ import annotations

from factors.base import FactorSpec
from factors.sentiment import social_sentiment
from factors.situational import motivation, referee_tendencies, rest_schedule
from factors.statistical import advanced_efficiency, head_to_head, pace_of_play
from shared.models.enums import SourceName

CATALOG: tuple[FactorSpec, ...] = (
    FactorSpec("head_to_head", "Head-to-Head History", 0.08, (SourceName.SUMMARY.value,), head_to_head),
    FactorSpec("pace", "Pace of Play", 0.06, (SourceName.TEAM_STATS.value,), pace_of_play),
    FactorSpec(
        "against_the_spread", "Against the Spread (ATS)", 0.10, ("ats_records",),
        missing_reason="no ATS record feed configured",
    ),
    FactorSpec(
        "line_movement", "Line Movement", 0.12, ("odds_history",),
        missing_reason="no odds history feed configured",
    ),
    FactorSpec(
        "public_betting", "Public Betting", 0.08, ("betting_splits",),
        missing_reason="no betting splits feed configured",
    ),
    FactorSpec("rest_schedule", "Rest & Schedule", 0.10, (SourceName.SCHEDULE.value,), rest_schedule),
    FactorSpec("referees", "Referee Tendencies", 0.05, (SourceName.SUMMARY.value,), referee_tendencies),
    FactorSpec(
        "clutch", "Clutch Performance", 0.07, ("play_by_play",),
        missing_reason="no play-by-play feed configured",
    ),
    FactorSpec(
        "quarter_splits", "Quarter/Half Splits", 0.05, ("period_scoring",),
        missing_reason="no period scoring feed configured",
    ),
    FactorSpec("motivation", "Motivation", 0.08, ("event_records",), motivation),
    FactorSpec("advanced_efficiency", "Advanced Analytics", 0.12, (SourceName.TEAM_STATS.value,), advanced_efficiency),
    FactorSpec(
        "sentiment", "Social Media & Sentiment", 0.08,
        (SourceName.SOCIAL.value, SourceName.NEWS.value), social_sentiment,
    ),
)

CATALOG_SIZE = len(CATALOG)
