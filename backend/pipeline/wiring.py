"""
Builds the process-wide pipeline object graph used by both the worker and
the API: one ESPN feed, one collector, one reasoning client, one store.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from collector.collector import SourceCollector
from collector.sources.espn import (
    ESPNScoreboardFeed,
    InjuriesSource,
    ScheduleSource,
    SummarySource,
    TeamStatsSource,
)
from collector.sources.news import NewsSource
from collector.sources.reddit import RedditSource
from factors.engine import FactorEngine
from reasoning.analyst import ReasoningAnalyst
from reasoning.client import ReasoningClient
from reasoning.config import ReasoningSettings, get_reasoning_settings
from shared.config import Settings, get_settings
from shared.utils.http_client import SourceHTTPClient
from shared.utils.logging import get_logger

from pipeline.orchestrator import IntelOrchestrator
from pipeline.store import IntelStore

logger = get_logger(__name__)


@dataclass
class PipelineServices:
    feed: ESPNScoreboardFeed
    collector: SourceCollector
    reasoning: ReasoningClient
    orchestrator: IntelOrchestrator

    @property
    def store(self) -> IntelStore:
        return self.orchestrator.store

    async def start(self) -> None:
        await self.feed.start()
        await self.collector.start()
        await self.reasoning.start()
        logger.info(
            "pipeline_started",
            sources=[s.name.value for s in self.collector.sources],
            reasoning_configured=self.reasoning.is_configured,
        )

    async def close(self) -> None:
        await self.reasoning.close()
        await self.collector.close()
        await self.feed.close()
        logger.info("pipeline_stopped")


def build_pipeline(
    settings: Optional[Settings] = None,
    reasoning_settings: Optional[ReasoningSettings] = None,
) -> PipelineServices:
    settings = settings or get_settings()
    reasoning_settings = reasoning_settings or get_reasoning_settings()

    # Scoreboard, stats, schedule, summary and injury sources share one ESPN connection pool
    espn_http = SourceHTTPClient("espn", settings.espn_site_api_url)
    rss_http = SourceHTTPClient("espn_rss", settings.espn_rss_url)
    reddit_http = SourceHTTPClient(
        "reddit",
        settings.reddit_url,
        headers={"User-Agent": settings.reddit_user_agent},
        max_retries=1,
    )

    sources = [
        TeamStatsSource(espn_http),
        ScheduleSource(espn_http),
        SummarySource(espn_http),
        InjuriesSource(espn_http),
        NewsSource(rss_http),
        RedditSource(reddit_http),
    ]
    feed = ESPNScoreboardFeed(espn_http)
    collector = SourceCollector(sources, settings)
    reasoning = ReasoningClient(reasoning_settings)
    orchestrator = IntelOrchestrator(
        feed=feed,
        collector=collector,
        engine=FactorEngine(),
        store=IntelStore(),
        analyst=ReasoningAnalyst(reasoning),
        settings=settings,
    )
    return PipelineServices(
        feed=feed,
        collector=collector,
        reasoning=reasoning,
        orchestrator=orchestrator,
    )
