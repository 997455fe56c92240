"""
Reddit social source.
Reads the newest posts from the sport's subreddits via the public JSON
listing and keeps those that mention either team.
"""
from __future__ import annotations

import asyncio
from typing import Any, Optional

from collector.sources.base import DataSource
from factors.sentiment import hype_level
from shared.errors import SourceUnavailable
from shared.models.domain import Event
from shared.models.enums import SourceName
from shared.utils.logging import get_logger

logger = get_logger(__name__)

SUBREDDITS: dict[str, tuple[str, ...]] = {
    "nba": ("nba", "sportsbook", "fantasybball"),
    "nfl": ("nfl", "sportsbook", "fantasyfootball"),
    "mlb": ("baseball", "sportsbook", "fantasybaseball"),
    "nhl": ("hockey", "sportsbook", "fantasyhockey"),
}
POSTS_PER_SUBREDDIT = 25


def posts_for_event(listing: dict[str, Any], subreddit: str, event: Event) -> list[dict[str, Any]]:
    posts = []
    for child in (listing.get("data") or {}).get("children") or []:
        post = child.get("data") or {}
        title = (post.get("title") or "").strip()
        if not title or not (event.home.mentioned_in(title) or event.away.mentioned_in(title)):
            continue
        posts.append({
            "source": f"r/{subreddit}",
            "title": title[:300],
            "score": int(post.get("score") or 0),
            "comments": int(post.get("num_comments") or 0),
            "created_utc": post.get("created_utc"),
        })
    return posts


class RedditSource(DataSource):
    @property
    def name(self) -> SourceName:
        return SourceName.SOCIAL

    async def _subreddit(self, subreddit: str, event: Event) -> list[dict[str, Any]]:
        listing = await self._http.get_json(f"/r/{subreddit}/new.json", params={"limit": POSTS_PER_SUBREDDIT})
        return posts_for_event(listing, subreddit, event)

    async def _fetch(self, event: Event) -> Optional[dict[str, Any]]:
        subs = SUBREDDITS.get(event.sport, ("sports",))
        results = await asyncio.gather(*(self._subreddit(s, event) for s in subs), return_exceptions=True)

        posts: list[dict[str, Any]] = []
        failures = 0
        for sub, result in zip(subs, results):
            if isinstance(result, BaseException):
                failures += 1
                logger.debug("reddit_subreddit_failed", subreddit=sub, error=str(result))
                continue
            posts.extend(result)
        if failures == len(subs):
            raise SourceUnavailable(self.name.value, "every subreddit request failed")

        posts.sort(key=lambda p: p["score"], reverse=True)
        return {"posts": posts, "hype_level": hype_level(len(posts))}
