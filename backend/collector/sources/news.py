"""
ESPN RSS news source.
Fetches the sport's headline feed and keeps articles that mention either team.
"""
from __future__ import annotations

import re
from calendar import timegm
from datetime import datetime, timezone
from html import unescape
from typing import Any, Optional

import feedparser

from collector.sources.base import DataSource
from shared.models.domain import Event
from shared.models.enums import SourceName

MAX_ARTICLES = 10

TAG_STRIP_RE = re.compile(r"<[^>]+>")


def _strip_html(raw: str) -> str:
    if not raw:
        return ""
    text = TAG_STRIP_RE.sub(" ", raw)
    text = unescape(text)
    return " ".join(text.split()).strip()[:1000]


def _published(entry: Any) -> Optional[str]:
    published = getattr(entry, "published_parsed", None) or getattr(entry, "updated_parsed", None)
    if not published:
        return None
    try:
        return datetime.fromtimestamp(timegm(published), tz=timezone.utc).isoformat()
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def articles_for_event(feed_content: bytes | str, event: Event) -> list[dict[str, Any]]:
    parsed = feedparser.parse(feed_content)
    articles: list[dict[str, Any]] = []
    for entry in getattr(parsed, "entries", []) or []:
        headline = _strip_html(getattr(entry, "title", "") or "")
        if not headline:
            continue
        description = _strip_html(getattr(entry, "summary", "") or getattr(entry, "description", "") or "")
        haystack = f"{headline} {description}"
        if not (event.home.mentioned_in(haystack) or event.away.mentioned_in(haystack)):
            continue
        articles.append({
            "headline": headline[:300],
            "description": description[:500],
            "link": getattr(entry, "link", "") or "",
            "published": _published(entry),
        })
        if len(articles) >= MAX_ARTICLES:
            break
    return articles


class NewsSource(DataSource):
    @property
    def name(self) -> SourceName:
        return SourceName.NEWS

    async def _fetch(self, event: Event) -> Optional[dict[str, Any]]:
        resp = await self._http.get(f"/{event.sport}/news")
        return {"articles": articles_for_event(resp.content, event)}
