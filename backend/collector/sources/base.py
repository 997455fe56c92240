"""
Abstract base class for per-event data sources.
Defines the contract every source connector must implement.
"""
from __future__ import annotations

import abc
from typing import Any, Optional

from shared.models.domain import Event
from shared.models.enums import SourceName
from shared.utils.http_client import SourceHTTPClient
from shared.utils.logging import get_logger

logger = get_logger(__name__)


class DataSource(abc.ABC):
    """
    One external source of per-event data.

    ``fetch_or_raise`` returns None for "no data" and lets transport and
    parse failures propagate; the collector counts those against the
    source's circuit breaker. ``fetch`` is the non-raising form.
    Subclasses implement ``_fetch``.
    """

    def __init__(self, http_client: SourceHTTPClient) -> None:
        self._http = http_client

    @property
    @abc.abstractmethod
    def name(self) -> SourceName:
        ...

    async def start(self) -> None:
        await self._http.start()

    async def close(self) -> None:
        await self._http.close()

    async def fetch_or_raise(self, event: Event) -> Optional[dict[str, Any]]:
        return await self._fetch(event)

    async def fetch(self, event: Event) -> Optional[dict[str, Any]]:
        try:
            return await self.fetch_or_raise(event)
        except Exception as exc:
            logger.warning(
                "source_fetch_error",
                source=self.name.value,
                event_id=event.id,
                error=str(exc) or type(exc).__name__,
            )
            return None

    @abc.abstractmethod
    async def _fetch(self, event: Event) -> Optional[dict[str, Any]]:
        ...
