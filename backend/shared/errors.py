"""
Error taxonomy for the intelligence pipeline.

Each component absorbs its own errors at its boundary and turns them into
values (an absent source record, an unavailable factor, a None reasoning
result). Only CycleFailure is surfaced to callers, and then only as a
``success=False`` cycle result.
"""
from __future__ import annotations

from typing import Optional


class SharplineError(Exception):
    """Base class for all pipeline errors."""


class SourceUnavailable(SharplineError):
    """A data source could not produce a record (transport, parse, or not found)."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"{source}: {reason}")


class EventFeedUnavailable(SourceUnavailable):
    """The scoreboard feed that defines a batch could not be fetched."""


class QuotaExceeded(SharplineError):
    """The reasoning provider answered 429."""

    def __init__(self, retry_after_s: Optional[float] = None) -> None:
        self.retry_after_s = retry_after_s
        super().__init__(f"quota exceeded (retry after {retry_after_s}s)")


class MalformedResponse(SharplineError):
    """Reasoning output could not be coerced into the expected structure."""


class ReasoningTimeout(SharplineError):
    """A reasoning network call exceeded its deadline."""


class CycleFailure(SharplineError):
    """Unexpected error inside an orchestration cycle."""

    def __init__(self, batch_key: str, cause: BaseException) -> None:
        self.batch_key = batch_key
        self.cause = cause
        super().__init__(f"cycle for '{batch_key}' failed: {type(cause).__name__}: {cause}")
