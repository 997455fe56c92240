"""
Monotonic clock seam.

Anything that throttles, caches or expires reads time through a Clock so
tests can drive it with a fake that advances instantly.
"""
from __future__ import annotations

import asyncio
import time


class Clock:
    """Wall-independent time source backed by time.monotonic()."""

    def now(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))


SYSTEM_CLOCK = Clock()
