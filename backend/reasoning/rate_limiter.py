"""
Fixed-window rate limiting with quota cooldown for the reasoning client.

One limiter is shared by every reasoning call in the process. Waits block
rather than fail: a caller that hits the window ceiling or an active
cooldown sleeps until it clears, then proceeds. Checks and counter updates
never await in between, so concurrent coroutines cannot both take the last
slot of a window.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from shared.utils.clock import SYSTEM_CLOCK, Clock
from shared.utils.logging import get_logger
from shared.utils.metrics import REASONING_COOLDOWN_ACTIVE, REASONING_THROTTLE_WAITS

logger = get_logger(__name__)


@dataclass
class RateLimiterState:
    window_start: float
    count_in_window: int = 0
    cooldown_until: float = 0.0


class WindowRateLimiter:
    """
    Fixed window of ``window_s`` seconds admitting ``max_requests`` network
    calls, plus a cooldown deadline set after a quota (429) response.
    """

    def __init__(
        self,
        max_requests: int,
        window_s: float,
        clock: Optional[Clock] = None,
    ) -> None:
        self._max_requests = max(1, max_requests)
        self._window_s = window_s
        self._clock = clock or SYSTEM_CLOCK
        self._state = RateLimiterState(window_start=self._clock.now())

    @property
    def state(self) -> RateLimiterState:
        return self._state

    @property
    def max_requests(self) -> int:
        return self._max_requests

    def _roll_window(self, now: float) -> None:
        if now - self._state.window_start >= self._window_s:
            self._state.window_start = now
            self._state.count_in_window = 0

    def requests_in_window(self) -> int:
        self._roll_window(self._clock.now())
        return self._state.count_in_window

    def cooldown_remaining(self) -> float:
        return max(0.0, self._state.cooldown_until - self._clock.now())

    async def wait_for_slot(self) -> None:
        """Block through any active cooldown, then until the window has room."""
        while True:
            now = self._clock.now()
            if now < self._state.cooldown_until:
                wait = self._state.cooldown_until - now
                REASONING_THROTTLE_WAITS.labels(reason="cooldown").inc()
                logger.info("reasoning_cooldown_wait", wait_s=round(wait, 2))
                await self._clock.sleep(wait)
                continue

            REASONING_COOLDOWN_ACTIVE.set(0)
            self._roll_window(now)
            if self._state.count_in_window >= self._max_requests:
                wait = self._state.window_start + self._window_s - now
                REASONING_THROTTLE_WAITS.labels(reason="window").inc()
                logger.info(
                    "reasoning_window_full",
                    count=self._state.count_in_window,
                    limit=self._max_requests,
                    wait_s=round(wait, 2),
                )
                await self._clock.sleep(wait)
                continue
            return

    def consume(self) -> None:
        """Count one network dispatch against the current window."""
        self._roll_window(self._clock.now())
        self._state.count_in_window += 1

    def enter_cooldown(self, seconds: float) -> float:
        """Refuse new dispatches for ``seconds``; never shortens an existing cooldown."""
        until = self._clock.now() + max(0.0, seconds)
        if until > self._state.cooldown_until:
            self._state.cooldown_until = until
        REASONING_COOLDOWN_ACTIVE.set(1)
        logger.warning("reasoning_cooldown_entered", cooldown_s=round(seconds, 2))
        return self._state.cooldown_until
