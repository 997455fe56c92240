"""
Circuit breaker guarding each external data source.

States:
  CLOSED    normal operation, fetches pass through
  OPEN      too many consecutive failures, fetches are rejected without I/O
  HALF_OPEN after the recovery window, a single probe fetch is let through

Only raised exceptions count as failures. A source that answers "no data"
is healthy; a source that hangs or crashes is not.
"""
from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Callable, Coroutine, Optional, TypeVar

from shared.utils.clock import SYSTEM_CLOCK, Clock
from shared.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(Exception):
    """Raised when the circuit is open and calls are being rejected."""

    def __init__(self, name: str, retry_after: float):
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Circuit breaker '{name}' is OPEN. Retry after {retry_after:.0f}s.")


class CircuitBreaker:
    """
    Async circuit breaker.

    Args:
        name: Identifier for logging (the source name).
        failure_threshold: Consecutive failures before opening the circuit.
        recovery_timeout_s: Seconds to stay OPEN before probing.
        half_open_max: Probe calls allowed while HALF_OPEN.
        clock: Time source; defaults to the monotonic system clock.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout_s: float = 60.0,
        half_open_max: int = 1,
        clock: Optional[Clock] = None,
    ) -> None:
        self.name = name
        self.failure_threshold = max(1, failure_threshold)
        self.recovery_timeout_s = recovery_timeout_s
        self.half_open_max = half_open_max
        self._clock = clock or SYSTEM_CLOCK

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: float | None = None
        self._half_open_calls = 0
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            if self._clock.now() - self._last_failure_time >= self.recovery_timeout_s:
                return CircuitState.HALF_OPEN
        return self._state

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self._failure_count,
            "success_count": self._success_count,
            "last_failure_ago_s": round(self._clock.now() - self._last_failure_time, 1)
            if self._last_failure_time is not None
            else None,
        }

    async def call(
        self, func: Callable[..., Coroutine[Any, Any, T]], *args: Any, **kwargs: Any
    ) -> T:
        current_state = self.state

        if current_state == CircuitState.OPEN:
            elapsed = self._clock.now() - (self._last_failure_time or 0.0)
            raise CircuitBreakerOpen(self.name, max(self.recovery_timeout_s - elapsed, 1.0))

        if current_state == CircuitState.HALF_OPEN:
            async with self._lock:
                if self._half_open_calls >= self.half_open_max:
                    raise CircuitBreakerOpen(self.name, 5.0)
                self._half_open_calls += 1

        try:
            result = await func(*args, **kwargs)
        except CircuitBreakerOpen:
            raise
        except Exception as exc:
            await self._on_failure(exc)
            raise
        await self._on_success()
        return result

    async def _on_success(self) -> None:
        async with self._lock:
            if self._half_open_calls:
                logger.info("circuit_breaker_closed", name=self.name)
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._half_open_calls = 0
            self._success_count += 1

    async def _on_failure(self, exc: Exception) -> None:
        async with self._lock:
            self._failure_count += 1
            self._last_failure_time = self._clock.now()

            if self._half_open_calls:
                self._state = CircuitState.OPEN
                self._half_open_calls = 0
                logger.warning("circuit_breaker_reopened", name=self.name, error=str(exc))
            elif self._state == CircuitState.CLOSED and self._failure_count >= self.failure_threshold:
                self._state = CircuitState.OPEN
                logger.warning(
                    "circuit_breaker_opened",
                    name=self.name,
                    failures=self._failure_count,
                    error=str(exc) or type(exc).__name__,
                )
