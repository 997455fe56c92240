"""
In-process response cache for reasoning output.
TTL-expired on read, bounded in size, oldest-inserted evicted first.
"""
from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Optional

from shared.utils.clock import SYSTEM_CLOCK, Clock


def fingerprint(prompt: str, prefix_chars: int) -> str:
    """Cache key for a prompt: digest of its first ``prefix_chars`` characters."""
    return hashlib.sha256(prompt[:prefix_chars].encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: str
    stored_at: float


class ResponseCache:
    def __init__(self, ttl_s: float, max_size: int, clock: Optional[Clock] = None) -> None:
        self._ttl_s = ttl_s
        self._max_size = max(1, max_size)
        self._clock = clock or SYSTEM_CLOCK
        # dicts keep insertion order; the first key is always the oldest entry
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock.now() - entry.stored_at >= self._ttl_s:
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: str) -> None:
        self._entries.pop(key, None)
        while len(self._entries) >= self._max_size:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
        self._entries[key] = CacheEntry(key=key, value=value, stored_at=self._clock.now())

    def discard(self, key: str) -> None:
        self._entries.pop(key, None)
