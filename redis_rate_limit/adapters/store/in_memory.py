"""In-memory counter store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Expiry is lazy: entries are dropped when next touched after their deadline.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

from redis_rate_limit.adapters.store.base import (
    TTL_MISSING_KEY,
    TTL_NO_EXPIRY,
    AbstractCounterStore,
)
from redis_rate_limit.core.errors import StoreAppError


@dataclass
class _CounterEntry:
    value: int
    expires_at: float | None = None


class InMemoryCounterStore(AbstractCounterStore):
    """Counter store keeping entries in a process-local dict.

    Mirrors the Redis commands used by the window counter (EXISTS, GET, INCR,
    PTTL, PEXPIRE) closely enough for local development and tests.

    Important:
        This store is not shared between processes. Use the Redis store
        whenever more than one worker serves requests.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize the store.

        Args:
            clock: Time source returning seconds; injectable for tests.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, _CounterEntry] = {}

    def _live_entry_locked(self, key: str) -> _CounterEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry

    async def exists(self, key: str) -> bool:
        with self._lock:
            return self._live_entry_locked(key) is not None

    async def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._live_entry_locked(key)
            return None if entry is None else str(entry.value)

    async def incr(self, key: str) -> int:
        with self._lock:
            entry = self._live_entry_locked(key)
            if entry is None:
                entry = _CounterEntry(value=0)
                self._entries[key] = entry
            entry.value += 1
            return entry.value

    async def pttl(self, key: str) -> int:
        with self._lock:
            entry = self._live_entry_locked(key)
            if entry is None:
                return TTL_MISSING_KEY
            if entry.expires_at is None:
                return TTL_NO_EXPIRY
            return max(0, int((entry.expires_at - self._clock()) * 1000))

    async def pexpire(self, key: str, ttl_ms: int) -> bool:
        if not isinstance(ttl_ms, int):
            raise StoreAppError(
                code="invalid_expire_time",
                message="PEXPIRE requires an integer number of milliseconds",
                details={"operation": "pexpire", "actual_value": repr(ttl_ms)},
            )
        with self._lock:
            entry = self._live_entry_locked(key)
            if entry is None:
                return False
            if ttl_ms <= 0:
                # Same as Redis: a non-positive expiry deletes the key.
                del self._entries[key]
                return True
            entry.expires_at = self._clock() + ttl_ms / 1000
            return True

    def clear(self) -> None:
        """Drop all counters (for testing)."""
        with self._lock:
            self._entries.clear()
