"""Window counter: the check / increment / expire protocol.

For every request the counter runs five store commands in a fixed order:

1. EXISTS key
2. GET key          (only if it exists) -> count = stored + 1, else 1
3. PTTL key         (only if it exists) -> ttl, else the full window
4. INCR key         (only while count <= request_limit)
5. PEXPIRE key ttl  (only while count <= request_limit)

The composition is not transactional. Reads in steps 1-3 may be stale under
concurrent same-key traffic; INCR is atomic and never loses an increment.
A fault between INCR and PEXPIRE leaves the counter incremented without a
refreshed expiry; this is accepted and not rolled back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from redis_rate_limit.adapters.store.base import AbstractCounterStore
from redis_rate_limit.core.errors import StoreAppError
from redis_rate_limit.core.options import LimiterOptions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Decision:
    """Outcome of one counter check.

    Attributes:
        count: This request's ordinal position within the current window.
        ttl: Milliseconds remaining until the window resets.
        at_limit: True when ``count`` exceeds the request limit.
    """

    count: int
    ttl: int
    at_limit: bool

    def remaining(self, request_limit: int) -> int:
        """Requests left in the window; never negative."""
        return max(0, request_limit - self.count)


class WindowCounter:
    """Runs the counting protocol for derived keys against a shared store."""

    def __init__(self, store: AbstractCounterStore, options: LimiterOptions) -> None:
        self._store = store
        self._options = options

    async def check(self, key: str) -> Decision:
        """Count a request against ``key`` and report whether it is over quota.

        Args:
            key: Derived counter key.

        Returns:
            Decision with the tentative count, remaining TTL and limit flag.

        Raises:
            StoreAppError: If any store command fails; later steps are skipped.
        """
        exists = await self._store.exists(key)
        count = await self._read_count(key) if exists else 1
        ttl = await self._read_ttl(key) if exists else self._options.window_ms

        at_limit = count > self._options.request_limit
        if not at_limit:
            await self._store.incr(key)
            await self._store.pexpire(key, ttl)

        logger.debug(
            "window.checked",
            extra={"exists": exists, "count": count, "ttl_ms": ttl, "at_limit": at_limit},
        )
        return Decision(count=count, ttl=ttl, at_limit=at_limit)

    async def _read_count(self, key: str) -> int:
        raw = await self._store.get(key)
        if raw is None:
            # Expired between EXISTS and GET: this request opens a new window.
            return 1
        try:
            return int(raw) + 1
        except ValueError as exc:
            raise StoreAppError(
                code="corrupt_counter",
                message="Stored counter value is not an integer",
                details={"operation": "get", "actual_value": repr(raw)[:40]},
            ) from exc

    async def _read_ttl(self, key: str) -> int:
        ttl = await self._store.pttl(key)
        if ttl < 0:
            # Missing key or no expiry: PEXPIRE with a negative value would
            # delete the counter, so restart the window instead.
            return self._options.window_ms
        return ttl
