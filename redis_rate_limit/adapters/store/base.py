"""Counter store interface.

The window counter depends on this abstraction rather than on a concrete
client, so Redis can be replaced by the in-memory store in development and
tests. Only the primitives the counting protocol needs are exposed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# PTTL sentinels, following Redis semantics.
TTL_MISSING_KEY = -2
TTL_NO_EXPIRY = -1


class AbstractCounterStore(ABC):
    """Interface for shared counter stores.

    Implementations raise ``StoreAppError`` for any backend failure.
    """

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Return True if ``key`` holds a live (unexpired) counter."""
        raise NotImplementedError

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the raw stored counter value, or None if absent."""
        raise NotImplementedError

    @abstractmethod
    async def incr(self, key: str) -> int:
        """Atomically increment ``key``, creating it at 1 when absent.

        Returns:
            The counter value after the increment.
        """
        raise NotImplementedError

    @abstractmethod
    async def pttl(self, key: str) -> int:
        """Return remaining time-to-live in milliseconds.

        Returns:
            Milliseconds remaining, ``TTL_MISSING_KEY`` when the key does not
            exist, or ``TTL_NO_EXPIRY`` when it exists without an expiry.
        """
        raise NotImplementedError

    @abstractmethod
    async def pexpire(self, key: str, ttl_ms: int) -> bool:
        """Set the key's expiry to ``ttl_ms`` milliseconds from now.

        Returns:
            True if the expiry was applied, False if the key does not exist.
        """
        raise NotImplementedError
