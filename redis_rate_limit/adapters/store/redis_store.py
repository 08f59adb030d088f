"""Redis-backed counter store.

All counter state lives in Redis so every worker process shares one quota.
INCR is the only command whose atomicity the limiter relies on.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, TypeVar

from redis.exceptions import RedisError

from redis_rate_limit.adapters.store.base import AbstractCounterStore
from redis_rate_limit.core.errors import StoreAppError

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RedisCounterStore(AbstractCounterStore):
    """Counter store wrapping a pre-connected ``redis.asyncio.Redis`` client.

    Every ``RedisError`` (connection refused, timeout, protocol error) is
    re-raised as ``StoreAppError`` so callers handle a single fault type.
    """

    def __init__(self, client: "Redis") -> None:
        self._redis = client

    async def exists(self, key: str) -> bool:
        reply = await self._call("exists", self._redis.exists, key)
        return bool(int(reply))

    async def get(self, key: str) -> str | None:
        raw = await self._call("get", self._redis.get, key)
        if raw is None:
            return None
        if isinstance(raw, bytes):  # pragma: no cover - depends on redis config
            raw = raw.decode("utf-8")
        return raw

    async def incr(self, key: str) -> int:
        return int(await self._call("incr", self._redis.incr, key))

    async def pttl(self, key: str) -> int:
        return int(await self._call("pttl", self._redis.pttl, key))

    async def pexpire(self, key: str, ttl_ms: int) -> bool:
        return bool(await self._call("pexpire", self._redis.pexpire, key, ttl_ms))

    async def close(self) -> None:
        await self._redis.aclose()

    async def _call(
        self,
        operation: str,
        command: Callable[..., Awaitable[T]],
        *args: Any,
    ) -> T:
        try:
            return await command(*args)
        except RedisError as exc:
            logger.error(
                "store.redis_error",
                extra={
                    "operation": operation,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            raise StoreAppError(
                code="store_unavailable",
                message=f"Redis {operation.upper()} failed",
                details={"operation": operation, "backend": "redis"},
            ) from exc
