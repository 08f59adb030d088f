"""Tests for the Redis counter store adapter and store factory."""

import asyncio
import os
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError, TimeoutError as RedisTimeoutError

from redis_rate_limit.adapters.store.factory import create_counter_store
from redis_rate_limit.adapters.store.in_memory import InMemoryCounterStore
from redis_rate_limit.adapters.store.redis_store import RedisCounterStore
from redis_rate_limit.core.config import RateLimitSettings, RedisSettings, Settings
from redis_rate_limit.core.errors import ConfigurationAppError, StoreAppError
from redis_rate_limit.core.options import LimiterOptions
from redis_rate_limit.core.window import WindowCounter


def _client() -> AsyncMock:
    client = AsyncMock()
    client.exists.return_value = 1
    client.get.return_value = "4"
    client.incr.return_value = 5
    client.pttl.return_value = 1234
    client.pexpire.return_value = 1
    return client


class TestRedisCounterStore:
    def test_commands_are_forwarded(self) -> None:
        client = _client()
        store = RedisCounterStore(client)

        assert asyncio.run(store.exists("k")) is True
        assert asyncio.run(store.get("k")) == "4"
        assert asyncio.run(store.incr("k")) == 5
        assert asyncio.run(store.pttl("k")) == 1234
        assert asyncio.run(store.pexpire("k", 1000)) is True

        client.exists.assert_awaited_once_with("k")
        client.pexpire.assert_awaited_once_with("k", 1000)

    def test_missing_value_is_none(self) -> None:
        client = _client()
        client.exists.return_value = 0
        client.get.return_value = None
        store = RedisCounterStore(client)

        assert asyncio.run(store.exists("k")) is False
        assert asyncio.run(store.get("k")) is None

    @pytest.mark.parametrize(
        ("operation", "error"),
        [
            ("exists", RedisConnectionError("connection refused")),
            ("get", RedisTimeoutError("timed out")),
            ("incr", ResponseError("value is not an integer or out of range")),
            ("pttl", RedisConnectionError("reset by peer")),
            ("pexpire", RedisTimeoutError("timed out")),
        ],
    )
    def test_redis_errors_become_store_errors(self, operation: str, error: Exception) -> None:
        client = _client()
        getattr(client, operation).side_effect = error
        store = RedisCounterStore(client)
        args = ("k", 1000) if operation == "pexpire" else ("k",)

        with pytest.raises(StoreAppError) as exc_info:
            asyncio.run(getattr(store, operation)(*args))

        assert exc_info.value.code == "store_unavailable"
        assert exc_info.value.details == {"operation": operation, "backend": "redis"}
        assert exc_info.value.__cause__ is error

    def test_close_releases_client(self) -> None:
        client = _client()
        store = RedisCounterStore(client)

        asyncio.run(store.close())

        client.aclose.assert_awaited_once()


class TestCreateCounterStore:
    def test_memory_backend(self) -> None:
        cfg = Settings(rate_limit=RateLimitSettings(backend="memory"))

        assert isinstance(create_counter_store(cfg), InMemoryCounterStore)

    def test_redis_backend_uses_settings(self) -> None:
        cfg = Settings(
            rate_limit=RateLimitSettings(backend="REDIS"),
            redis=RedisSettings(url="redis://cache.internal:6380/2", socket_timeout_seconds=0.5),
        )

        store = create_counter_store(cfg)

        assert isinstance(store, RedisCounterStore)
        connection_kwargs = store._redis.connection_pool.connection_kwargs  # type: ignore[attr-defined]
        assert connection_kwargs["host"] == "cache.internal"
        assert connection_kwargs["port"] == 6380
        assert connection_kwargs["db"] == 2
        assert connection_kwargs["socket_timeout"] == 0.5

    def test_unknown_backend(self) -> None:
        cfg = Settings(rate_limit=RateLimitSettings(backend="memcached"))

        with pytest.raises(ConfigurationAppError) as exc_info:
            create_counter_store(cfg)

        assert exc_info.value.code == "unknown_store_backend"


REDIS_URL = os.getenv("REDIS_URL")


@pytest.mark.skipif(not REDIS_URL, reason="REDIS_URL is not configured")
def test_window_counter_against_live_redis():
    async def _run() -> None:
        import redis.asyncio as redis

        client = redis.Redis.from_url(REDIS_URL, decode_responses=True)
        store = RedisCounterStore(client)
        key = f"RL/test/{uuid4()}"
        counter = WindowCounter(store, LimiterOptions.build(request_limit=3, time_window=5))

        try:
            decisions = [await counter.check(key) for _ in range(5)]

            assert [d.at_limit for d in decisions] == [False, False, False, True, True]
            assert decisions[0].ttl == 5_000
            assert all(0 < d.ttl <= 5_000 for d in decisions)
            assert await store.get(key) == "3"
            assert 0 < await store.pttl(key) <= 5_000
        finally:
            # Clean up created key to avoid polluting shared Redis instances.
            await client.delete(key)
            await store.close()

    asyncio.run(_run())


@pytest.mark.skipif(not REDIS_URL, reason="REDIS_URL is not configured")
def test_concurrent_requests_against_live_redis():
    async def _run() -> None:
        import redis.asyncio as redis

        client = redis.Redis.from_url(REDIS_URL, decode_responses=True)
        store = RedisCounterStore(client)
        key = f"RL/test/{uuid4()}"
        counter = WindowCounter(store, LimiterOptions.build(request_limit=10, time_window=5))

        try:
            decisions = await asyncio.gather(*(counter.check(key) for _ in range(25)))

            # Reads may be stale under race, but INCR never loses an increment.
            allowed = sum(1 for d in decisions if not d.at_limit)
            assert allowed >= 10
            assert int(await store.get(key)) == allowed
        finally:
            await client.delete(key)
            await store.close()

    asyncio.run(_run())
