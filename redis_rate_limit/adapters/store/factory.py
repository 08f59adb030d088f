"""Factory pattern for creating counter store instances."""

from __future__ import annotations

import redis.asyncio as redis

from redis_rate_limit.adapters.store.base import AbstractCounterStore
from redis_rate_limit.adapters.store.in_memory import InMemoryCounterStore
from redis_rate_limit.adapters.store.redis_store import RedisCounterStore
from redis_rate_limit.core.config import Settings, settings as default_settings
from redis_rate_limit.core.errors import ConfigurationAppError


def create_counter_store(app_settings: Settings | None = None) -> AbstractCounterStore:
    """Instantiate the counter store selected by ``RATE_LIMIT_BACKEND``.

    The Redis client connects lazily on its first command; connection
    failures therefore surface per request as store faults, not here.

    Args:
        app_settings: Settings to read from; defaults to the global instance.

    Returns:
        AbstractCounterStore: Configured store.

    Raises:
        ConfigurationAppError: If the backend name is unknown.
    """
    cfg = app_settings or default_settings
    backend = cfg.rate_limit.backend.lower()

    if backend == "redis":
        client = redis.Redis.from_url(
            cfg.redis.url,
            decode_responses=True,
            socket_timeout=cfg.redis.socket_timeout_seconds,
            socket_connect_timeout=cfg.redis.socket_connect_timeout_seconds,
        )
        return RedisCounterStore(client)

    if backend == "memory":
        return InMemoryCounterStore()

    raise ConfigurationAppError(
        code="unknown_store_backend",
        message=f"Unknown rate limit backend: '{backend}'. Supported backends: redis, memory",
        details={"backend": backend},
    )
