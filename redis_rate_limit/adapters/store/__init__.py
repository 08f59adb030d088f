"""Counter store adapters.

The window counter talks to an abstract store so the shared Redis backend
can be swapped for a process-local one in development and tests.
"""

from redis_rate_limit.adapters.store.base import AbstractCounterStore
from redis_rate_limit.adapters.store.factory import create_counter_store
from redis_rate_limit.adapters.store.in_memory import InMemoryCounterStore
from redis_rate_limit.adapters.store.redis_store import RedisCounterStore

__all__ = [
    "AbstractCounterStore",
    "InMemoryCounterStore",
    "RedisCounterStore",
    "create_counter_store",
]
