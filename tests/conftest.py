"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any import that builds settings, so
the suite never needs a running Redis unless REDIS_URL is provided.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient

from redis_rate_limit.adapters.store.in_memory import InMemoryCounterStore
from redis_rate_limit.core.app_factory import create_app
from redis_rate_limit.core.options import LimiterOptions


class FakeClock:
    """Deterministic monotonic clock used to test expiry arithmetic."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryCounterStore:
    return InMemoryCounterStore(clock=clock)


@pytest.fixture
def make_client(store: InMemoryCounterStore) -> Callable[..., TestClient]:
    """Build a TestClient for the demo app with the given limiter options."""

    def _make(**option_overrides: Any) -> TestClient:
        options = LimiterOptions.build(**option_overrides)
        return TestClient(create_app(store=store, options=options))

    return _make
