"""Application factory for the rate limited demo service.

Centralizes app construction (logging, handlers, limiter middleware,
routers) so tests can build apps with their own store and options.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from redis_rate_limit.adapters.store import AbstractCounterStore, RedisCounterStore, create_counter_store
from redis_rate_limit.api.routes import health_router, items_router
from redis_rate_limit.api.routes.health import HEALTH_PATH
from redis_rate_limit.core.config import Settings, settings as default_settings
from redis_rate_limit.core.exception_handlers import setup_exception_handlers
from redis_rate_limit.core.logging import configure_logging
from redis_rate_limit.core.options import LimiterOptions
from redis_rate_limit.core.rate_limit import RedisRateLimit

logger = logging.getLogger(__name__)


def create_app(
    store: AbstractCounterStore | None = None,
    options: LimiterOptions | None = None,
    *,
    app_settings: Settings | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        store: Counter store to use; built from settings when omitted.
        options: Limiter options; built from settings when omitted.
        app_settings: Settings to read from; defaults to the global instance.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.

    Raises:
        ConfigurationAppError: If limiter options or the backend are invalid.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    limiter: RedisRateLimit | None = None
    if cfg.rate_limit.enabled:
        limiter = RedisRateLimit(
            store or create_counter_store(cfg),
            options or LimiterOptions.from_settings(cfg.rate_limit),
            exempt_paths={HEALTH_PATH},
        )
        logger.info(
            "rate_limit.configured",
            extra={
                "backend": cfg.rate_limit.backend,
                "limit": limiter.options.request_limit,
                "window_ms": limiter.options.window_ms,
                "spreading": limiter.options.enforce_request_spreading,
                "id_matcher_enabled": limiter.options.id_matcher is not None,
            },
        )

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        if limiter is not None and isinstance(limiter.store, RedisCounterStore):
            await limiter.store.close()

    app = FastAPI(
        title="Redis Rate Limit",
        description="Demo service guarded by a Redis-backed request rate limiter.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.rate_limiter = limiter

    if limiter is not None:
        app.middleware("http")(limiter)

    setup_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(items_router)

    return app
