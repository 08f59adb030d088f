from __future__ import annotations

from redis_rate_limit.api.routes.health import router as health_router
from redis_rate_limit.api.routes.items import router as items_router

__all__ = ["health_router", "items_router"]
