"""Rate limiting for FastAPI/Starlette applications.

This module wires key derivation and the window counter into the HTTP layer.

Two integration styles are supported:
- Global middleware: ``app.middleware("http")(limiter)``
- Per-route dependency: ``Depends(limiter.dependency)``

Every quota decision carries the X-RateLimit-* headers. Requests over quota
get a 429 with the configured rate limit message; store faults get a 500
with the configured internal error message and are neither counted nor
let through.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse

from redis_rate_limit.adapters.store.base import AbstractCounterStore
from redis_rate_limit.core.errors import RateLimitExceededAppError, StoreAppError
from redis_rate_limit.core.keys import KeyDeriver, RequestDescriptor
from redis_rate_limit.core.options import LimiterOptions
from redis_rate_limit.core.window import Decision, WindowCounter

logger = logging.getLogger(__name__)


HEADER_LIMIT = "X-RateLimit-Limit"
HEADER_REMAINING = "X-RateLimit-Remaining"
HEADER_WINDOW = "X-RateLimit-Window"
HEADER_RESET = "X-RateLimit-Reset"


@dataclass(frozen=True)
class RateLimitOutcome:
    """Rendered decision for one request.

    Attributes:
        allowed: Whether the request may continue to its handler.
        status_code: 429 or 500 when the request is stopped, else None.
        headers: X-RateLimit-* headers (empty on store faults).
        body: Response body when the request is stopped.
        error: The store fault behind a 500 outcome, if any.
    """

    allowed: bool
    status_code: int | None = None
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    error: StoreAppError | None = None

    def to_response(self) -> JSONResponse:
        """Build the JSON response for a stopped request."""
        return JSONResponse(
            status_code=self.status_code or status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=self.body,
            headers=self.headers or None,
        )


def _hash_limiter_key(key: str) -> str:
    """Hash the rate limit key for logging without exposing client addresses."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


class RedisRateLimit:
    """Admission control backed by a shared counter store.

    Each instance owns its options; limiters for different routes sharing one
    store should use distinct ``create_key`` namespaces.
    """

    def __init__(
        self,
        store: AbstractCounterStore,
        options: LimiterOptions | None = None,
        *,
        exempt_paths: frozenset[str] | set[str] = frozenset(),
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Pre-connected counter store.
            options: Validated limiter options; library defaults when omitted.
            exempt_paths: Paths the middleware lets through uncounted.
        """
        self.options = options or LimiterOptions.build()
        self.exempt_paths = frozenset(exempt_paths)
        self._keys = KeyDeriver(self.options)
        self.store = store
        self._counter = WindowCounter(store, self.options)

    def build_headers(self, decision: Decision) -> dict[str, str]:
        return {
            HEADER_LIMIT: str(self.options.request_limit),
            HEADER_REMAINING: str(decision.remaining(self.options.request_limit)),
            HEADER_WINDOW: str(self.options.window_ms),
            HEADER_RESET: str(decision.ttl),
        }

    async def evaluate(self, descriptor: RequestDescriptor) -> RateLimitOutcome:
        """Count ``descriptor`` and render the caller-facing outcome."""

        key = self._keys.derive(descriptor)
        key_hash = _hash_limiter_key(key)

        try:
            decision = await self._counter.check(key)
        except StoreAppError as exc:
            logger.error(
                "rate_limit.store_error",
                extra={
                    "key_hash": key_hash,
                    "error_code": exc.code,
                    "error_message": exc.message,
                },
            )
            return RateLimitOutcome(
                allowed=False,
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                body=self.options.internal_error_message.render(),
                error=exc,
            )

        headers = self.build_headers(decision)
        log_extra = {
            "key_hash": key_hash,
            "limit": self.options.request_limit,
            "count": decision.count,
            "remaining": decision.remaining(self.options.request_limit),
            "reset_ms": decision.ttl,
            "window_ms": self.options.window_ms,
        }

        if decision.at_limit:
            logger.warning("rate_limit.exceeded", extra=log_extra)
            return RateLimitOutcome(
                allowed=False,
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                headers=headers,
                body=self.options.rate_limit_message.render(decision.ttl),
            )

        logger.info("rate_limit.allowed", extra=log_extra)
        return RateLimitOutcome(allowed=True, headers=headers)

    async def __call__(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """HTTP middleware enforcing the limit before the route handler runs.

        Usage:
            app.middleware("http")(RedisRateLimit(store, options))
        """
        if request.url.path in self.exempt_paths:
            return await call_next(request)

        outcome = await self.evaluate(RequestDescriptor.from_request(request))
        if not outcome.allowed:
            return outcome.to_response()

        response = await call_next(request)
        response.headers.update(outcome.headers)
        return response

    async def dependency(self, request: Request, response: Response) -> None:
        """FastAPI dependency form of the limiter.

        Raises:
            RateLimitExceededAppError: When the quota is exhausted (429).
            StoreAppError: When the counter store fails (500).
        """
        outcome = await self.evaluate(RequestDescriptor.from_request(request))
        if outcome.allowed:
            response.headers.update(outcome.headers)
            return

        if outcome.error is not None:
            raise StoreAppError(
                code=outcome.error.code,
                message=outcome.error.message,
                details=outcome.error.details,
                body=outcome.body,
            ) from outcome.error

        raise RateLimitExceededAppError(
            code="rate_limit_exceeded",
            message="Rate limit exceeded",
            body=outcome.body,
            headers=outcome.headers,
        )
