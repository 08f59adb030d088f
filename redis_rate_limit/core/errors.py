"""Application-level exception types.

This module defines domain errors used across the limiter, store adapters
and HTTP layer, enabling consistent error handling, logging, and responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    option: str
    actual_value: str
    operation: str
    backend: str
    http_status: int
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ConfigurationAppError(AppError):
    """Raised when limiter options or settings are invalid (startup only)."""


@dataclass
class StoreAppError(AppError):
    """Raised when the shared counter store cannot be reached or misbehaves.

    Attributes:
        body: Optional response body to render instead of the generic error.
    """

    body: Any = None


@dataclass
class RateLimitExceededAppError(AppError):
    """Raised by the dependency form of the limiter when a quota is exhausted.

    Attributes:
        body: Rendered rejection body returned to the client verbatim.
        headers: X-RateLimit-* headers for the rejected response.
    """

    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)
