"""Limiter options: defaults, validation and request spreading.

Options are built once per limiter instance and never mutated afterwards.
All validation happens in :meth:`LimiterOptions.build` so a bad value fails
application startup instead of individual requests.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from redis_rate_limit.core.errors import ConfigurationAppError

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from redis_rate_limit.core.config import RateLimitSettings
    from redis_rate_limit.core.keys import RequestDescriptor


DEFAULT_REQUEST_LIMIT = 60
DEFAULT_TIME_WINDOW = 60
# Matches a trailing 24-character document id (e.g. a MongoDB ObjectId).
DEFAULT_ID_MATCHER = r"[a-z0-9]{24}$"
DEFAULT_ID_VALUE = ":id"
DEFAULT_KEY_PREFIX = "RL"
# Window bounds in whole milliseconds. 2**53 is exact as a float and inside
# the signed 64-bit range Redis accepts for PEXPIRE.
MIN_WINDOW_MS = 1
MAX_WINDOW_MS = 2**53

_UNSET: Any = object()


def seconds_human(ttl_ms: int) -> str:
    """Render a millisecond TTL as whole, pluralized seconds ("1 second", "3 seconds")."""

    seconds = math.ceil(ttl_ms / 1000)
    return f"{seconds} {'second' if seconds == 1 else 'seconds'}"


def default_rate_limit_message(ttl: int) -> dict[str, Any]:
    return {
        "error": {
            "message": f"Rate limit reached. Try again in {seconds_human(ttl)}.",
            "timeout": ttl,
            "type": "RATE_LIMIT",
        }
    }


DEFAULT_INTERNAL_ERROR_MESSAGE: dict[str, Any] = {
    "error": {
        "message": "Internal server error.",
        "type": "INTERNAL_SERVER_ERROR",
    }
}


def make_key_factory(prefix: str = DEFAULT_KEY_PREFIX) -> Callable[["RequestDescriptor"], str]:
    """Return a ``create_key`` function namespacing keys under ``prefix``.

    Keys look like ``RL/127.0.0.1/GET/items?page=2``. Limiters sharing one
    store should use distinct prefixes so their quotas do not bleed together.
    """

    def create_key(descriptor: "RequestDescriptor") -> str:
        return f"{prefix}/{descriptor.ip}/{descriptor.method}{descriptor.url}"

    return create_key


default_create_key = make_key_factory()


@dataclass(frozen=True)
class StaticMessage:
    """Message variant returning the same body on every rejection."""

    value: Any

    def render(self, ttl: int | None = None) -> Any:
        return self.value


@dataclass(frozen=True)
class MessageFactory:
    """Message variant computing the body from the remaining TTL (ms)."""

    factory: Callable[[int], Any]

    def render(self, ttl: int | None = None) -> Any:
        return self.factory(ttl if ttl is not None else 0)


Message = StaticMessage | MessageFactory


@dataclass(frozen=True)
class LimiterOptions:
    """Immutable limiter configuration.

    Attributes:
        request_limit: Requests allowed per window (1 when spreading is enforced).
        time_window: Window length in seconds (already divided when spreading).
        id_matcher: Compiled pattern replacing resource ids in keys, or None.
        id_value: Placeholder substituted for the first ``id_matcher`` match.
        create_key: Maps a request descriptor to a raw counter key.
        rate_limit_message: Body variant rendered for 429 responses.
        internal_error_message: Body variant rendered for 500 responses.
        enforce_request_spreading: Whether the spreading transform was applied.
    """

    request_limit: int
    time_window: float
    id_matcher: re.Pattern[str] | None
    id_value: str
    create_key: Callable[["RequestDescriptor"], str]
    rate_limit_message: Message
    internal_error_message: StaticMessage
    enforce_request_spreading: bool = False

    @property
    def window_ms(self) -> int:
        """Window length in milliseconds, as reported in X-RateLimit-Window."""
        return int(self.time_window * 1000)

    @classmethod
    def build(
        cls,
        *,
        request_limit: int = DEFAULT_REQUEST_LIMIT,
        time_window: float = DEFAULT_TIME_WINDOW,
        enforce_request_spreading: bool = False,
        id_matcher: str | re.Pattern[str] | bool | None = _UNSET,
        id_value: str = DEFAULT_ID_VALUE,
        create_key: Callable[["RequestDescriptor"], str] | None = None,
        rate_limit_message: Callable[[int], Any] | Mapping[str, Any] | None = None,
        internal_error_message: Mapping[str, Any] | None = None,
    ) -> "LimiterOptions":
        """Validate user options, fill in defaults and apply request spreading.

        Args:
            request_limit: Positive number of requests allowed per window.
            time_window: Positive window length in seconds. After spreading it
                must resolve to at least one whole millisecond.
            enforce_request_spreading: Turn ``N`` requests per ``W`` seconds into
                one request per ``W / N`` seconds.
            id_matcher: Regex (string or compiled) for ids inside keys. ``None``
                or ``False`` disables id replacement; omitted uses the default.
            id_value: Replacement string for matched ids.
            create_key: Callable building a raw key from a request descriptor.
            rate_limit_message: Callable receiving the TTL in milliseconds, or a
                static mapping returned verbatim.
            internal_error_message: Static mapping returned on store faults.

        Returns:
            Validated, immutable options.

        Raises:
            ConfigurationAppError: If any option has an invalid type or value.
        """

        if not _is_positive_number(request_limit) or not isinstance(request_limit, int):
            raise _invalid("request_limit", request_limit, "Request limit option must be a positive integer.")

        if not _is_positive_number(time_window):
            raise _invalid("time_window", time_window, "Time window option must be a positive number.")

        if not isinstance(enforce_request_spreading, bool):
            raise _invalid(
                "enforce_request_spreading",
                enforce_request_spreading,
                "Enforce request spreading option must be a boolean.",
            )

        compiled_matcher = _compile_id_matcher(id_matcher)

        if compiled_matcher is not None and not isinstance(id_value, str):
            raise _invalid("id_value", id_value, "ID value option must be a string.")

        if create_key is None:
            create_key = default_create_key
        elif not callable(create_key):
            raise _invalid("create_key", create_key, "Create key option must be a function.")

        if rate_limit_message is None:
            message: Message = MessageFactory(default_rate_limit_message)
        elif callable(rate_limit_message):
            message = MessageFactory(rate_limit_message)
        elif isinstance(rate_limit_message, Mapping):
            message = StaticMessage(dict(rate_limit_message))
        else:
            raise _invalid(
                "rate_limit_message",
                rate_limit_message,
                "Rate limit message option must be a function or a mapping.",
            )

        if internal_error_message is None:
            internal_error_message = DEFAULT_INTERNAL_ERROR_MESSAGE
        elif not isinstance(internal_error_message, Mapping):
            raise _invalid(
                "internal_error_message",
                internal_error_message,
                "Internal error message option must be a mapping.",
            )

        if enforce_request_spreading:
            time_window = time_window / request_limit
            request_limit = 1

        if not MIN_WINDOW_MS <= int(time_window * 1000) <= MAX_WINDOW_MS:
            raise _invalid(
                "time_window",
                time_window,
                f"Time window option must resolve to between {MIN_WINDOW_MS} and {MAX_WINDOW_MS} milliseconds.",
            )

        return cls(
            request_limit=request_limit,
            time_window=time_window,
            id_matcher=compiled_matcher,
            id_value=id_value,
            create_key=create_key,
            rate_limit_message=message,
            internal_error_message=StaticMessage(dict(internal_error_message)),
            enforce_request_spreading=enforce_request_spreading,
        )

    @classmethod
    def from_settings(cls, rate_limit_settings: "RateLimitSettings", **overrides: Any) -> "LimiterOptions":
        """Build options from environment-driven settings.

        Keyword overrides (e.g. a custom ``rate_limit_message``) win over settings.
        """

        params: dict[str, Any] = {
            "request_limit": rate_limit_settings.request_limit,
            "time_window": rate_limit_settings.time_window,
            "enforce_request_spreading": rate_limit_settings.enforce_request_spreading,
            "id_matcher": rate_limit_settings.id_matcher,
            "id_value": rate_limit_settings.id_value,
            "create_key": make_key_factory(rate_limit_settings.key_prefix),
        }
        params.update(overrides)
        return cls.build(**params)


def _is_positive_number(value: object) -> bool:
    # bool is an int subclass; True must not pass as a limit of 1.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


def _compile_id_matcher(id_matcher: object) -> re.Pattern[str] | None:
    if id_matcher is _UNSET:
        return re.compile(DEFAULT_ID_MATCHER)
    if id_matcher is None or id_matcher is False:
        return None
    if isinstance(id_matcher, re.Pattern):
        return id_matcher
    if isinstance(id_matcher, str):
        try:
            return re.compile(id_matcher)
        except re.error as exc:
            raise _invalid("id_matcher", id_matcher, f"ID matcher option is not a valid regular expression: {exc}") from exc
    raise _invalid("id_matcher", id_matcher, "ID matcher option must be a regular expression.")


def _invalid(option: str, value: object, message: str) -> ConfigurationAppError:
    return ConfigurationAppError(
        code="invalid_limiter_option",
        message=message,
        details={"option": option, "actual_value": repr(value)[:80]},
    )
