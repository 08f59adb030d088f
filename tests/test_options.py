"""Unit tests for limiter option validation, defaults and request spreading."""

import re

import pytest

from redis_rate_limit.core.config import RateLimitSettings
from redis_rate_limit.core.errors import ConfigurationAppError
from redis_rate_limit.core.keys import RequestDescriptor
from redis_rate_limit.core.options import (
    DEFAULT_INTERNAL_ERROR_MESSAGE,
    LimiterOptions,
    MAX_WINDOW_MS,
    MessageFactory,
    StaticMessage,
    default_create_key,
    seconds_human,
)


class TestDefaults:
    def test_sixty_requests_per_minute(self) -> None:
        options = LimiterOptions.build()

        assert options.request_limit == 60
        assert options.time_window == 60
        assert options.window_ms == 60_000
        assert options.enforce_request_spreading is False

    def test_default_id_matcher_targets_trailing_document_ids(self) -> None:
        options = LimiterOptions.build()

        assert options.id_matcher is not None
        assert options.id_matcher.search("/items/5f1d7c2e9b1e8a3d4c5b6a70")
        assert options.id_value == ":id"

    def test_default_key_includes_ip_method_and_url(self) -> None:
        descriptor = RequestDescriptor(ip="10.0.0.1", method="GET", url="/items?page=2")

        assert default_create_key(descriptor) == "RL/10.0.0.1/GET/items?page=2"

    def test_default_rate_limit_message_reports_wait(self) -> None:
        options = LimiterOptions.build()

        body = options.rate_limit_message.render(2_500)

        assert body == {
            "error": {
                "message": "Rate limit reached. Try again in 3 seconds.",
                "timeout": 2_500,
                "type": "RATE_LIMIT",
            }
        }

    def test_default_internal_error_message(self) -> None:
        options = LimiterOptions.build()

        assert options.internal_error_message.render() == DEFAULT_INTERNAL_ERROR_MESSAGE


@pytest.mark.parametrize(
    ("ttl", "expected"),
    [(1, "1 second"), (1_000, "1 second"), (1_001, "2 seconds"), (60_000, "60 seconds")],
)
def test_seconds_human(ttl: int, expected: str) -> None:
    assert seconds_human(ttl) == expected


class TestRequestSpreading:
    def test_transforms_limit_and_window_once(self) -> None:
        options = LimiterOptions.build(request_limit=10, time_window=60, enforce_request_spreading=True)

        assert options.request_limit == 1
        assert options.time_window == 6
        assert options.window_ms == 6_000

    def test_fractional_sub_window(self) -> None:
        options = LimiterOptions.build(request_limit=8, time_window=1, enforce_request_spreading=True)

        assert options.request_limit == 1
        assert options.window_ms == 125

    def test_smallest_sub_window_is_one_millisecond(self) -> None:
        options = LimiterOptions.build(request_limit=1000, time_window=1, enforce_request_spreading=True)

        assert options.window_ms == 1

    def test_sub_millisecond_sub_window_is_rejected(self) -> None:
        with pytest.raises(ConfigurationAppError) as exc_info:
            LimiterOptions.build(request_limit=2000, time_window=1, enforce_request_spreading=True)

        assert exc_info.value.details is not None
        assert exc_info.value.details["option"] == "time_window"

    def test_disabled_keeps_values(self) -> None:
        options = LimiterOptions.build(request_limit=10, time_window=60)

        assert options.request_limit == 10
        assert options.time_window == 60


class TestMessageVariants:
    def test_callable_becomes_factory(self) -> None:
        options = LimiterOptions.build(rate_limit_message=lambda ttl: {"wait": ttl})

        assert isinstance(options.rate_limit_message, MessageFactory)
        assert options.rate_limit_message.render(1234) == {"wait": 1234}

    def test_mapping_becomes_static(self) -> None:
        options = LimiterOptions.build(rate_limit_message={"message": "Exceeded rate limit."})

        assert isinstance(options.rate_limit_message, StaticMessage)
        assert options.rate_limit_message.render(1) == {"message": "Exceeded rate limit."}
        assert options.rate_limit_message.render(9_999) == {"message": "Exceeded rate limit."}

    def test_custom_internal_error_message(self) -> None:
        options = LimiterOptions.build(internal_error_message={"oops": True})

        assert options.internal_error_message.render() == {"oops": True}


class TestIdMatcher:
    def test_accepts_string_pattern(self) -> None:
        options = LimiterOptions.build(id_matcher=r"\d+$")

        assert options.id_matcher == re.compile(r"\d+$")

    def test_accepts_compiled_pattern(self) -> None:
        pattern = re.compile(r"[A-Z0-9]{20}$")
        options = LimiterOptions.build(id_matcher=pattern)

        assert options.id_matcher is pattern

    @pytest.mark.parametrize("disabled", [None, False])
    def test_can_be_disabled(self, disabled: object) -> None:
        options = LimiterOptions.build(id_matcher=disabled)  # type: ignore[arg-type]

        assert options.id_matcher is None

    def test_id_value_not_checked_when_matcher_disabled(self) -> None:
        options = LimiterOptions.build(id_matcher=None, id_value=123)  # type: ignore[arg-type]

        assert options.id_matcher is None


@pytest.mark.parametrize(
    ("kwargs", "option"),
    [
        ({"request_limit": 0}, "request_limit"),
        ({"request_limit": -5}, "request_limit"),
        ({"request_limit": 2.5}, "request_limit"),
        ({"request_limit": True}, "request_limit"),
        ({"request_limit": "10"}, "request_limit"),
        ({"time_window": 0}, "time_window"),
        ({"time_window": -1.5}, "time_window"),
        ({"time_window": float("inf")}, "time_window"),
        ({"time_window": "60"}, "time_window"),
        ({"time_window": 0.0004}, "time_window"),
        ({"request_limit": 2000, "time_window": 1, "enforce_request_spreading": True}, "time_window"),
        ({"time_window": 1e16}, "time_window"),
        ({"enforce_request_spreading": "yes"}, "enforce_request_spreading"),
        ({"id_matcher": 42}, "id_matcher"),
        ({"id_matcher": "[unclosed"}, "id_matcher"),
        ({"id_value": 7}, "id_value"),
        ({"create_key": "RL/static"}, "create_key"),
        ({"rate_limit_message": "slow down"}, "rate_limit_message"),
        ({"internal_error_message": "boom"}, "internal_error_message"),
    ],
)
def test_invalid_options_fail_fast(kwargs: dict, option: str) -> None:
    with pytest.raises(ConfigurationAppError) as exc_info:
        LimiterOptions.build(**kwargs)

    assert exc_info.value.code == "invalid_limiter_option"
    assert exc_info.value.details is not None
    assert exc_info.value.details["option"] == option


def test_options_are_immutable() -> None:
    options = LimiterOptions.build()

    with pytest.raises(AttributeError):
        options.request_limit = 5  # type: ignore[misc]


class TestFromSettings:
    def test_maps_settings_and_key_prefix(self) -> None:
        rl_settings = RateLimitSettings(
            request_limit=5,
            time_window=10,
            id_matcher=r"\d+$",
            id_value="{id}",
            key_prefix="API",
        )

        options = LimiterOptions.from_settings(rl_settings)
        descriptor = RequestDescriptor(ip="1.2.3.4", method="GET", url="/items/42")

        assert options.request_limit == 5
        assert options.window_ms == 10_000
        assert options.id_value == "{id}"
        assert options.create_key(descriptor) == "API/1.2.3.4/GET/items/42"

    def test_applies_spreading(self) -> None:
        rl_settings = RateLimitSettings(request_limit=4, time_window=2, enforce_request_spreading=True)

        options = LimiterOptions.from_settings(rl_settings)

        assert options.request_limit == 1
        assert options.window_ms == 500

    @pytest.mark.parametrize("raw", ["", "false", "None", "off"])
    def test_id_matcher_disabled_from_env_strings(self, raw: str) -> None:
        rl_settings = RateLimitSettings(id_matcher=raw)

        assert rl_settings.id_matcher is None
        assert LimiterOptions.from_settings(rl_settings).id_matcher is None

    def test_overrides_win(self) -> None:
        options = LimiterOptions.from_settings(
            RateLimitSettings(request_limit=5),
            rate_limit_message={"message": "nope"},
        )

        assert options.rate_limit_message.render(0) == {"message": "nope"}


def test_window_upper_bound() -> None:
    options = LimiterOptions.build(time_window=9_000_000_000_000)

    assert options.window_ms == 9_000_000_000_000_000 <= MAX_WINDOW_MS
