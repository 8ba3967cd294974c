"""Tests for the exponential backoff retry utility."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from hvac_search.errors import (
    AuthenticationError,
    FilterValidationError,
    RateLimitError,
    TransientNetworkError,
    UpstreamTimeoutError,
)
from hvac_search.retrieval.retry import (
    RetryOptions,
    calculate_backoff,
    error_status,
    is_retryable_error,
    retry_async,
)

STATUSES = RetryOptions().retryable_statuses


class StatusError(Exception):
    def __init__(self, status_code):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


class ServiceUnavailable(Exception):
    pass


class TestClassification:
    """Test retryable error classification."""

    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    def test_retryable_statuses(self, status):
        assert is_retryable_error(StatusError(status), STATUSES)

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 422])
    def test_client_errors_not_retried(self, status):
        assert not is_retryable_error(StatusError(status), STATUSES)

    def test_status_from_response(self):
        """Test that the status is read from an attached response."""
        error = Exception("boom")
        error.response = type("Response", (), {"status_code": 503})()

        assert error_status(error) == 503
        assert is_retryable_error(error, STATUSES)

    def test_class_name_markers(self):
        """Test Timeout/Unavailable in the class name."""
        assert is_retryable_error(ServiceUnavailable("down"), STATUSES)
        assert is_retryable_error(TimeoutError("slow"), STATUSES)

    @pytest.mark.parametrize(
        "message", ["ECONNRESET", "Connection reset by peer", "ETIMEDOUT", "ENOTFOUND host"]
    )
    def test_network_message_markers(self, message):
        assert is_retryable_error(RuntimeError(message), STATUSES)

    def test_plain_error_not_retried(self):
        assert not is_retryable_error(ValueError("bad input"), STATUSES)

    def test_typed_errors_use_retryable_flag(self):
        """Test that typed pipeline errors decide for themselves."""
        assert is_retryable_error(RateLimitError("slow down"), STATUSES)
        assert is_retryable_error(TransientNetworkError("reset"), STATUSES)
        assert not is_retryable_error(AuthenticationError("bad key"), STATUSES)
        assert not is_retryable_error(FilterValidationError("bad filter"), STATUSES)
        # Timeouts are surfaced rather than repeated
        assert not is_retryable_error(UpstreamTimeoutError("request timed out"), STATUSES)


class TestBackoff:
    """Test delay calculation."""

    def test_exponential_growth_without_jitter(self):
        delays = [calculate_backoff(n, 1.0, 60.0, rng=lambda: 0.0) for n in range(4)]

        assert delays == [1.0, 2.0, 4.0, 8.0]

    def test_capped_at_max_delay(self):
        assert calculate_backoff(10, 1.0, 60.0, rng=lambda: 0.0) == 60.0

    @given(
        attempt=st.integers(min_value=0, max_value=20),
        base=st.floats(min_value=0.01, max_value=5.0),
        ceiling=st.floats(min_value=5.0, max_value=120.0),
    )
    def test_jitter_bounded(self, attempt, base, ceiling):
        """Property: the delay lies between the capped exponential and 110% of it."""
        exponential = min(base * 2**attempt, ceiling)
        delay = calculate_backoff(attempt, base, ceiling)

        assert exponential <= delay <= exponential * 1.1 + 1e-9


class TestRetryAsync:
    """Test the retry loop."""

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        operation = AsyncMock(return_value="ok")
        sleep = AsyncMock()

        assert await retry_async(operation, sleep=sleep) == "ok"
        assert operation.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        operation = AsyncMock(side_effect=[StatusError(503), StatusError(429), "ok"])
        sleep = AsyncMock()

        result = await retry_async(operation, RetryOptions(max_retries=5, base_delay=1.0), sleep=sleep)

        assert result == "ok"
        assert operation.await_count == 3
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_non_retryable_raised_immediately(self):
        operation = AsyncMock(side_effect=StatusError(400))
        sleep = AsyncMock()

        with pytest.raises(StatusError):
            await retry_async(operation, sleep=sleep)

        assert operation.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_final_error_raised_after_exhaustion(self):
        errors = [StatusError(503), StatusError(502), StatusError(504)]
        operation = AsyncMock(side_effect=errors)
        sleep = AsyncMock()

        with pytest.raises(StatusError) as exc_info:
            await retry_async(operation, RetryOptions(max_retries=2), sleep=sleep)

        assert exc_info.value is errors[-1]
        assert operation.await_count == 3

    @settings(max_examples=25)
    @given(
        max_retries=st.integers(min_value=0, max_value=6),
        failures=st.integers(min_value=0, max_value=10),
    )
    def test_attempt_count_property(self, max_retries, failures):
        """Property: a transient failure sequence takes min(failures + 1, max_retries + 1) attempts."""
        outcomes = [StatusError(503)] * failures + ["ok"]
        operation = AsyncMock(side_effect=outcomes)
        sleep = AsyncMock()
        options = RetryOptions(max_retries=max_retries, base_delay=1.0, max_delay=60.0)

        if failures <= max_retries:
            assert asyncio.run(retry_async(operation, options, sleep=sleep)) == "ok"
        else:
            with pytest.raises(StatusError):
                asyncio.run(retry_async(operation, options, sleep=sleep))

        assert operation.await_count == min(failures + 1, max_retries + 1)
        delays = [c.args[0] for c in sleep.await_args_list]
        for n, delay in enumerate(delays):
            exponential = min(2.0**n, 60.0)
            assert exponential <= delay <= exponential * 1.1
