"""Exponential backoff retry for calls to remote services."""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from hvac_search.logging_config import truncate

logger = logging.getLogger(__name__)

T = TypeVar("T")

NETWORK_MESSAGE_MARKERS = (
    "econnreset",
    "connection reset",
    "etimedout",
    "timed out",
    "enotfound",
    "name or service not known",
    "temporary failure in name resolution",
    "network",
)


@dataclass(frozen=True)
class RetryOptions:
    """Retry policy.

    Attributes:
        max_retries: Retries after the first attempt
        base_delay: Base delay in seconds
        max_delay: Ceiling for the exponential part of the delay, in seconds
        retryable_statuses: HTTP status codes worth retrying
    """

    max_retries: int = 5
    base_delay: float = 1.0
    max_delay: float = 60.0
    retryable_statuses: frozenset[int] = field(
        default_factory=lambda: frozenset({429, 500, 502, 503, 504})
    )


def error_status(error: BaseException) -> int | None:
    """Extract an HTTP-like status code from an exception, if it has one."""
    for attr in ("status_code", "status"):
        status = getattr(error, attr, None)
        if isinstance(status, int) and not isinstance(status, bool):
            return status
    response = getattr(error, "response", None)
    status = getattr(response, "status_code", None)
    if isinstance(status, int) and not isinstance(status, bool):
        return status
    return None


def is_retryable_error(error: BaseException, retryable_statuses: frozenset[int]) -> bool:
    """Decide whether an error is transient.

    An explicit ``retryable`` attribute (set on the typed pipeline errors)
    takes precedence over status, class name and message heuristics.
    """
    explicit = getattr(error, "retryable", None)
    if isinstance(explicit, bool):
        return explicit

    status = error_status(error)
    if status is not None and status in retryable_statuses:
        return True

    name = type(error).__name__
    if "Timeout" in name or "Unavailable" in name:
        return True

    message = str(error).lower()
    return any(marker in message for marker in NETWORK_MESSAGE_MARKERS)


def calculate_backoff(
    attempt: int,
    base_delay: float,
    max_delay: float,
    rng: Callable[[], float] = random.random,
) -> float:
    """Delay before the next attempt: capped exponential plus up to 10% jitter.

    Args:
        attempt: Zero-based index of the attempt that just failed
        base_delay: Base delay in seconds
        max_delay: Ceiling for the exponential part
        rng: Source of uniform values in [0, 1)

    Returns:
        Delay in seconds
    """
    exponential = min(base_delay * (2**attempt), max_delay)
    return exponential + rng() * exponential * 0.1


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    options: RetryOptions | None = None,
    operation_name: str = "operation",
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """Run an async operation, retrying transient failures with backoff.

    Makes at most ``max_retries + 1`` attempts. Non-retryable errors are
    raised immediately; after the last attempt the final error is raised.

    Args:
        operation: Zero-argument coroutine factory
        options: Retry policy (defaults to RetryOptions())
        operation_name: Name used in log messages
        sleep: Awaitable sleep, replaceable in tests

    Returns:
        Result of the first successful attempt
    """
    opts = options or RetryOptions()
    attempts = opts.max_retries + 1

    for attempt in range(attempts):
        try:
            return await operation()
        except Exception as e:
            if not is_retryable_error(e, opts.retryable_statuses):
                logger.error(
                    f"{operation_name} failed with non-retryable error: "
                    f"{type(e).__name__}: {truncate(str(e))}"
                )
                raise

            if attempt == attempts - 1:
                logger.error(
                    f"{operation_name} failed after {attempts} attempts: "
                    f"{type(e).__name__}: {truncate(str(e))}"
                )
                raise

            delay = calculate_backoff(attempt, opts.base_delay, opts.max_delay)
            logger.warning(
                f"{operation_name} failed (attempt {attempt + 1}/{attempts}): "
                f"{type(e).__name__}: {truncate(str(e))}. Retrying in {delay:.2f}s..."
            )
            await sleep(delay)

    # Unreachable: the loop either returns or raises
    raise RuntimeError(f"{operation_name} exhausted retries")
