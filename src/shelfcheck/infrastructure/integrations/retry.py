# Hey future me - this is the retry layer for STRICT catalogs (MusicBrainz)!
#
# MusicBrainz answers 503 whenever it feels overloaded and resets connections when
# it decides you're too chatty. Both are temporary: wait a bit, try again, done.
#
# WHAT IS RETRIED:
# - CatalogConnectionError (reset/refused/DNS hiccups)
# - CatalogTimeoutError
# - CatalogHttpError with status 429/500/502/503/504
#
# EVERYTHING ELSE (404, 400, parse errors, ...) is wrapped in NonRetryableCatalogError and
# raised immediately - retrying a 404 five times just burns the rate limit.
#
# BACKOFF: initial_delay * factor^attempt, capped at max_delay, plus 0-50% jitter.
# With the defaults: ~5s -> ~10s -> ~20s, three retries, then the last error surfaces.
"""Retry with exponential backoff for catalog requests."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import TypeVar

from shelfcheck.domain.exceptions import (
    CatalogConnectionError,
    CatalogHttpError,
    CatalogTimeoutError,
    NonRetryableCatalogError,
    RateLimitExceededError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUSES: frozenset[int] = frozenset({429, 500, 502, 503, 504})


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff parameters.

    Attributes:
        max_retries: Retries AFTER the first attempt (3 -> up to 4 attempts)
        initial_delay: Delay before the first retry, seconds
        max_delay: Cap for the exponential delay (before jitter), seconds
        backoff_factor: Multiplier per attempt
        jitter: Add 0-50% random extra delay
        retryable_statuses: HTTP statuses worth retrying
    """

    max_retries: int = 3
    initial_delay: float = 5.0
    max_delay: float = 30.0
    backoff_factor: float = 2.0
    jitter: bool = True
    retryable_statuses: frozenset[int] = RETRYABLE_STATUSES


def is_retryable_error(
    error: BaseException, retryable_statuses: frozenset[int] = RETRYABLE_STATUSES
) -> bool:
    """Check whether a catalog error is transient."""
    if isinstance(error, (CatalogConnectionError, CatalogTimeoutError)):
        return True
    if isinstance(error, CatalogHttpError):
        return error.status_code in retryable_statuses
    return False


def compute_backoff_delay(
    attempt: int,
    policy: RetryPolicy,
    rand: Callable[[], float] = random.random,
) -> float:
    """Delay before retry number ``attempt + 1`` (attempt is zero-based)."""
    delay = policy.initial_delay * (policy.backoff_factor**attempt)
    delay = min(delay, policy.max_delay)
    if policy.jitter:
        delay += delay * 0.5 * rand()
    return delay


def parse_retry_after(value: str | None, now: datetime | None = None) -> float | None:
    """Parse a Retry-After header (delta-seconds or HTTP date) into seconds.

    Returns None for missing or unparseable values, never negative.
    """
    if not value:
        return None

    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass

    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=UTC)
    now = now or datetime.now(UTC)
    return max(0.0, (retry_at - now).total_seconds())


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    context: str = "catalog request",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    rand: Callable[[], float] = random.random,
) -> T:
    """Run ``operation`` and retry transient catalog failures.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        policy: Backoff parameters (defaults to RetryPolicy())
        context: Label for log messages
        sleep: Awaitable sleep (injectable for tests)
        rand: Jitter source returning [0, 1)

    Returns:
        The operation's result

    Raises:
        NonRetryableCatalogError: first non-transient failure, wrapped
        CatalogHttpError | CatalogTimeoutError | CatalogConnectionError: the last
            transient failure once retries are exhausted
    """
    policy = policy or RetryPolicy()

    for attempt in range(policy.max_retries + 1):
        try:
            return await operation()
        except NonRetryableCatalogError:
            raise
        except Exception as e:
            if not is_retryable_error(e, policy.retryable_statuses):
                raise NonRetryableCatalogError(e, getattr(e, "service", None)) from e

            if attempt >= policy.max_retries:
                logger.error(
                    "%s failed after %d attempts, giving up: %s",
                    context,
                    attempt + 1,
                    e,
                )
                raise

            delay = compute_backoff_delay(attempt, policy, rand)
            # Hey future me - a server-provided Retry-After beats our guess, but never
            # wait longer than max_delay * 1.5 (the jitter ceiling) for a single retry
            if isinstance(e, RateLimitExceededError) and e.retry_after is not None:
                delay = min(max(delay, e.retry_after), policy.max_delay * 1.5)

            logger.warning(
                "%s - retry %d/%d in %.1fs: %s",
                context,
                attempt + 1,
                policy.max_retries,
                delay,
                e,
            )
            await sleep(delay)

    # Unreachable: the loop either returns or raises
    raise RuntimeError(f"{context}: retry loop exited without result")


__all__ = [
    "RETRYABLE_STATUSES",
    "RetryPolicy",
    "compute_backoff_delay",
    "is_retryable_error",
    "parse_retry_after",
    "retry_with_backoff",
]
