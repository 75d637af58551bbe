"""
Bounded exponential-backoff retry for async operations.

Used around every network call that may fail transiently: S3 transfers,
ECS task launches. Validation errors are never retried.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class NonRetryableError(Exception):
    """Base for errors that retrying cannot fix (malformed input, bad keys)."""


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0

    def delay_for(self, attempt: int) -> float:
        """Delay after the given failed attempt (1-based)."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)


def _is_retryable(exc: BaseException) -> bool:
    return not isinstance(exc, NonRetryableError)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    description: str = "operation",
    retry_if: Callable[[BaseException], bool] = _is_retryable,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``operation`` until it succeeds or ``policy.max_attempts`` is spent.

    The last error is re-raised unchanged on exhaustion.
    """
    if policy.max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {policy.max_attempts}")

    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as exc:
            if not retry_if(exc) or attempt >= policy.max_attempts:
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "%s failed (attempt %d/%d): %s; retrying in %.1fs",
                description, attempt, policy.max_attempts, exc, delay,
            )
            await sleep(delay)
            attempt += 1
