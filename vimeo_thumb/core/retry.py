"""Bounded retry of the Vimeo metadata lookup"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

import httpx

from .exceptions import UpstreamTimeoutError
from .logging import performance_metrics
from .settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class RetryPolicy:
    """
    How the metadata lookup is retried.

    ``budget`` covers the whole lookup, backoff waits included, so a retried
    lookup still finishes within the metadata deadline.
    """
    max_attempts: int = 1
    base_delay: float = 0.2
    budget: float = 2.0
    jitter: bool = True
    retry_on: Tuple[Type[Exception], ...] = (httpx.TransportError,)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.metadata_retry_attempts,
            base_delay=settings.retry_base_delay,
            budget=settings.metadata_timeout
        )

    def backoff(self, attempt: int) -> float:
        """Wait before the attempt after ``attempt``, doubling each time"""
        delay = self.base_delay * (2 ** (attempt - 1))
        if self.jitter:
            # 50% to 150% of the nominal delay
            delay *= 0.5 + random.random()
        return delay


class RetryError(Exception):
    """Every attempt failed with a retryable error, or the budget ran out between attempts"""

    def __init__(self, attempts: int, last_exception: Exception):
        self.attempts = attempts
        self.last_exception = last_exception
        super().__init__(f"Failed after {attempts} attempts. Last error: {last_exception}")


async def retry_async(
    attempt_func: Callable[[float], Awaitable[Any]],
    policy: RetryPolicy,
    operation: Optional[str] = None
) -> Any:
    """
    Run ``attempt_func(remaining)`` until it succeeds.

    ``remaining`` is the part of the budget still left; the attempt must give
    up by then. A timed-out attempt has used the whole budget, so timeouts
    always propagate. Each retry is counted under ``operation`` in the
    performance metrics.

    Args:
        attempt_func: Coroutine function making one attempt
        policy: Attempts, backoff and budget
        operation: Metrics name to count retries under

    Returns:
        Result of the first successful attempt

    Raises:
        RetryError: When the attempts or the budget run out
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + policy.budget
    last_exception = None
    attempt = 0

    while attempt < policy.max_attempts:
        attempt += 1
        try:
            result = await attempt_func(deadline - loop.time())
        except (httpx.TimeoutException, UpstreamTimeoutError):
            raise
        except policy.retry_on as e:
            last_exception = e
        else:
            if attempt > 1:
                logger.info(f"Metadata lookup succeeded on attempt {attempt}")
            return result

        if attempt == policy.max_attempts:
            logger.warning(f"Metadata lookup failed after {attempt} attempts: {last_exception}")
            break

        delay = policy.backoff(attempt)
        if loop.time() + delay >= deadline:
            logger.warning(
                f"Metadata lookup failed on attempt {attempt}: {last_exception}. "
                f"No time left within {policy.budget}s for another attempt"
            )
            break

        logger.warning(
            f"Metadata lookup failed on attempt {attempt}: {last_exception}. "
            f"Retrying in {delay:.2f}s"
        )
        if operation:
            performance_metrics.record_retry(operation)
        await asyncio.sleep(delay)

    raise RetryError(attempt, last_exception)
