"""
Async retry with exponential backoff.

Mutations sent to the remote store are retried when the failure is
transient. Uses exponential backoff with jitter so clients that failed
together do not retry in lockstep.

Example:
    >>> config = RetryConfig(max_attempts=3, base_delay=0.5)
    >>> entry = await retry_async(
    ...     lambda: gateway.create_entry("j1", "Hello", [], fields, "u1"),
    ...     config,
    ...     operation="create_entry",
    ... )

Configuration:
    - Default attempts: 3 (the first call plus two retries)
    - Default base delay: 0.5 seconds
    - Default multiplier: 2.0x per retry
    - Jitter: Random variance of ±20% added to delay
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tradefeed.core.gateway.exceptions import GatewayError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryConfig:
    """
    Configuration for retry behavior.

    Attributes:
        max_attempts: Total number of attempts, including the first (default: 3)
        base_delay: Delay in seconds before the first retry (default: 0.5)
        multiplier: Exponential backoff multiplier (default: 2.0)
        jitter: Whether to add jitter to delays (default: True)
        jitter_ratio: Random variance ratio for jitter (default: 0.2 = ±20%)
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 0.5,
        multiplier: float = 2.0,
        jitter: bool = True,
        jitter_ratio: float = 0.2,
    ) -> None:
        """
        Initialize retry configuration.

        Raises:
            ValueError: If parameters are invalid
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if base_delay < 0:
            raise ValueError("base_delay must be non-negative")
        if multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")
        if not 0.0 <= jitter_ratio <= 1.0:
            raise ValueError("jitter_ratio must be between 0.0 and 1.0")

        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.multiplier = multiplier
        self.jitter = jitter
        self.jitter_ratio = jitter_ratio

    def calculate_delay(self, attempt: int) -> float:
        """
        Calculate the delay before the retry that follows ``attempt``.

        Uses exponential backoff: delay = base_delay * (multiplier ^ attempt)

        Args:
            attempt: Failed attempt number (0-indexed)

        Returns:
            Delay in seconds before next attempt
        """
        delay = self.base_delay * (self.multiplier**attempt)

        if self.jitter:
            variance = delay * self.jitter_ratio
            delay = delay + random.uniform(-variance, variance)

        return max(0.0, delay)


def is_retryable_error(exception: BaseException) -> bool:
    """
    Determine if an exception is a transient, retryable gateway error.

    Only NetworkError (including per-call timeouts) qualifies.
    AuthenticationError, ValidationError and anything that is not a
    gateway error fail immediately.
    """
    return isinstance(exception, GatewayError) and exception.retryable


async def retry_async(
    func: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    *,
    operation: str = "operation",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    on_retry: Callable[[int, BaseException], None] | None = None,
) -> T:
    """
    Call ``func`` until it succeeds, fails permanently or runs out of attempts.

    Args:
        func: Zero-argument factory producing a fresh awaitable per attempt
        config: Retry configuration (default: RetryConfig())
        operation: Name used in log messages
        sleep: Awaitable sleep function (injectable for tests)
        on_retry: Called with (attempt number, error) before each retry

    Returns:
        The result of the first successful attempt

    Raises:
        The last exception raised by ``func`` once it is non-retryable or
        attempts are exhausted.
    """
    config = config or RetryConfig()

    for attempt in range(config.max_attempts):
        try:
            return await func()
        except Exception as e:
            if not is_retryable_error(e):
                logger.debug(f"{operation}: Non-retryable error on attempt {attempt + 1}: {e}")
                raise

            if attempt + 1 >= config.max_attempts:
                logger.warning(
                    f"{operation}: Giving up after {config.max_attempts} attempts: {e}"
                )
                raise

            delay = config.calculate_delay(attempt)
            logger.warning(
                f"{operation}: Attempt {attempt + 1}/{config.max_attempts} failed, "
                f"retrying in {delay:.2f}s: {e}"
            )
            if on_retry is not None:
                on_retry(attempt + 1, e)
            await sleep(delay)

    # Unreachable: the loop either returns or raises
    raise RuntimeError("Retry loop completed without success or exception")


__all__ = [
    "RetryConfig",
    "is_retryable_error",
    "retry_async",
]
