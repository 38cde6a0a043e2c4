"""
Bounded timeouts for gateway calls.

The remote store offers no request cancellation of its own, so every
gateway call is wrapped in a wall-clock budget. An expired budget is
reported as a NetworkError with ``timed_out=True``; whether that is
retried depends on the caller (mutations retry, reads surface it).

Example:
    >>> entries = await call_with_timeout(
    ...     gateway.list_entries("j1", 50), timeout_seconds=10.0, operation="list_entries"
    ... )
"""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from tradefeed.core.gateway.exceptions import NetworkError

T = TypeVar("T")


async def call_with_timeout(
    awaitable: Awaitable[T],
    timeout_seconds: float | None,
    *,
    operation: str = "gateway call",
) -> T:
    """
    Await a gateway call with a timeout.

    Args:
        awaitable: The pending gateway call
        timeout_seconds: Budget in seconds; None or 0 disables the timeout
        operation: Name used in the error message

    Returns:
        The result of the call

    Raises:
        NetworkError: If the budget is exceeded (``timed_out=True``)
        asyncio.CancelledError: If the awaiting task is cancelled externally
        Exception: Any exception raised by the call itself
    """
    if not timeout_seconds:
        return await awaitable

    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_seconds)
    except asyncio.TimeoutError:
        raise NetworkError(
            f"{operation} timed out after {timeout_seconds:g}s",
            timed_out=True,
            operation=operation,
        ) from None


__all__ = ["call_with_timeout"]
