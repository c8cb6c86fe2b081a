"""Explicit retry helper for async operations."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    delay: float,
    timeout: float | None = None,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    operation_name: str = "operation",
) -> T:
    """
    Run an async operation, retrying with a fixed delay between attempts.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt
        attempts: Total number of attempts (at least 1)
        delay: Seconds to wait between attempts
        timeout: Optional per-attempt timeout in seconds
        retry_on: Exception types that trigger another attempt
        sleep: Awaitable sleep function
        operation_name: Name used in log events

    Returns:
        The operation's result

    Raises:
        The last exception raised once all attempts are exhausted
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    for attempt in range(1, attempts + 1):
        try:
            if timeout is None:
                return await operation()
            return await asyncio.wait_for(operation(), timeout=timeout)
        except retry_on as e:
            if attempt == attempts:
                raise
            logger.warning(
                "retry_attempt_failed",
                operation=operation_name,
                attempt=attempt,
                max_attempts=attempts,
                retry_in=delay,
                error=str(e) or e.__class__.__name__,
            )
            await sleep(delay)

    # Unreachable: the loop either returns or raises
    raise RuntimeError("retry loop exited without result")
