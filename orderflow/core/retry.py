"""
Bounded retry with backoff for adapter calls.

Only RetryableError (StorageError, NotificationError) is retried. Fatal
errors and unexpected exceptions propagate on the first attempt.
"""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional, Union

from loguru import logger

from orderflow.core.exceptions import RetryableError

RetryDelay = Union[str, int, float, List[float]]
RetryCallback = Callable[[int, float, BaseException], Awaitable[None]]

MAX_BACKOFF_SECONDS = 300


async def execute_with_retries(
    func: Callable[..., Awaitable[Any]],
    *args: Any,
    name: str,
    max_retries: int,
    retry_delay: RetryDelay = "exponential",
    on_retry: Optional[RetryCallback] = None,
    **kwargs: Any,
) -> Any:
    """
    Call an async adapter function, retrying retryable failures.

    Args:
        func: The coroutine function to call
        *args: Positional arguments
        name: Operation name for logging
        max_retries: Maximum number of retries after the first attempt
        retry_delay: Retry delay strategy
        on_retry: Optional callback awaited before each retry with
            (next attempt number, delay, error)
        **kwargs: Keyword arguments

    Returns:
        Result of the function

    Raises:
        RetryableError: If all attempts are exhausted
    """
    for attempt in range(max_retries + 1):
        try:
            return await func(*args, **kwargs)

        except RetryableError as e:
            if attempt >= max_retries:
                logger.error(
                    f"{name} failed after {max_retries + 1} attempts",
                    error=str(e),
                )
                raise

            delay = e.retry_after if e.retry_after is not None else get_retry_delay(
                retry_delay, attempt
            )
            logger.warning(
                f"{name} failed (attempt {attempt + 1}/{max_retries + 1}), retrying in {delay}s",
                error=str(e),
            )
            if on_retry is not None:
                await on_retry(attempt + 2, delay, e)
            if delay > 0:
                await asyncio.sleep(delay)

    raise AssertionError("unreachable")  # pragma: no cover


def get_retry_delay(retry_delay: RetryDelay, attempt: int) -> float:
    """
    Calculate retry delay based on strategy.

    Args:
        retry_delay: Delay strategy ("exponential", number, or list)
        attempt: Current attempt number (0-indexed)

    Returns:
        Delay in seconds
    """
    if retry_delay == "exponential":
        # 1, 2, 4, 8, 16, ... capped
        return min(2**attempt, MAX_BACKOFF_SECONDS)
    elif isinstance(retry_delay, (int, float)):
        return retry_delay
    elif isinstance(retry_delay, list):
        if attempt < len(retry_delay):
            return retry_delay[attempt]
        return retry_delay[-1] if retry_delay else 1
    else:
        return 1
