"""Retry with exponential backoff for store bootstrap.

Only schema and table creation retry here, while a freshly started database
is still coming up. Engine reads never retry; that policy belongs to the
caller.

Usage:
    from utils.retry import with_retry

    await with_retry(
        create_indexes,
        is_retryable=is_unavailable_error,
        operation_name="Neo4j index creation",
    )
"""

import asyncio
import random
from typing import Any, Awaitable, Callable, TypeVar

from utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def calculate_backoff(
    attempt: int,
    base: float = 1.0,
    max_delay: float = 8.0,
    jitter: bool = True,
) -> float:
    """Calculate exponential backoff with optional jitter.

    Args:
        attempt: Current attempt number (0-indexed)
        base: Base delay in seconds
        max_delay: Maximum delay cap in seconds
        jitter: Whether to add random jitter (0-1s)

    Returns:
        Delay in seconds before next retry
    """
    delay = min(base * (2**attempt), max_delay)
    if jitter:
        delay += random.uniform(0, 1)
    return delay


async def with_retry(
    operation: Callable[..., Awaitable[T]],
    *args: Any,
    is_retryable: Callable[[BaseException], bool],
    max_retries: int = 3,
    base_delay: float = 1.0,
    operation_name: str = "store operation",
    **kwargs: Any,
) -> T:
    """Await operation, retrying while is_retryable(error) holds.

    Args:
        operation: Async callable to execute
        *args: Positional arguments for the operation
        is_retryable: Decides whether a raised error is worth another attempt
        max_retries: Attempts after the first one
        base_delay: Base delay for exponential backoff
        operation_name: Name for logging purposes
        **kwargs: Keyword arguments for the operation

    Raises:
        The last exception once retries are exhausted, or the first
        non-retryable one
    """
    for attempt in range(max_retries + 1):
        try:
            return await operation(*args, **kwargs)
        except Exception as e:
            if not is_retryable(e):
                logger.error(
                    f"Non-retryable error in {operation_name}: {type(e).__name__}: {e}"
                )
                raise

            if attempt >= max_retries:
                logger.error(
                    f"{operation_name} failed after {max_retries + 1} attempts. "
                    f"Last error: {type(e).__name__}: {e}"
                )
                raise

            delay = calculate_backoff(attempt, base_delay)
            logger.warning(
                f"{operation_name} attempt {attempt + 1}/{max_retries + 1} failed: "
                f"{type(e).__name__}: {e}. Retrying in {delay:.2f}s"
            )
            await asyncio.sleep(delay)

    raise RuntimeError(f"Unexpected state in retry for {operation_name}")
