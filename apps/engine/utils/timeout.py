"""Caller-supplied timeouts for store round-trips.

A store call that times out is one atomic failure: its partial results are
discarded and the call raises the store's unavailability error. No retries
happen here; retry policy belongs to the caller.

Usage:
    paths = await bounded_call(
        store.find_bounded_paths(team_id),
        timeout=settings.store_timeout_seconds,
        operation="find_bounded_paths",
        error_cls=GraphUnavailable,
    )
"""

import asyncio
from typing import Awaitable, Optional, TypeVar

from models.errors import StoreUnavailable
from utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


async def bounded_call(
    awaitable: Awaitable[T],
    timeout: Optional[float],
    operation: str,
    error_cls: type[StoreUnavailable],
) -> T:
    """Await a store call, converting a timeout into error_cls.

    Args:
        awaitable: The pending store call
        timeout: Seconds to wait; None waits indefinitely
        operation: Name used in logs and in the raised error
        error_cls: StoreUnavailable subclass raised on timeout

    Returns:
        The store call's result

    Raises:
        error_cls: If the call did not finish within timeout
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.error(f"{operation} timed out after {timeout}s")
        raise error_cls(operation, e) from e
