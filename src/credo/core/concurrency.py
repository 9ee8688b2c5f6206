"""Deadline helpers for awaiting collaborator-bound work."""

import asyncio
from typing import Awaitable, Optional, TypeVar

import structlog

from credo.core.exceptions import ServiceUnavailableError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


async def with_deadline(awaitable: Awaitable[T], timeout: Optional[float], operation: str) -> T:
    """Awaits ``awaitable`` for at most ``timeout`` seconds.

    Args:
        awaitable: The coroutine to run.
        timeout: Deadline in seconds; ``None`` waits indefinitely.
        operation: Name used in the log event when the deadline passes.

    Returns:
        The awaitable's result.

    Raises:
        ServiceUnavailableError: If the deadline passes first. The awaited work
            is cancelled.
    """
    if timeout is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        logger.warning("Operation deadline exceeded", operation=operation, timeout=timeout)
        raise ServiceUnavailableError(
            f"Operation '{operation}' did not complete in time", code="deadline_exceeded"
        ) from exc
