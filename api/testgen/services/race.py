"""
Timeout race helper.
Runs an awaitable against a timer; whichever settles first decides the outcome.
"""
import asyncio
import logging
from typing import Awaitable, Set, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Abandoned losers are parked here so the event loop keeps a strong reference
# until they finish on their own.
_abandoned: Set[asyncio.Future] = set()


def _release(task: asyncio.Future) -> None:
    _abandoned.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Abandoned task finished with %r", exc)


async def race_timeout(awaitable: Awaitable[T], timeout: float) -> T:
    """
    Await ``awaitable`` for at most ``timeout`` seconds.

    On timeout the underlying task is NOT cancelled: it keeps running in the
    background and its result is discarded.

    Raises:
        asyncio.TimeoutError: If the timer settles first.
    """
    task = asyncio.ensure_future(awaitable)
    done, _ = await asyncio.wait({task}, timeout=max(timeout, 0))
    if task in done:
        return task.result()

    _abandoned.add(task)
    task.add_done_callback(_release)
    raise asyncio.TimeoutError(f"operation did not finish within {timeout:.1f}s")


def abandoned_count() -> int:
    return len(_abandoned)
