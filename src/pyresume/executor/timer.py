"""
Timers.

``delay()`` is a PendingResult over ``asyncio.sleep``. Yield it from a
computation to pause it, or await it directly. Like every PendingResult it
can be cancelled or given a timeout.

Durations are in seconds, as everywhere in asyncio.
"""

import asyncio
from typing import TypeVar

from pyresume.executor.pending import PendingResult

__all__ = ["delay"]

T = TypeVar("T")


def delay(seconds: float, result: T = None) -> PendingResult[T]:
    """
    Pending result fulfilled with ``result`` after ``seconds``.

    Must be called from a running event loop.

    Args:
        seconds: How long to wait; zero or negative yields to the loop once
        result: Value to fulfill with (None by default)

    Example:
        ```python
        @run
        def poll(ctx, check):
            while not (yield check):
                yield delay(0.5)
        ```
    """
    return PendingResult.from_awaitable(asyncio.sleep(max(seconds, 0), result))
