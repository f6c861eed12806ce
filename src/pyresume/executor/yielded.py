"""
Classification of yielded values.

A computation may suspend on almost anything. ``classify()`` maps a yielded
value to one of a closed set of kinds; the normalizer then has one branch
per kind.

Order matters: several shapes overlap (an empty list is both falsy and a
sequence, a generator function is callable), so the checks run in a fixed
order and the first match wins:

1. EMPTY                 falsy values
2. PENDING               futures, tasks, pending results, awaitables
3. NESTED_COMPUTATION    generator functions and ``async def`` functions
   CALLABLE              any other callable (a single-shot thunk)
4. ITERABLE_COMPUTATION  generator objects (``send`` + ``throw``)
5. SEQUENCE / MAPPING    lists, tuples and mappings of yieldables
6. PLAIN                 everything else
"""

import asyncio
import concurrent.futures
import inspect
from collections.abc import Mapping
from enum import Enum
from typing import Any

__all__ = [
    "YieldKind",
    "classify",
    "is_pending",
    "is_computation_factory",
    "is_generator_like",
]


class YieldKind(Enum):
    """Kind of value produced at a suspension point."""

    EMPTY = "EMPTY"
    """Falsy value; resumes immediately with the value itself."""

    PENDING = "PENDING"
    """Already a pending result; awaited as is."""

    CALLABLE = "CALLABLE"
    """Single-shot action taking a ``(error, result)`` completion callback."""

    NESTED_COMPUTATION = "NESTED_COMPUTATION"
    """Computation factory; called with the context and driven to completion."""

    ITERABLE_COMPUTATION = "ITERABLE_COMPUTATION"
    """Already-created computation; driven to completion."""

    SEQUENCE = "SEQUENCE"
    """List or tuple of yieldables; awaited together, order preserved."""

    MAPPING = "MAPPING"
    """Mapping of yieldables; awaited together, keys preserved."""

    PLAIN = "PLAIN"
    """Any other value; resumes immediately with the value itself."""

    @property
    def is_immediate(self) -> bool:
        """Check if values of this kind settle without waiting."""
        return self in (YieldKind.EMPTY, YieldKind.PLAIN)

    @property
    def is_composite(self) -> bool:
        """Check if values of this kind contain other yieldables."""
        return self in (YieldKind.SEQUENCE, YieldKind.MAPPING)

    def __str__(self) -> str:
        return self.value


def is_pending(value: Any) -> bool:
    """Check if a value already represents a pending result.

    Covers pyresume's own PendingResult, asyncio futures and tasks,
    ``concurrent.futures.Future`` and anything awaitable.
    """
    from pyresume.executor.pending import PendingResult

    if isinstance(value, (PendingResult, concurrent.futures.Future)):
        return True
    if asyncio.isfuture(value):
        return True
    # Generators decorated with types.coroutine are awaitable; plain ones are not.
    return inspect.isawaitable(value)


def is_computation_factory(value: Any) -> bool:
    """Check if a callable produces a computation when called.

    Sees through ``functools.wraps`` decorators, partials and routines
    created by ``run()``.
    """
    if not callable(value):
        return False
    target = inspect.unwrap(value)
    return inspect.isgeneratorfunction(target) or inspect.iscoroutinefunction(target)


def is_generator_like(value: Any) -> bool:
    """Check if a value is an already-created computation (has send and throw)."""
    return callable(getattr(value, "send", None)) and callable(getattr(value, "throw", None))


def classify(value: Any) -> YieldKind:
    """
    Classify a yielded value.

    Args:
        value: Whatever the computation produced at its suspension point

    Returns:
        The YieldKind selecting how the value is turned into a pending result

    Example:
        ```python
        assert classify(None) is YieldKind.EMPTY
        assert classify(asyncio.sleep(1)) is YieldKind.PENDING
        assert classify([delay(1), 2]) is YieldKind.SEQUENCE
        assert classify("done") is YieldKind.PLAIN
        ```
    """
    # Checked first so falsy values never reach the costlier predicates below
    try:
        if not value:
            return YieldKind.EMPTY
    except (TypeError, ValueError):
        # Objects with ambiguous truth (e.g. numpy arrays) are plain values
        return YieldKind.PLAIN

    if is_pending(value):
        return YieldKind.PENDING

    if callable(value):
        if is_computation_factory(value):
            return YieldKind.NESTED_COMPUTATION
        return YieldKind.CALLABLE

    if is_generator_like(value):
        return YieldKind.ITERABLE_COMPUTATION

    if isinstance(value, (list, tuple)):
        return YieldKind.SEQUENCE

    if isinstance(value, Mapping):
        return YieldKind.MAPPING

    return YieldKind.PLAIN
