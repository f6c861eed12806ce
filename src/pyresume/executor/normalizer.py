"""
Awaitable value normalizer.

``normalize()`` turns whatever a computation yields into an asyncio future
the driver can await. It has one branch per YieldKind (see
``pyresume.executor.yielded`` for the classification order):

- EMPTY, PLAIN: already-settled future holding the value itself
- PENDING: the value, wrapped as an asyncio future when needed
- NESTED_COMPUTATION: factory called with the same context, driven in its own task
- CALLABLE: thunk called with a single-shot ``(error, result)`` callback
- ITERABLE_COMPUTATION: generator driven in its own task, same context
- SEQUENCE, MAPPING: every element normalized, then awaited together

The normalizer never raises. A failure while turning a value into a future
(for example a thunk raising synchronously) becomes a rejected future, so
it surfaces at the suspension point like any asynchronous failure.

Only computation factories receive the context. A thunk is called as
``thunk(callback)`` with nothing bound to it, and its callback has no
receiver either: Python callables carry their own ``self``, so a thunk that
needs the context should close over it (or be a bound method).
"""

import asyncio
import logging
import threading
from collections.abc import Callable
from typing import Any

from pyresume.core.config import DEFAULT_CONFIG, RunConfig
from pyresume.core.errors import CallbackError, RepeatedCallbackError
from pyresume.executor.pending import to_future
from pyresume.executor.yielded import YieldKind, classify

logger = logging.getLogger(__name__)

__all__ = ["normalize", "CompletionCallback"]


def _settled(loop: asyncio.AbstractEventLoop, value: Any) -> asyncio.Future:
    future = loop.create_future()
    future.set_result(value)
    return future


def _failed(loop: asyncio.AbstractEventLoop, error: BaseException) -> asyncio.Future:
    future = loop.create_future()
    future.set_exception(error)
    return future


class CompletionCallback:
    """
    Single-shot ``callback(error, result=None)`` handed to a thunk.

    The first call settles the future: a non-empty ``error`` rejects it
    (wrapped in CallbackError unless it is an exception), otherwise it
    fulfills with ``result``. Later calls are dropped with a warning, or
    raise RepeatedCallbackError when strict callbacks are configured.

    The callback may be called from any thread. Calls from outside the
    event loop's thread are handed to the loop with
    ``call_soon_threadsafe``.

    Nothing is bound to the callback: it is a plain function of
    ``(error, result)``, not a method of the invocation context.
    """

    def __init__(self, future: asyncio.Future, *, strict: bool = False, name: str = "callback"):
        self._future = future
        self._loop = future.get_loop()
        self._strict = strict
        self._name = name
        self._called = False
        self._lock = threading.Lock()

    def __call__(self, error: Any = None, result: Any = None) -> None:
        with self._lock:
            already_called = self._called
            self._called = True

        if already_called:
            if self._strict:
                raise RepeatedCallbackError(f"{self._name} was called more than once")
            logger.warning(f"Ignoring repeated call of {self._name}")
            return

        if self._in_loop_thread():
            self._settle(error, result)
        else:
            self._loop.call_soon_threadsafe(self._settle, error, result)

    def _in_loop_thread(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False

    def _settle(self, error: Any, result: Any) -> None:
        # A cancelled suspension discards its late settlement
        if self._future.done():
            return
        if error:
            if not isinstance(error, BaseException):
                error = CallbackError(error)
            self._future.set_exception(error)
        else:
            self._future.set_result(result)


def _call_thunk(
    thunk: Callable[[CompletionCallback], Any],
    loop: asyncio.AbstractEventLoop,
    config: RunConfig,
) -> asyncio.Future:
    future = loop.create_future()
    callback = CompletionCallback(
        future,
        strict=config.strict_callbacks,
        name=f"completion callback of {getattr(thunk, '__qualname__', repr(thunk))}",
    )
    try:
        thunk(callback)
    except RepeatedCallbackError:
        raise
    except Exception as e:
        # After the first completion call the outcome is fixed
        if not future.done():
            future.set_exception(e)
    return future


def _drive_nested(value: Any, context: Any, kind: YieldKind, config: RunConfig) -> asyncio.Future:
    # Deferred: the driver imports this module
    from pyresume.executor.driver import Driver, call_computation, new_invocation_id
    from pyresume.executor.invocation import Routine

    if isinstance(value, Routine):
        # A routine already bound (e.g. an instance method) keeps its receiver
        if value.context is None:
            value = value.bind(context)
        return value().as_future()

    invocation_id = new_invocation_id()
    if kind is YieldKind.NESTED_COMPUTATION:
        body = call_computation(value, context, config=config, invocation_id=invocation_id)
    else:
        body = Driver(value, context, config, invocation_id).drive()
    return asyncio.ensure_future(body)


async def _gather_mapping(keys: list[Any], futures: list[asyncio.Future]) -> dict[Any, Any]:
    values = await asyncio.gather(*futures)
    return dict(zip(keys, values))


def _rebuild_sequence(template: list | tuple, values: list[Any]) -> list | tuple:
    if isinstance(template, list):
        return values
    if hasattr(template, "_make"):
        return template._make(values)
    return type(template)(values)


async def _gather_sequence(template: list | tuple, futures: list[asyncio.Future]) -> list | tuple:
    values = await asyncio.gather(*futures)
    return _rebuild_sequence(template, values)


def normalize(
    value: Any,
    context: Any,
    config: RunConfig = DEFAULT_CONFIG,
    *,
    kind: YieldKind | None = None,
) -> asyncio.Future:
    """
    Convert a yielded value into an asyncio future.

    Must be called from a running event loop.

    Args:
        value: Value produced at a suspension point
        context: Execution context of the yielding computation; nested
            computations are bound to it
        config: Run configuration (strict callbacks)
        kind: Pre-computed classification of ``value``

    Returns:
        Future settling with the value the computation resumes with, or
        with the failure to raise at the suspension point

    Example:
        ```python
        future = normalize([delay(0.1, 1), 2], context)
        assert await future == [1, 2]
        ```
    """
    loop = asyncio.get_running_loop()
    try:
        if kind is None:
            kind = classify(value)

        if kind.is_immediate:
            return _settled(loop, value)
        if kind is YieldKind.PENDING:
            return to_future(value, loop=loop)
        if kind in (YieldKind.NESTED_COMPUTATION, YieldKind.ITERABLE_COMPUTATION):
            return _drive_nested(value, context, kind, config)
        if kind is YieldKind.CALLABLE:
            return _call_thunk(value, loop, config)
        if kind is YieldKind.SEQUENCE:
            futures = [normalize(item, context, config) for item in value]
            return asyncio.ensure_future(_gather_sequence(value, futures))

        # MAPPING
        keys = list(value.keys())
        futures = [normalize(value[key], context, config) for key in keys]
        return asyncio.ensure_future(_gather_mapping(keys, futures))
    except Exception as e:
        return _failed(loop, e)
