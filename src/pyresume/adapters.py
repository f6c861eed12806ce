"""
Callback adaptation helpers.

Turn callback-accepting functions into functions that return a
PendingResult, so a computation can yield them:

- ``resume(fn)``: ``fn`` reports through a conventional
  ``callback(error, result)``
- ``resume_raw(fn)``: ``fn`` calls its callback with any number of
  arguments; all of them arrive as one list, and none is treated as an error

In both cases the callback is appended as the last argument, only its first
call counts, and an exception raised synchronously by ``fn`` rejects the
result.

Example:
    ```python
    def read_config(path, callback):
        # Called back from a worker thread; that is fine
        threading.Thread(target=lambda: callback(None, load(path))).start()

    @run
    def start(ctx):
        config = yield resume(read_config)("app.toml")
        ...
    ```
"""

import asyncio
import functools
from collections.abc import Callable
from typing import Any

from pyresume.executor.normalizer import CompletionCallback
from pyresume.executor.pending import PendingResult

__all__ = ["resume", "resume_raw"]


def _receiver_bound(function: Callable[..., Any], context: Any) -> Callable[..., Any]:
    # The receiver goes first, where a method expects self
    if context is None:
        return function
    return functools.partial(function, context)


def _start(target: Callable[..., Any], args: tuple[Any, ...], make_callback) -> PendingResult[Any]:
    future = asyncio.get_running_loop().create_future()
    completion = CompletionCallback(
        future, name=f"callback of {getattr(target, '__qualname__', repr(target))}"
    )
    try:
        target(*args, make_callback(completion))
    except Exception as e:
        if not future.done():
            future.set_exception(e)
    return PendingResult.from_awaitable(future)


def resume(
    function: Callable[..., Any], context: Any = None
) -> Callable[..., PendingResult[Any]]:
    """
    Adapt a function taking a trailing ``(error, result)`` callback.

    Args:
        function: Called as ``function(*args, callback)``
        context: Receiver passed as the first argument when given

    Returns:
        Function taking ``*args`` and returning a PendingResult

    Example:
        ```python
        def lookup(key, callback):
            callback(None, cache.get(key))

        value = yield resume(lookup)("user:42")
        ```
    """
    target = _receiver_bound(function, context)

    @functools.wraps(function)
    def adapted(*args: Any) -> PendingResult[Any]:
        return _start(target, args, lambda completion: completion)

    return adapted


def resume_raw(
    function: Callable[..., Any], context: Any = None
) -> Callable[..., PendingResult[list[Any]]]:
    """
    Adapt a function whose trailing callback takes arbitrary arguments.

    The result fulfills with the list of every argument the callback
    received. The first argument is not interpreted as an error.

    Args:
        function: Called as ``function(*args, callback)``
        context: Receiver passed as the first argument when given

    Returns:
        Function taking ``*args`` and returning a PendingResult of a list

    Example:
        ```python
        def on_message(callback):
            callback("topic", b"payload", 3)

        topic, payload, attempt = yield resume_raw(on_message)()
        ```
    """
    target = _receiver_bound(function, context)

    def packaging(completion: CompletionCallback) -> Callable[..., None]:
        def callback(*values: Any) -> None:
            completion(None, list(values))

        return callback

    @functools.wraps(function)
    def adapted(*args: Any) -> PendingResult[list[Any]]:
        return _start(target, args, packaging)

    return adapted
