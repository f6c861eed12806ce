"""
Invocation wrapper - exposes the driver as an ordinary callable.

``run(function)`` turns a generator function into a Routine. Calling the
routine starts one invocation on the running event loop and returns an
Invocation, a PendingResult that settles with the computation's outcome.

Two ways to get the result, usable together:

- pending-result style: ``await``, ``then()``, ``timeout()``, ``cancel()``
- callback style: pass a callable as the last positional argument; it is
  called once with ``(None, result)`` or ``(error, None)``

The execution context is the routine's bound receiver. A routine stored on
a class binds the instance on attribute access, like a method; otherwise
``routine.bind(context)`` binds explicitly, and an unbound call gets a
fresh empty Context.

Example:
    ```python
    class Users:
        def __init__(self, db):
            self.db = db

        @run
        def fetch(self, user_id):
            row = yield self.db.query(user_id)     # awaitable
            avatar = yield resume(load_avatar)(row["avatar_id"])
            return {"row": row, "avatar": avatar}

    user = await Users(db).fetch(42).timeout(5.0)

    # or, callback style
    Users(db).fetch(42, lambda error, user: print(error or user))
    ```
"""

import asyncio
import functools
import logging
from collections.abc import Callable, Coroutine
from typing import Any, Generic, TypeVar

from pyresume.core.config import DEFAULT_CONFIG, RunConfig
from pyresume.core.context import resolve_context
from pyresume.core.errors import InvocationTimeout
from pyresume.executor.driver import call_computation, drive, new_invocation_id
from pyresume.executor.outcome import Fulfilled, Outcome, Rejected
from pyresume.executor.pending import PendingResult, settled_outcome

logger = logging.getLogger(__name__)

__all__ = ["Invocation", "Routine", "run", "execute"]

R = TypeVar("R")

CompletionHandler = Callable[[BaseException | None, Any], Any]


class Invocation(PendingResult[R]):
    """
    Pending result of one routine call.

    Attributes:
        context: Execution context bound for this invocation
        invocation_id: UUIDv7 string identifying the invocation in logs
        config: Run configuration in effect
    """

    def __init__(
        self,
        future: asyncio.Future,
        context: Any,
        invocation_id: str,
        config: RunConfig = DEFAULT_CONFIG,
    ):
        super().__init__(future)
        self.context = context
        self.invocation_id = invocation_id
        self.config = config

    @classmethod
    def start(
        cls,
        body: Coroutine[Any, Any, R],
        context: Any,
        *,
        config: RunConfig = DEFAULT_CONFIG,
        invocation_id: str | None = None,
        callback: CompletionHandler | None = None,
    ) -> "Invocation[R]":
        """
        Schedule ``body`` as a task and return its Invocation.

        Args:
            body: Coroutine running the computation (usually a driver)
            context: Execution context bound for the invocation
            config: Run configuration; its timeout is applied here
            invocation_id: Id for logs and the task name
            callback: Completion callback, called once with ``(error, result)``

        Raises:
            RuntimeError: If no event loop is running
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            body.close()
            raise RuntimeError(
                "pyresume routines need a running event loop; "
                "call them from async code or use asyncio.run(execute(...))"
            ) from None

        invocation_id = invocation_id or new_invocation_id()
        invocation = cls(loop.create_future(), context, invocation_id, config)
        task = loop.create_task(body, name=f"{config.task_name_prefix}-{invocation_id}")
        invocation._track(task)
        logger.debug(f"Invocation {invocation_id} started")

        if callback is not None:
            invocation._future.add_done_callback(invocation._completion(callback))

        if config.timeout is not None:
            invocation._expire_after(config.timeout)

        return invocation

    def _completion(self, callback: CompletionHandler) -> Callable[[asyncio.Future], None]:
        def deliver(future: asyncio.Future) -> None:
            error, result = settled_outcome(future).as_callback_args()
            try:
                callback(error, result)
            except Exception:
                logger.exception(f"Completion callback of invocation {self.invocation_id} raised")

        return deliver

    def _expire_after(self, seconds: float) -> None:
        loop = self._future.get_loop()

        def expire() -> None:
            if self._cancel_with(
                InvocationTimeout(f"invocation timed out after {seconds}s", timeout=seconds)
            ):
                logger.info(f"Invocation {self.invocation_id} timed out after {seconds}s")

        handle = loop.call_later(seconds, expire)
        self._future.add_done_callback(lambda _: handle.cancel())

    def cancel(self, msg: str | None = None) -> bool:
        """
        Cancel the drive loop.

        The computation is closed at its current suspension point and the
        invocation rejects with InvocationCancelled; the completion
        callback, if any, receives the same error.

        Returns:
            True if cancellation was requested, False if already settled
        """
        requested = super().cancel(msg or f"invocation {self.invocation_id} was cancelled")
        if requested:
            logger.info(f"Invocation {self.invocation_id} cancelled")
        return requested

    def __repr__(self) -> str:
        return f"Invocation(id={self.invocation_id!r}, status={self.status})"


class Routine(Generic[R]):
    """
    Callable wrapper around a generator function.

    Calling a routine starts an invocation. The generator function receives
    the execution context as its first argument, followed by the call's
    arguments.

    If the last positional argument is callable it is taken as the
    completion callback and not forwarded. Pass callables as keyword
    arguments when they are genuine inputs.

    Usage:
        ```python
        @run
        def add_later(ctx, a, b):
            yield delay(0.1)
            return a + b

        assert await add_later(1, 2) == 3
        add_later(1, 2, lambda error, total: print(total))
        ```
    """

    def __init__(
        self,
        function: Callable[..., Any],
        *,
        config: RunConfig | None = None,
        context: Any = None,
    ):
        if not callable(function):
            raise TypeError(f"run() needs a generator function, got {type(function).__name__}")
        functools.update_wrapper(self, function)
        self._function = function
        self._config = config or DEFAULT_CONFIG
        self._context = context

    @property
    def config(self) -> RunConfig:
        """Run configuration applied to every invocation."""
        return self._config

    @property
    def context(self) -> Any:
        """Bound execution context, or None for a fresh Context per call."""
        return self._context

    def bind(self, context: Any) -> "Routine[R]":
        """Return a routine bound to ``context``."""
        return Routine(self._function, config=self._config, context=context)

    def with_config(self, config: RunConfig) -> "Routine[R]":
        """Return a routine using ``config``."""
        return Routine(self._function, config=config, context=self._context)

    def __get__(self, instance: Any, owner: type | None = None) -> "Routine[R]":
        if instance is None:
            return self
        return self.bind(instance)

    def __call__(self, *args: Any, **kwargs: Any) -> Invocation[R]:
        callback = None
        if args and callable(args[-1]):
            callback, args = args[-1], args[:-1]

        context = resolve_context(self._context)
        invocation_id = new_invocation_id()
        body = call_computation(
            self._function,
            context,
            args,
            kwargs,
            config=self._config,
            invocation_id=invocation_id,
        )
        return Invocation.start(
            body,
            context,
            config=self._config,
            invocation_id=invocation_id,
            callback=callback,
        )

    def __repr__(self) -> str:
        name = getattr(self._function, "__qualname__", repr(self._function))
        return f"Routine({name})"


def run(
    function: Callable[..., Any] | None = None,
    *,
    config: RunConfig | None = None,
) -> Routine[Any] | Callable[[Callable[..., Any]], Routine[Any]]:
    """
    Wrap a generator function into a Routine.

    Works as a plain function and as a decorator, with or without
    arguments.

    Args:
        function: Generator function taking the context as first argument
        config: Run configuration for every invocation

    Returns:
        Routine (or a decorator producing one)

    Example:
        ```python
        @run
        def job(ctx):
            return (yield delay(0.1, "done"))

        @run(config=RunConfig(timeout=2.0))
        def bounded_job(ctx):
            yield delay(10)

        routine = run(lambda ctx: (yield 1))
        ```
    """

    def decorator(f: Callable[..., Any]) -> Routine[Any]:
        return Routine(f, config=config)

    if function is None:
        return decorator
    return decorator(function)


async def execute(
    function: Callable[..., Any],
    *args: Any,
    context: Any = None,
    config: RunConfig | None = None,
    **kwargs: Any,
) -> Outcome[Any]:
    """
    Run one computation and return its outcome instead of raising.

    Args:
        function: Generator function, generator, or Routine
        *args: Arguments for the generator function
        context: Execution context (a fresh empty Context if None)
        config: Run configuration
        **kwargs: Keyword arguments for the generator function

    Returns:
        Fulfilled(value) or Rejected(error)

    Example:
        ```python
        outcome = asyncio.run(execute(job))
        if is_fulfilled(outcome):
            print(outcome.value)
        ```
    """
    invocation = drive(function, *args, context=context, config=config, **kwargs)
    try:
        value = await invocation
    except Exception as e:
        return Rejected(e)
    return Fulfilled(value)
