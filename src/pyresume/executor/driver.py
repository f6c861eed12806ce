"""
Coroutine driver - runs a generator-based computation to completion.

The computation is a plain generator. Each ``yield`` is a suspension point:
the yielded value goes through the normalizer, the driver awaits the
resulting future, then resumes the generator with the value (``send``) or
raises the failure at the ``yield`` (``throw``) so the computation's own
``try/except`` can handle it.

Ordering: a driver runs one step at a time. Step N+1 never starts before
the future of step N has settled. Every step passes through the event loop,
even when the yielded value is already settled: suspension points are the
only places a computation gives up control, and they always do. A timeout
or cancel therefore reaches a computation that only yields plain values.
Different drivers (siblings, nested computations, unrelated invocations)
run concurrently on the event loop.

Cancellation: when the task running ``drive()`` is cancelled, asyncio
cancels the future it is waiting on, which carries the cancellation into
the in-flight suspension. The generator is then closed so its ``finally``
blocks run, and the cancellation propagates.

Example:
    ```python
    def greet(ctx, name):
        greeting = yield delay(0.1, "hello")
        return f"{greeting} {name}"

    driver = Driver(greet(Context(), "world"), context)
    assert await driver.drive() == "hello world"
    ```
"""

import asyncio
import inspect
import logging
from collections.abc import Callable, Generator
from typing import TYPE_CHECKING, Any

from uuid_extensions import uuid7

from pyresume.core.config import DEFAULT_CONFIG, RunConfig
from pyresume.core.context import resolve_context
from pyresume.core.errors import InvocationCancelled
from pyresume.executor.normalizer import normalize
from pyresume.executor.yielded import classify, is_generator_like

if TYPE_CHECKING:
    from pyresume.executor.invocation import Invocation

logger = logging.getLogger(__name__)

__all__ = ["Driver", "call_computation", "drive", "new_invocation_id"]


def new_invocation_id() -> str:
    """Return a time-ordered unique id (UUIDv7) for logs and task names."""
    return str(uuid7())


class Driver:
    """
    Drives one computation instance.

    A Driver is created per invocation (and per nested computation) and is
    never shared. It holds the computation's execution context explicitly;
    every nested computation it spawns is bound to the same context.

    Attributes:
        computation: The generator being driven
        context: Execution context (receiver) of the computation
        config: Run configuration
        invocation_id: Id used in log lines
        steps: Number of suspension points reached so far
    """

    def __init__(
        self,
        computation: Generator[Any, Any, Any],
        context: Any,
        config: RunConfig = DEFAULT_CONFIG,
        invocation_id: str | None = None,
    ):
        if not is_generator_like(computation):
            raise TypeError(
                f"Driver needs a generator (with send and throw), got {type(computation).__name__}"
            )
        self.computation = computation
        self.context = context
        self.config = config
        self.invocation_id = invocation_id or new_invocation_id()
        self.steps = 0

    async def drive(self) -> Any:
        """
        Run the computation until it returns or raises.

        Returns:
            The computation's return value

        Raises:
            Exception: Whatever the computation raised, including failures
                injected at a suspension point that it did not catch
            asyncio.CancelledError: If the task running the driver is cancelled
        """
        computation = self.computation
        value: Any = None
        error: BaseException | None = None

        try:
            while True:
                try:
                    if error is not None:
                        yielded = computation.throw(error)
                    else:
                        yielded = computation.send(value)
                except StopIteration as stop:
                    logger.debug(
                        f"Invocation {self.invocation_id} returned after {self.steps} steps"
                    )
                    return stop.value
                except Exception as e:
                    logger.debug(
                        f"Invocation {self.invocation_id} raised {type(e).__name__} "
                        f"after {self.steps} steps"
                    )
                    raise

                self.steps += 1
                kind = classify(yielded)
                logger.debug(f"Invocation {self.invocation_id} step {self.steps}: {kind}")

                pending = normalize(yielded, self.context, self.config, kind=kind)
                try:
                    if pending.done():
                        # Every suspension point gives the loop one turn
                        await asyncio.sleep(0)
                    value, error = await pending, None
                except asyncio.CancelledError:
                    if self._is_cancelling():
                        if pending.done() and not pending.cancelled():
                            pending.exception()
                        raise
                    # The awaited result was cancelled by someone else; that is
                    # a failure of this suspension, not of the drive loop.
                    value, error = None, InvocationCancelled("awaited result was cancelled")
                except Exception as e:
                    value, error = None, e
        except asyncio.CancelledError:
            logger.debug(f"Invocation {self.invocation_id} cancelled at step {self.steps}")
            close = getattr(computation, "close", None)
            if close is not None:
                close()
            raise

    @staticmethod
    def _is_cancelling() -> bool:
        task = asyncio.current_task()
        return task is not None and task.cancelling() > 0

    def __repr__(self) -> str:
        return f"Driver(invocation_id={self.invocation_id!r}, steps={self.steps})"


async def call_computation(
    factory: Callable[..., Any],
    context: Any,
    args: tuple[Any, ...] = (),
    kwargs: dict[str, Any] | None = None,
    *,
    config: RunConfig = DEFAULT_CONFIG,
    invocation_id: str | None = None,
) -> Any:
    """
    Call a computation factory with its context and run what it produces.

    The factory is called as ``factory(context, *args, **kwargs)``. A
    generator result is driven by a new Driver; an awaitable result (from
    an ``async def`` factory) is awaited; any other result is returned as
    is. Calling the factory happens inside the caller's task, so an
    exception it raises becomes the failure of that task rather than
    escaping to whoever started it.
    """
    produced = factory(context, *args, **(kwargs or {}))
    if is_generator_like(produced):
        return await Driver(produced, context, config, invocation_id).drive()
    if inspect.isawaitable(produced):
        return await produced
    return produced


def drive(
    computation: Callable[..., Any] | Generator[Any, Any, Any],
    *args: Any,
    context: Any = None,
    config: RunConfig | None = None,
    **kwargs: Any,
) -> "Invocation[Any]":
    """
    Start driving a computation and return its pending result.

    Functional counterpart of ``run(function)(*args)``.

    Args:
        computation: Generator function (called as ``fn(context, *args, **kwargs)``)
            or an already-created generator
        *args: Arguments for the generator function
        context: Execution context (a fresh empty Context if None)
        config: Run configuration
        **kwargs: Keyword arguments for the generator function

    Returns:
        Invocation settling with the computation's outcome

    Example:
        ```python
        result = await drive(fetch_user, 42, context=session)
        ```
    """
    from pyresume.executor.invocation import Invocation, Routine

    if isinstance(computation, Routine):
        return computation.bind(context)(*args, **kwargs)

    config = config or DEFAULT_CONFIG
    bound = resolve_context(context)
    invocation_id = new_invocation_id()

    if is_generator_like(computation):
        if args or kwargs:
            raise TypeError("arguments cannot be passed to an already-created generator")
        body = Driver(computation, bound, config, invocation_id).drive()
    elif callable(computation):
        body = call_computation(
            computation, bound, args, kwargs, config=config, invocation_id=invocation_id
        )
    else:
        raise TypeError(
            f"drive() needs a generator or generator function, got {type(computation).__name__}"
        )

    return Invocation.start(body, bound, config=config, invocation_id=invocation_id)
