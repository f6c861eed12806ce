"""
PendingResult - single-assignment result with chaining, timeout and cancellation.

A PendingResult wraps an ``asyncio.Future`` that only pyresume settles. It
moves once from PENDING to FULFILLED or REJECTED; cancellation and timeout
are rejections carrying InvocationCancelled / InvocationTimeout, never a
raw ``asyncio.CancelledError``.

How the pieces connect:
- ``_future``: the settled value, private to this object
- ``_inner``: the asyncio future or task whose completion settles it
  (a driver task, a timer, a handler's awaitable)
- ``_source``: for chained results, the PendingResult it was derived from;
  ``cancel()`` on a chained result travels back to its source

Awaiting a PendingResult (or yielding it from a computation) waits on a
linked copy of ``_future``. Cancelling that waiter cancels the
PendingResult, which is how cancellation reaches a nested invocation.

Example:
    ```python
    result = fetch_user(42)            # an Invocation, i.e. a PendingResult
    named = result.then(lambda user: user.name).timeout(5.0)
    print(await named)
    ```
"""

import asyncio
import concurrent.futures
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

from pyresume.core.errors import InvocationCancelled, InvocationTimeout
from pyresume.core.status import SettlementStatus
from pyresume.executor.outcome import Fulfilled, Outcome, Rejected
from pyresume.executor.yielded import is_pending

logger = logging.getLogger(__name__)

__all__ = ["PendingResult", "to_future", "settled_outcome"]

R = TypeVar("R")
T = TypeVar("T")


def settled_outcome(future: asyncio.Future) -> Outcome[Any]:
    """Read a done future as an Outcome.

    Always retrieves the exception, so asyncio does not report it as
    "never retrieved" once the outcome has been observed here.
    """
    if future.cancelled():
        return Rejected(InvocationCancelled("pending result was cancelled"))
    error = future.exception()
    if error is not None:
        return Rejected(error)
    return Fulfilled(future.result())


def _settle(future: asyncio.Future, outcome: Outcome[Any]) -> None:
    if future.done():
        return
    if isinstance(outcome, Rejected):
        future.set_exception(outcome.error)
    else:
        future.set_result(outcome.value)


def to_future(value: Any, loop: asyncio.AbstractEventLoop | None = None) -> asyncio.Future:
    """Turn a pending-result-like value into an asyncio future.

    Args:
        value: A PendingResult, asyncio future/task, concurrent future,
            coroutine or other awaitable
        loop: Event loop for wrapped values (defaults to the running loop)

    Returns:
        An asyncio future that settles with the same outcome
    """
    if isinstance(value, PendingResult):
        return value.as_future()
    if isinstance(value, concurrent.futures.Future):
        return asyncio.wrap_future(value, loop=loop)
    return asyncio.ensure_future(value, loop=loop)


class PendingResult(Generic[R]):
    """
    A value or failure that is not known yet.

    Usage:
        ```python
        pending = PendingResult.resolved(1)
        doubled = pending.then(lambda v: v * 2)
        assert await doubled == 2

        slow = delay(10)
        try:
            await slow.timeout(0.1)
        except InvocationTimeout:
            ...
        ```
    """

    def __init__(self, future: asyncio.Future, *, source: "PendingResult[Any] | None" = None):
        """
        Initialize around a future owned by this pending result.

        Prefer the factories (``resolved``, ``rejected``, ``from_awaitable``)
        or the values returned by pyresume APIs.

        Args:
            future: Fresh future that only this object settles
            source: Result this one was derived from (for cancel forwarding)
        """
        self._future = future
        self._source = source
        self._inner: asyncio.Future | None = None
        self._cancel_error: InvocationCancelled | None = None

    # =========================================================================
    # Factories
    # =========================================================================

    @classmethod
    def resolved(cls, value: T) -> "PendingResult[T]":
        """Create a result already fulfilled with ``value`` (needs a running loop)."""
        future = asyncio.get_running_loop().create_future()
        future.set_result(value)
        return cls(future)

    @classmethod
    def rejected(cls, error: BaseException) -> "PendingResult[Any]":
        """Create a result already rejected with ``error`` (needs a running loop)."""
        future = asyncio.get_running_loop().create_future()
        future.set_exception(error)
        return cls(future)

    @classmethod
    def from_awaitable(cls, awaitable: Awaitable[T] | Any) -> "PendingResult[T]":
        """Wrap an awaitable, asyncio future or concurrent future.

        Returns the argument itself when it already is a PendingResult.
        """
        if isinstance(awaitable, PendingResult):
            return awaitable
        inner = to_future(awaitable)
        result = cls(inner.get_loop().create_future())
        result._track(inner)
        return result

    def _track(self, inner: asyncio.Future) -> None:
        """Settle this result from ``inner`` once it completes."""
        self._inner = inner
        inner.add_done_callback(self._settle_from_inner)

    def _settle_from_inner(self, inner: asyncio.Future) -> None:
        if inner.cancelled():
            if self._future.done():
                return
            error = self._cancel_error or InvocationCancelled("pending result was cancelled")
            self._future.set_exception(error)
            return
        # Retrieve even when already settled (e.g. a timeout won the race)
        _settle(self._future, settled_outcome(inner))

    # =========================================================================
    # State
    # =========================================================================

    def done(self) -> bool:
        """Check if the result has settled."""
        return self._future.done()

    @property
    def status(self) -> SettlementStatus:
        """Current settlement status."""
        if not self._future.done():
            return SettlementStatus.PENDING
        if self._future.exception() is not None:
            return SettlementStatus.REJECTED
        return SettlementStatus.FULFILLED

    def cancelled(self) -> bool:
        """Check if the result was rejected by cancellation (or timeout)."""
        return self._future.done() and isinstance(self._future.exception(), InvocationCancelled)

    def outcome(self) -> Outcome[R]:
        """
        Return the settled outcome.

        Raises:
            asyncio.InvalidStateError: If the result is still pending
        """
        if not self._future.done():
            raise asyncio.InvalidStateError("pending result is not settled yet")
        return settled_outcome(self._future)

    def result(self) -> R:
        """Return the value, or raise the error, of a settled result."""
        return self.outcome().unwrap()

    def exception(self) -> BaseException | None:
        """Return the error of a settled result, or None if it fulfilled."""
        outcome = self.outcome()
        return outcome.error if isinstance(outcome, Rejected) else None

    def add_done_callback(self, fn: Callable[["PendingResult[R]"], Any]) -> None:
        """Call ``fn(self)`` from the event loop once the result settles."""
        self._future.add_done_callback(lambda _: fn(self))

    # =========================================================================
    # Awaiting
    # =========================================================================

    def as_future(self) -> asyncio.Future:
        """
        Return a linked asyncio future with the same outcome.

        The linked future can be awaited, gathered or cancelled freely:
        cancelling it cancels this pending result, and the private future
        underneath is never cancelled by asyncio.
        """
        linked = self._future.get_loop().create_future()

        def forward(future: asyncio.Future) -> None:
            outcome = settled_outcome(future)
            if not linked.done():
                _settle(linked, outcome)

        def backward(future: asyncio.Future) -> None:
            if future.cancelled():
                self.cancel("waiter was cancelled")

        self._future.add_done_callback(forward)
        linked.add_done_callback(backward)
        return linked

    def __await__(self):
        return self.as_future().__await__()

    # =========================================================================
    # Chaining
    # =========================================================================

    def then(
        self,
        on_fulfilled: Callable[[R], Any] | None = None,
        on_rejected: Callable[[BaseException], Any] | None = None,
    ) -> "PendingResult[Any]":
        """
        Derive a result from this one once it settles.

        The matching handler receives the value or the error. Its return
        value fulfills the derived result; if it returns something awaitable
        the derived result follows that instead. If it raises, the derived
        result rejects. A missing handler passes the outcome through.

        ``cancel()`` on the derived result cancels this one first, so a
        rejection handler observes the cancellation.

        Example:
            ```python
            routine().then(None, lambda error: log.warning("failed: %s", error))
            ```
        """
        chained: PendingResult[Any] = PendingResult(
            self._future.get_loop().create_future(), source=self
        )

        def settle(future: asyncio.Future) -> None:
            outcome = settled_outcome(future)
            if chained._future.done():
                return
            if isinstance(outcome, Fulfilled):
                handler, argument = on_fulfilled, outcome.value
            else:
                handler, argument = on_rejected, outcome.error
            if handler is None:
                _settle(chained._future, outcome)
                return
            try:
                value = handler(argument)
            except Exception as e:
                chained._future.set_exception(e)
                return

            if is_pending(value):
                chained._track(to_future(value, loop=future.get_loop()))
            else:
                chained._future.set_result(value)

        self._future.add_done_callback(settle)
        return chained

    def catch(self, on_rejected: Callable[[BaseException], Any]) -> "PendingResult[Any]":
        """Shorthand for ``then(None, on_rejected)``."""
        return self.then(None, on_rejected)

    def finally_(self, handler: Callable[[], Any]) -> "PendingResult[R]":
        """Call ``handler()`` once settled and pass the outcome through unchanged."""

        def on_fulfilled(value: R) -> R:
            handler()
            return value

        def on_rejected(error: BaseException) -> Any:
            handler()
            raise error

        return self.then(on_fulfilled, on_rejected)

    # =========================================================================
    # Timeout & cancellation
    # =========================================================================

    def timeout(self, seconds: float, message: str | None = None) -> "PendingResult[R]":
        """
        Derive a result that rejects if this one does not settle in time.

        On expiry the derived result rejects with InvocationTimeout and this
        result is cancelled with the same error, so an invocation's drive
        loop stops and its callback sees the timeout too.

        Args:
            seconds: Time bound
            message: Error message (defaults to "timed out after {seconds}s")

        Example:
            ```python
            try:
                await slow_routine().timeout(0.5)
            except InvocationTimeout:
                ...
            ```
        """
        loop = self._future.get_loop()
        timed: PendingResult[R] = PendingResult(loop.create_future(), source=self)

        def expire() -> None:
            if timed._future.done():
                return
            error = InvocationTimeout(message or f"timed out after {seconds}s", timeout=seconds)
            logger.info(f"Pending result timed out after {seconds}s")
            timed._future.set_exception(error)
            self._cancel_with(error)

        handle = loop.call_later(seconds, expire)

        def finish(future: asyncio.Future) -> None:
            handle.cancel()
            outcome = settled_outcome(future)
            _settle(timed._future, outcome)

        self._future.add_done_callback(finish)
        return timed

    def cancel(self, msg: str | None = None) -> bool:
        """
        Request cancellation.

        The result rejects with InvocationCancelled once whatever produces
        it has stopped. A chained result forwards the request to its source
        while the source is still pending.

        Returns:
            True if cancellation was requested, False if it is too late
        """
        return self._cancel_with(InvocationCancelled(msg or "pending result was cancelled"))

    def _cancel_with(self, error: InvocationCancelled) -> bool:
        if self._future.done():
            return False
        if self._source is not None and not self._source.done():
            return self._source._cancel_with(error)
        self._cancel_error = error
        if self._inner is not None:
            if self._inner.done():
                return False
            return self._inner.cancel(msg=str(error))
        self._future.set_exception(error)
        return True

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status={self.status})"
