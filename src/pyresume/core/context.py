"""Execution context bound to one invocation.

The context is the receiver of a computation: it is passed as the first
positional argument of the generator function, the same place ``self``
takes in a method, and is handed unchanged to every nested generator
function the computation yields.

Design: Explicit Receiver
    The context travels as a parameter of the drive loop and is stored on
    each Driver. Nothing stores it in module-level or task-local state, so
    two invocations progressing on the same event loop never see each
    other's context.

Any object can serve as a context. When the caller binds none, each
invocation gets a fresh, empty ``Context``.
"""

from types import SimpleNamespace
from typing import Any

__all__ = ["Context", "resolve_context"]


class Context(SimpleNamespace):
    """Empty attribute bag used when an invocation has no bound receiver.

    Usage:
        ```python
        @run
        def counter(ctx):
            ctx.count = 0
            for _ in range(3):
                ctx.count += yield 1
            return ctx.count
        ```
    """

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in vars(self).items())
        return f"Context({fields})"


def resolve_context(context: Any) -> Any:
    """Return the context to bind for one invocation.

    ``None`` means "no receiver" and produces a new empty Context; any other
    object is used as is, even if falsy (an empty dict is a valid context).
    """
    if context is None:
        return Context()
    return context
