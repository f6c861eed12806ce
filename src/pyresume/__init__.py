"""
pyresume: generator coroutines driven by asyncio.

Write sequential-looking generator functions and yield whatever you are
waiting on: asyncio futures and coroutines, callback-style thunks, other
generators, plain values, or lists and dicts of any of these. pyresume
resumes the generator with each result, raises each failure at the
``yield``, and hands back a pending result you can await, chain, time out
or cancel, or a completion callback if you prefer.

Example:
    ```python
    import asyncio
    from pyresume import delay, resume, run

    def lookup(key, callback):
        callback(None, key.upper())

    @run
    def report(ctx, key):
        ctx.calls = 0
        name, (a, b) = yield [resume(lookup)(key), [delay(0.1, 1), 2]]
        ctx.calls += 1
        return f"{name}: {a + b}"

    async def main():
        print(await report("x"))                      # X: 3
        report("y", lambda error, text: print(text))  # callback style
        await delay(0.2)

    asyncio.run(main())
    ```
"""

# Core types
from pyresume.core import (
    DEFAULT_CONFIG,
    CallbackError,
    ConfigError,
    Context,
    InvocationCancelled,
    InvocationTimeout,
    PyresumeError,
    RepeatedCallbackError,
    RunConfig,
    SettlementStatus,
)

# Execution
from pyresume.executor import (
    Driver,
    Fulfilled,
    Invocation,
    Outcome,
    PendingResult,
    Rejected,
    Routine,
    YieldKind,
    classify,
    delay,
    drive,
    execute,
    is_fulfilled,
    is_rejected,
    normalize,
    run,
)

# Callback adaptation
from pyresume.adapters import resume, resume_raw

# Version
__version__ = "0.1.0"

__all__ = [
    # Core types
    "Context",
    "RunConfig",
    "DEFAULT_CONFIG",
    "SettlementStatus",
    # Errors
    "PyresumeError",
    "CallbackError",
    "RepeatedCallbackError",
    "InvocationCancelled",
    "InvocationTimeout",
    "ConfigError",
    # Invocation
    "run",
    "Routine",
    "Invocation",
    "execute",
    "drive",
    "Driver",
    # Pending results
    "PendingResult",
    "Outcome",
    "Fulfilled",
    "Rejected",
    "is_fulfilled",
    "is_rejected",
    # Normalizer
    "YieldKind",
    "classify",
    "normalize",
    # Helpers
    "delay",
    "resume",
    "resume_raw",
    # Metadata
    "__version__",
]
