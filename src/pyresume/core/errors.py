"""Exception types raised and delivered by pyresume.

Every failure reaches the caller through the same channel: the rejected
pending result, and the ``error`` argument of a completion callback. These
types mark the failures pyresume itself produces; failures raised by user
computations are delivered unchanged.
"""

from typing import Any

__all__ = [
    "PyresumeError",
    "CallbackError",
    "RepeatedCallbackError",
    "InvocationCancelled",
    "InvocationTimeout",
    "ConfigError",
]


class PyresumeError(Exception):
    """Base class for errors produced by pyresume."""


class CallbackError(PyresumeError):
    """A callback-style action reported a failure that is not an exception.

    Conventional ``(error, result)`` callbacks may pass any non-empty value
    as the error (a string, an error code, ...). It is wrapped so that it
    can be raised at the suspension point.

    Example:
        ```python
        def thunk(callback):
            callback("connection refused")

        try:
            yield thunk
        except CallbackError as e:
            assert e.error == "connection refused"
        ```

    Attributes:
        error: The original value passed as the callback's first argument
    """

    def __init__(self, error: Any):
        super().__init__(str(error))
        self.error = error

    def __repr__(self) -> str:
        return f"CallbackError(error={self.error!r})"


class RepeatedCallbackError(PyresumeError):
    """A single-shot completion callback was invoked more than once.

    Only raised when ``RunConfig.strict_callbacks`` is set; otherwise the
    extra call is dropped and logged.
    """


class InvocationCancelled(PyresumeError):
    """The invocation was cancelled before its computation finished.

    Delivered to the completion callback and used to reject the pending
    result. The computation is closed at its current suspension point, so
    its ``finally`` blocks run.
    """


class InvocationTimeout(InvocationCancelled, TimeoutError):
    """The invocation did not settle within its timeout.

    A timeout cancels the drive loop, so this is also an
    ``InvocationCancelled``. It is a builtin ``TimeoutError`` as well, so
    ``except TimeoutError`` keeps working for callers that do not know
    about pyresume.

    Attributes:
        timeout: The bound that expired, in seconds
    """

    def __init__(self, message: str, timeout: float | None = None):
        super().__init__(message)
        self.timeout = timeout


class ConfigError(PyresumeError, ValueError):
    """Invalid configuration value (for example a malformed environment variable)."""
