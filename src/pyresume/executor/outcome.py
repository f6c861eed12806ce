"""
Settled outcomes of a pending result.

This module defines the Outcome union returned by ``PendingResult.outcome()``
and ``execute()``.

**Design Pattern**: State Machine using Union types

A settled result is either Fulfilled(value) or Rejected(error). Callers who
prefer values over exceptions can match on the outcome instead of wrapping
``await`` in try/except.

Example:
    ```python
    outcome = await execute(fetch_user, user_id)

    match outcome:
        case Fulfilled(value):
            print(f"Got user: {value}")
        case Rejected(error):
            print(f"Failed: {error}")
    ```
"""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

__all__ = [
    "Fulfilled",
    "Rejected",
    "Outcome",
    "is_fulfilled",
    "is_rejected",
]

# Type variable for the fulfilled value type
R = TypeVar("R")


@dataclass(frozen=True)
class Fulfilled(Generic[R]):
    """
    The pending result settled with a value.

    Attributes:
        value: The computation's return value
    """

    value: R

    def unwrap(self) -> R:
        """Return the value."""
        return self.value

    def as_callback_args(self) -> tuple[None, R]:
        """Arguments for a conventional ``(error, result)`` callback."""
        return None, self.value

    def __str__(self) -> str:
        return f"Fulfilled({self.value!r})"


@dataclass(frozen=True)
class Rejected:
    """
    The pending result settled with an error.

    Cancellation and timeout are rejections too, with InvocationCancelled
    and InvocationTimeout respectively.

    Attributes:
        error: The exception that rejected the result
    """

    error: BaseException

    def unwrap(self) -> Any:
        """Raise the error."""
        raise self.error

    def as_callback_args(self) -> tuple[BaseException, None]:
        """Arguments for a conventional ``(error, result)`` callback."""
        return self.error, None

    def __str__(self) -> str:
        return f"Rejected({type(self.error).__name__}: {self.error})"


# Outcome is the union of the two terminal states.
#
# Pattern matching:
#     match outcome:
#         case Fulfilled(value):
#             ...
#         case Rejected(error):
#             ...
Outcome = Fulfilled[R] | Rejected


def is_fulfilled(outcome: Outcome[R]) -> bool:
    """
    Type guard to check if outcome is Fulfilled.

    Example:
        ```python
        if is_fulfilled(outcome):
            print(outcome.value)
        ```
    """
    return isinstance(outcome, Fulfilled)


def is_rejected(outcome: Outcome[R]) -> bool:
    """Type guard to check if outcome is Rejected."""
    return isinstance(outcome, Rejected)
