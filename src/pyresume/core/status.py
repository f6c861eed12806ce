"""
Settlement status of a pending result.

A pending result starts PENDING and moves exactly once to a terminal
state. Cancellation is not a separate state: a cancelled invocation is
REJECTED with an InvocationCancelled error.
"""

from enum import Enum


class SettlementStatus(Enum):
    """
    Status of a pending result.

    Lifecycle:
    PENDING → FULFILLED | REJECTED
    """

    PENDING = "PENDING"
    """Not settled yet."""

    FULFILLED = "FULFILLED"
    """Settled with a value."""

    REJECTED = "REJECTED"
    """Settled with an error (including cancellation and timeout)."""

    @property
    def is_settled(self) -> bool:
        """Check if this status is terminal."""
        return self is not SettlementStatus.PENDING

    def __str__(self) -> str:
        return self.value
