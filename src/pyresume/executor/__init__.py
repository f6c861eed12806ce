"""
Executor module - the runtime engine.

This module contains the execution components:
- yielded: classification of values produced at suspension points
- normalizer: conversion of yielded values into futures
- driver: the loop that resumes a generator with settled values
- pending: PendingResult with chaining, timeout and cancellation
- invocation: run() / Routine / Invocation, the callable surface
- outcome: Fulfilled / Rejected
- timer: delay()
"""

from pyresume.executor.outcome import (
    Fulfilled,
    Outcome,
    Rejected,
    is_fulfilled,
    is_rejected,
)
from pyresume.executor.yielded import YieldKind, classify
from pyresume.executor.pending import PendingResult
from pyresume.executor.normalizer import CompletionCallback, normalize
from pyresume.executor.driver import Driver, drive
from pyresume.executor.invocation import Invocation, Routine, execute, run
from pyresume.executor.timer import delay

__all__ = [
    # Outcomes
    "Fulfilled",
    "Rejected",
    "Outcome",
    "is_fulfilled",
    "is_rejected",
    # Normalizer
    "YieldKind",
    "classify",
    "normalize",
    "CompletionCallback",
    # Pending results
    "PendingResult",
    # Driver
    "Driver",
    "drive",
    # Invocation
    "Invocation",
    "Routine",
    "run",
    "execute",
    # Timers
    "delay",
]
