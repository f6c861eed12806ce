"""
Core types for pyresume.

This module contains the types shared by every layer:
- Context: Default receiver bound to an invocation
- RunConfig: Per-routine configuration
- SettlementStatus: Pending result state
- PyresumeError and subclasses: Failures produced by pyresume itself
"""

from pyresume.core.config import DEFAULT_CONFIG, RunConfig
from pyresume.core.context import Context, resolve_context
from pyresume.core.errors import (
    CallbackError,
    ConfigError,
    InvocationCancelled,
    InvocationTimeout,
    PyresumeError,
    RepeatedCallbackError,
)
from pyresume.core.status import SettlementStatus

__all__ = [
    "Context",
    "resolve_context",
    "RunConfig",
    "DEFAULT_CONFIG",
    "SettlementStatus",
    "PyresumeError",
    "CallbackError",
    "RepeatedCallbackError",
    "InvocationCancelled",
    "InvocationTimeout",
    "ConfigError",
]
