"""
Pytest configuration and fixtures for pyresume tests.

Provides callback-style thunks, sample computations and contexts, and
hypothesis strategies for nested yieldable structures.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass, field

import pytest
from hypothesis import strategies as st

from pyresume import Context, delay

# =============================================================================
# Thunk helpers
# =============================================================================


def value_thunk(value=None):
    """Thunk that calls back synchronously with ``value``."""

    def thunk(callback):
        callback(None, value)

    return thunk


def error_thunk(error):
    """Thunk that calls back synchronously with ``error``."""

    def thunk(callback):
        callback(error)

    return thunk


def later_thunk(value, seconds=0.01):
    """Thunk that calls back from the event loop after ``seconds``."""

    def thunk(callback):
        asyncio.get_running_loop().call_later(seconds, callback, None, value)

    return thunk


def thread_thunk(value, seconds=0.01):
    """Thunk that calls back from a worker thread."""

    def thunk(callback):
        timer = threading.Timer(seconds, callback, args=(None, value))
        timer.daemon = True
        timer.start()

    return thunk


def callback_recorder():
    """Return a completion callback and a future receiving its ``(error, result)``.

    Calls after the first are collected in ``callback.extra_calls``.
    """
    received = asyncio.get_running_loop().create_future()

    def callback(error, result):
        if received.done():
            callback.extra_calls.append((error, result))
            return
        received.set_result((error, result))

    callback.extra_calls = []
    return callback, received


# =============================================================================
# Sample computations
# =============================================================================


def add_later(ctx, a, b):
    """Generator function adding two numbers after a short delay."""
    yield delay(0.01)
    return a + b


def record_context(ctx, tag):
    """Generator function tagging its context and returning it."""
    yield delay(0.01)
    ctx.tags = [*getattr(ctx, "tags", []), tag]
    return ctx


@dataclass
class Session:
    """Object used as an explicit receiver."""

    name: str
    seen: list = field(default_factory=list)


@pytest.fixture
def session() -> Session:
    """Fresh explicit receiver."""
    return Session(name="session")


@pytest.fixture
def context() -> Context:
    """Fresh default context."""
    return Context()


@pytest.fixture
def caplog_debug(caplog):
    """Capture pyresume log records down to DEBUG."""
    caplog.set_level(logging.DEBUG, logger="pyresume")
    return caplog


# =============================================================================
# Hypothesis strategies
# =============================================================================

leaf_values = st.one_of(
    st.integers(),
    st.text(max_size=10),
    st.booleans(),
    st.none(),
    st.floats(allow_nan=False),
)


@st.composite
def yield_shapes(draw, max_leaves=20):
    """Strategy for nested lists/dicts of plain values."""
    return draw(
        st.recursive(
            leaf_values,
            lambda children: st.one_of(
                st.lists(children, max_size=4),
                st.dictionaries(st.text(max_size=5), children, max_size=4),
            ),
            max_leaves=max_leaves,
        )
    )


def as_yieldables(shape, wrap):
    """Replace every leaf of ``shape`` with ``wrap(leaf)``, keeping containers."""
    if isinstance(shape, list):
        return [as_yieldables(item, wrap) for item in shape]
    if isinstance(shape, dict):
        return {key: as_yieldables(item, wrap) for key, item in shape.items()}
    return wrap(shape)
