"""
Tests for run() / Routine / Invocation.

Covers:
- Both result channels (awaiting and completion callback) and their agreement
- Argument forwarding and callback detection
- Context binding: fresh, explicit, and as a method
- Chaining, timeouts and cancellation
"""

import asyncio
import logging
import uuid

import pytest
from conftest import add_later, callback_recorder, value_thunk

from pyresume import (
    Context,
    Invocation,
    InvocationCancelled,
    InvocationTimeout,
    PendingResult,
    Routine,
    RunConfig,
    SettlementStatus,
    delay,
    run,
)

# =============================================================================
# Basic scenarios
# =============================================================================


@pytest.mark.asyncio
async def test_resolved_value_is_returned_through_callback():
    @run
    def job(ctx):
        return (yield PendingResult.resolved("ok"))

    callback, received = callback_recorder()
    job(callback)

    assert await received == (None, "ok")


@pytest.mark.asyncio
async def test_delay_then_return():
    @run
    def job(ctx):
        yield delay(0.2)
        return 1

    callback, received = callback_recorder()
    job(callback)

    assert await received == (None, 1)


@pytest.mark.asyncio
async def test_timeout_rejects_before_natural_completion():
    @run
    def job(ctx):
        yield delay(1.0)

    loop = asyncio.get_running_loop()
    started = loop.time()

    with pytest.raises(InvocationTimeout):
        await job().timeout(0.1)

    assert loop.time() - started < 0.5


@pytest.mark.asyncio
async def test_timeout_interrupts_computation_yielding_settled_values():
    @run
    def spin(ctx):
        while True:
            yield True
            yield value_thunk(1)
            yield [None, 2]

    loop = asyncio.get_running_loop()
    started = loop.time()

    with pytest.raises(InvocationTimeout):
        await spin().timeout(0.1)

    assert loop.time() - started < 0.5


@pytest.mark.asyncio
async def test_configured_timeout_interrupts_busy_computation():
    @run(config=RunConfig(timeout=0.05))
    def spin(ctx):
        while True:
            yield 1

    with pytest.raises(InvocationTimeout):
        await asyncio.wait_for(spin().as_future(), timeout=1.0)


@pytest.mark.asyncio
async def test_cancel_interrupts_computation_yielding_settled_values():
    closed = []

    @run
    def spin(ctx):
        try:
            while True:
                yield PendingResult.resolved(None)
        finally:
            closed.append(True)

    invocation = spin()
    asyncio.get_running_loop().call_later(0.05, invocation.cancel)

    with pytest.raises(InvocationCancelled):
        await asyncio.wait_for(invocation.as_future(), timeout=1.0)
    assert closed == [True]


@pytest.mark.asyncio
async def test_sequence_of_thunk_and_resolved_value():
    @run
    def job(ctx):
        return (yield [value_thunk(), PendingResult.resolved(1)])

    assert await job() == [None, 1]


@pytest.mark.asyncio
async def test_synchronously_throwing_thunk_reaches_callback():
    def thunk(callback):
        raise ValueError("thrown synchronously")

    @run
    def job(ctx):
        yield thunk

    callback, received = callback_recorder()
    job(callback)
    error, result = await received

    assert isinstance(error, ValueError)
    assert "thrown synchronously" in str(error)
    assert result is None


@pytest.mark.asyncio
async def test_computation_without_suspension():
    @run
    def job(ctx, value):
        return value
        yield  # pragma: no cover

    assert await job("direct") == "direct"


@pytest.mark.asyncio
async def test_async_def_function_can_be_run():
    @run
    async def job(ctx, value):
        await asyncio.sleep(0)
        return value * 2

    assert await job(4) == 8


# =============================================================================
# Result channels
# =============================================================================


@pytest.mark.asyncio
async def test_callback_and_await_observe_same_outcome_once():
    routine = run(add_later)
    callback, received = callback_recorder()

    invocation = routine(2, 3, callback)

    assert await invocation == 5
    assert await received == (None, 5)
    await asyncio.sleep(0.01)
    assert callback.extra_calls == []


@pytest.mark.asyncio
async def test_failure_reaches_both_channels():
    @run
    def job(ctx):
        yield None
        raise LookupError("no such user")

    callback, received = callback_recorder()
    invocation = job(callback)

    with pytest.raises(LookupError):
        await invocation
    error, result = await received
    assert isinstance(error, LookupError)
    assert result is None
    assert invocation.status is SettlementStatus.REJECTED


@pytest.mark.asyncio
async def test_failing_callback_is_logged(caplog):
    def callback(error, result):
        raise RuntimeError("callback bug")

    with caplog.at_level(logging.ERROR, logger="pyresume"):
        invocation = run(add_later)(1, 1, callback)
        assert await invocation == 2
        await asyncio.sleep(0)

    assert any("Completion callback" in record.getMessage() for record in caplog.records)


@pytest.mark.asyncio
async def test_invocation_state_accessors():
    invocation = run(add_later)(1, 2)

    assert not invocation.done()
    assert invocation.status is SettlementStatus.PENDING
    with pytest.raises(asyncio.InvalidStateError):
        invocation.result()

    await invocation

    assert invocation.done()
    assert invocation.status is SettlementStatus.FULFILLED
    assert invocation.result() == 3
    assert invocation.exception() is None
    assert invocation.outcome().value == 3
    assert not invocation.cancelled()


@pytest.mark.asyncio
async def test_invocation_metadata():
    invocation = run(add_later)(1, 2)

    assert isinstance(invocation, Invocation)
    assert uuid.UUID(invocation.invocation_id).version == 7
    assert invocation.invocation_id in repr(invocation)
    task_names = {task.get_name() for task in asyncio.all_tasks()}
    assert f"pyresume-{invocation.invocation_id}" in task_names
    await invocation


@pytest.mark.asyncio
async def test_add_done_callback_receives_invocation():
    seen = []
    invocation = run(add_later)(1, 2)
    invocation.add_done_callback(seen.append)

    await invocation
    await asyncio.sleep(0)

    assert seen == [invocation]


def test_calling_outside_event_loop_raises():
    routine = run(add_later)

    with pytest.raises(RuntimeError, match="running event loop"):
        routine(1, 2)


# =============================================================================
# Arguments
# =============================================================================


@pytest.mark.asyncio
async def test_arguments_are_forwarded_after_context():
    @run
    def job(ctx, a, b, *, scale=1):
        yield None
        return (a + b) * scale

    assert await job(1, 2, scale=10) == 30


@pytest.mark.asyncio
async def test_callable_keyword_argument_is_not_a_callback():
    @run
    def job(ctx, transform):
        value = yield value_thunk(3)
        return transform(value)

    assert await job(transform=lambda v: v * 3) == 9


@pytest.mark.asyncio
async def test_only_last_positional_callable_is_the_callback():
    @run
    def job(ctx, transform):
        return transform((yield 2))

    callback, received = callback_recorder()
    job(lambda v: v + 1, callback)

    assert await received == (None, 3)


def test_routine_wraps_function_metadata():
    routine = run(add_later)

    assert isinstance(routine, Routine)
    assert routine.__name__ == "add_later"
    assert routine.__doc__ == add_later.__doc__
    assert "add_later" in repr(routine)


def test_run_rejects_non_callables():
    with pytest.raises(TypeError):
        run(42)


# =============================================================================
# Context binding
# =============================================================================


@pytest.mark.asyncio
async def test_unbound_invocations_get_fresh_contexts():
    @run
    def job(ctx):
        yield None
        ctx.touched = True
        return ctx

    first, second = await job(), await job()

    assert isinstance(first, Context)
    assert first is not second
    assert first.touched


@pytest.mark.asyncio
async def test_bind_uses_explicit_context(session):
    @run
    def job(ctx):
        yield None
        return ctx

    bound = job.bind(session)
    invocation = bound()

    assert bound.context is session
    assert invocation.context is session
    assert await invocation is session


@pytest.mark.asyncio
async def test_falsy_context_is_kept():
    @run
    def job(ctx):
        yield None
        return ctx

    context = {}

    assert await job.bind(context)() is context


@pytest.mark.asyncio
async def test_routine_binds_instance_as_method():
    class Account:
        def __init__(self, balance):
            self.balance = balance

        @run
        def deposit(self, amount):
            yield delay(0.01)
            self.balance += amount
            return self.balance

    account = Account(10)

    assert await account.deposit(5) == 15
    assert account.balance == 15
    assert isinstance(Account.deposit, Routine)


@pytest.mark.asyncio
async def test_nested_routine_uses_parent_context(session):
    @run
    def child(ctx):
        yield delay(0.01)
        ctx.seen.append("child")
        return ctx

    @run
    def parent(ctx):
        ctx.seen.append("parent")
        return (yield child)

    assert await parent.bind(session)() is session
    assert session.seen == ["parent", "child"]


@pytest.mark.asyncio
async def test_nested_bound_routine_keeps_its_receiver():
    class Users:
        @run
        def whoami(self):
            yield None
            return self

    users = Users()
    other = Users()

    @run
    def parent(ctx):
        method = yield users.whoami
        explicit = yield Users.whoami.bind(other)
        return method, explicit

    method, explicit = await parent()

    assert method is users
    assert explicit is other


# =============================================================================
# Chaining
# =============================================================================


@pytest.mark.asyncio
async def test_then_transforms_value():
    doubled = run(add_later)(1, 2).then(lambda total: total * 2)

    assert await doubled == 6


@pytest.mark.asyncio
async def test_then_follows_returned_pending_result():
    chained = run(add_later)(1, 2).then(lambda total: delay(0.01, total + 100))

    assert await chained == 103


@pytest.mark.asyncio
async def test_catch_recovers_from_failure():
    @run
    def job(ctx):
        yield None
        raise ValueError("broken")

    recovered = job().catch(lambda error: f"recovered: {error}")

    assert await recovered == "recovered: broken"


@pytest.mark.asyncio
async def test_handler_failure_rejects_chained_result():
    def handler(total):
        raise KeyError("handler")

    with pytest.raises(KeyError):
        await run(add_later)(1, 2).then(handler)


@pytest.mark.asyncio
async def test_finally_runs_and_passes_outcome_through():
    calls = []

    @run
    def failing(ctx):
        yield None
        raise ValueError("kept")

    assert await run(add_later)(1, 1).finally_(lambda: calls.append("ok")) == 2
    with pytest.raises(ValueError, match="kept"):
        await failing().finally_(lambda: calls.append("failed"))
    assert calls == ["ok", "failed"]


@pytest.mark.asyncio
async def test_missing_handler_passes_outcome_through():
    assert await run(add_later)(2, 2).then(None, lambda error: "unused") == 4


# =============================================================================
# Cancellation and timeouts
# =============================================================================


@pytest.mark.asyncio
async def test_cancel_rejects_both_channels_and_closes_computation():
    closed = []

    @run
    def job(ctx):
        try:
            yield delay(10)
        finally:
            closed.append(True)

    callback, received = callback_recorder()
    invocation = job(callback)
    await asyncio.sleep(0.01)

    assert invocation.cancel()
    with pytest.raises(InvocationCancelled):
        await invocation
    error, result = await received

    assert isinstance(error, InvocationCancelled)
    assert result is None
    assert invocation.cancelled()
    assert closed == [True]


@pytest.mark.asyncio
async def test_cancel_before_first_step():
    @run
    def job(ctx):
        yield delay(10)

    invocation = job()

    assert invocation.cancel("stop")
    with pytest.raises(InvocationCancelled, match="stop"):
        await invocation


@pytest.mark.asyncio
async def test_cancel_after_settlement_is_refused():
    invocation = run(add_later)(1, 2)
    await invocation

    assert not invocation.cancel()
    assert invocation.result() == 3


@pytest.mark.asyncio
async def test_cancel_on_chained_result_reaches_rejection_handler():
    @run
    def job(ctx):
        yield delay(10)

    errors = []
    chained = job().then(None, lambda error: errors.append(error) or "handled")

    chained.cancel()

    assert await chained == "handled"
    assert isinstance(errors[0], InvocationCancelled)


@pytest.mark.asyncio
async def test_cancel_propagates_into_nested_invocation():
    child_closed = asyncio.Event()

    @run
    def child(ctx):
        try:
            yield delay(10)
        finally:
            child_closed.set()

    @run
    def parent(ctx):
        yield child

    invocation = parent()
    await asyncio.sleep(0.01)
    invocation.cancel()

    with pytest.raises(InvocationCancelled):
        await invocation
    await asyncio.wait_for(child_closed.wait(), timeout=1.0)


@pytest.mark.asyncio
async def test_timeout_cancels_the_invocation():
    closed = []

    @run
    def job(ctx):
        try:
            yield delay(1.0)
        finally:
            closed.append(True)

    invocation = job()

    with pytest.raises(InvocationTimeout) as exc_info:
        await invocation.timeout(0.05)
    with pytest.raises(InvocationTimeout):
        await invocation

    assert exc_info.value.timeout == 0.05
    assert closed == [True]


@pytest.mark.asyncio
async def test_timeout_not_reached_passes_value_through():
    assert await run(add_later)(1, 2).timeout(1.0) == 3


@pytest.mark.asyncio
async def test_timeout_is_caught_as_builtin_timeout_error():
    with pytest.raises(TimeoutError):
        await delay(1.0).timeout(0.01)


@pytest.mark.asyncio
async def test_configured_timeout_reaches_callback():
    @run(config=RunConfig(timeout=0.05))
    def job(ctx):
        yield delay(1.0)

    callback, received = callback_recorder()
    job(callback)
    error, result = await asyncio.wait_for(received, timeout=1.0)

    assert isinstance(error, InvocationTimeout)
    assert result is None


@pytest.mark.asyncio
async def test_with_config_keeps_binding(session):
    @run
    def job(ctx):
        yield delay(1.0)

    bounded = job.bind(session).with_config(RunConfig(timeout=0.05))

    assert bounded.context is session
    assert bounded.config.timeout == 0.05
    with pytest.raises(InvocationTimeout):
        await bounded()


@pytest.mark.asyncio
async def test_computation_can_catch_cancellation_of_inner_result():
    @run
    def job(ctx):
        slow = delay(10)
        asyncio.get_running_loop().call_later(0.01, slow.cancel)
        try:
            yield slow
        except InvocationCancelled:
            return "inner cancelled"

    assert await job() == "inner cancelled"
