import asyncio

import pytest

from app.services.executor import ExecutorRegistry, SerialExecutor


@pytest.mark.asyncio
async def test_actions_run_in_submission_order_without_overlap():
    executor = SerialExecutor()
    events = []
    in_flight = 0
    max_in_flight = 0

    def make_action(idx):
        async def action():
            nonlocal in_flight, max_in_flight
            in_flight += 1
            max_in_flight = max(max_in_flight, in_flight)
            events.append(("start", idx))
            # Later submissions finish faster if they were allowed to overlap.
            await asyncio.sleep(0.005 * (5 - idx))
            events.append(("end", idx))
            in_flight -= 1
            return f"result-{idx}"

        return action

    futures = [executor.submit("thread_1", make_action(idx)) for idx in range(5)]
    results = await asyncio.gather(*futures)

    assert results == [f"result-{idx}" for idx in range(5)]
    assert max_in_flight == 1
    assert events == [event for idx in range(5) for event in (("start", idx), ("end", idx))]


@pytest.mark.asyncio
async def test_next_action_starts_only_after_previous_future_settles():
    executor = SerialExecutor()
    first_settled_before_second_start = []

    async def first():
        await asyncio.sleep(0.01)
        return "first"

    first_future = executor.submit("thread_1", first)

    async def second():
        first_settled_before_second_start.append(first_future.done())
        return "second"

    second_future = executor.submit("thread_1", second)

    assert await second_future == "second"
    assert first_settled_before_second_start == [True]


@pytest.mark.asyncio
async def test_failing_action_rejects_only_its_caller():
    executor = SerialExecutor()

    async def boom():
        raise RuntimeError("remote exploded")

    async def ok():
        return "fine"

    failing = executor.submit("thread_1", boom)
    following = executor.submit("thread_2", ok)

    with pytest.raises(RuntimeError, match="remote exploded"):
        await failing
    assert await following == "fine"
    assert executor.busy is False
    assert executor.pending == 0


@pytest.mark.asyncio
async def test_submit_marks_busy_and_tracks_pending():
    executor = SerialExecutor()
    release = asyncio.Event()

    async def blocked():
        await release.wait()
        return "done"

    async def quick():
        return "quick"

    first = executor.submit("thread_1", blocked)
    second = executor.submit("thread_1", quick)
    await asyncio.sleep(0)

    assert executor.busy is True
    assert executor.pending == 1

    release.set()
    assert await first == "done"
    assert await second == "quick"
    assert executor.busy is False


@pytest.mark.asyncio
async def test_cancelled_queued_operation_is_skipped():
    executor = SerialExecutor()
    release = asyncio.Event()
    calls = []

    async def blocked():
        await release.wait()
        return "first"

    async def skipped():
        calls.append("skipped")
        return "never"

    async def last():
        calls.append("last")
        return "last"

    first = executor.submit("thread_1", blocked)
    abandoned = executor.submit("thread_1", skipped)
    final = executor.submit("thread_1", last)

    abandoned.cancel()
    release.set()

    assert await first == "first"
    assert await final == "last"
    assert calls == ["last"]


@pytest.mark.asyncio
async def test_cancelling_running_operation_cancels_action_and_advances():
    executor = SerialExecutor()
    cancelled = []

    async def hangs():
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            cancelled.append(True)
            raise
        return "unreachable"

    async def after():
        return "after"

    running = executor.submit("thread_1", hangs)
    following = executor.submit("thread_1", after)
    await asyncio.sleep(0)

    running.cancel()

    assert await following == "after"
    assert cancelled == [True]


def test_registry_rejects_unknown_scope():
    with pytest.raises(ValueError):
        ExecutorRegistry("per-user")


def test_global_scope_shares_one_executor():
    registry = ExecutorRegistry("global")
    assert registry.for_conversation("thread_1") is registry.for_conversation("thread_2")


def test_conversation_scope_keys_executors_by_id():
    registry = ExecutorRegistry("conversation")
    first = registry.for_conversation("thread_1")
    assert first is registry.for_conversation("thread_1")
    assert first is not registry.for_conversation("thread_2")


@pytest.mark.asyncio
async def test_conversation_scope_lets_conversations_interleave():
    registry = ExecutorRegistry("conversation")
    release = asyncio.Event()

    async def blocked():
        await release.wait()
        return "slow"

    async def quick():
        return "quick"

    slow = registry.submit("thread_1", blocked)
    fast = registry.submit("thread_2", quick)

    assert await fast == "quick"
    assert slow.done() is False
    release.set()
    assert await slow == "slow"


def test_forget_drops_conversation_executor():
    registry = ExecutorRegistry("conversation")
    first = registry.for_conversation("thread_1")

    registry.forget("thread_1")
    registry.forget("never_seen")

    assert registry.for_conversation("thread_1") is not first


def test_forget_keeps_global_executor():
    registry = ExecutorRegistry("global")
    shared = registry.for_conversation("thread_1")

    registry.forget("thread_1")

    assert registry.for_conversation("thread_2") is shared
