from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from functools import partial
from typing import Awaitable, Callable

logger = logging.getLogger("app.executor")

Action = Callable[[], Awaitable[str]]


@dataclass
class OperationDescriptor:
    conversation_id: str
    action: Action
    result: asyncio.Future


class SerialExecutor:
    """FIFO queue with a single in-flight slot.

    Actions start strictly in submission order and never overlap: the next one
    is started only after the previous action's future has settled. A failing
    action rejects its own future and the queue keeps draining.

    Cancelling a returned future skips the operation if it is still queued and
    cancels the running action task otherwise.
    """

    def __init__(self, name: str = "global") -> None:
        self.name = name
        self._queue: deque[OperationDescriptor] = deque()
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def pending(self) -> int:
        return len(self._queue)

    def submit(self, conversation_id: str, action: Action) -> asyncio.Future:
        loop = asyncio.get_running_loop()
        descriptor = OperationDescriptor(
            conversation_id=conversation_id,
            action=action,
            result=loop.create_future(),
        )
        self._queue.append(descriptor)
        logger.debug(
            "executor.enqueued executor=%s conversation=%s pending=%s",
            self.name,
            conversation_id,
            len(self._queue),
        )
        self._advance()
        return descriptor.result

    def _advance(self) -> None:
        if self._busy:
            return
        while self._queue:
            descriptor = self._queue.popleft()
            if descriptor.result.done():
                logger.info(
                    "executor.skipped executor=%s conversation=%s reason=abandoned",
                    self.name,
                    descriptor.conversation_id,
                )
                continue
            self._busy = True
            task = asyncio.ensure_future(_invoke(descriptor.action))
            task.add_done_callback(partial(self._settle, descriptor))
            descriptor.result.add_done_callback(partial(_abandon, task))
            return

    def _settle(self, descriptor: OperationDescriptor, task: asyncio.Future) -> None:
        result = descriptor.result
        if task.cancelled():
            if not result.done():
                result.cancel()
        elif task.exception() is not None:
            exc = task.exception()
            logger.warning(
                "executor.action_failed executor=%s conversation=%s error=%s",
                self.name,
                descriptor.conversation_id,
                exc,
            )
            if not result.done():
                result.set_exception(exc)
        elif not result.done():
            result.set_result(task.result())
        self._busy = False
        self._advance()


async def _invoke(action: Action) -> str:
    return await action()


def _abandon(task: asyncio.Future, result: asyncio.Future) -> None:
    if result.cancelled() and not task.done():
        task.cancel()


class ExecutorRegistry:
    """Hands out the executor that owns a conversation.

    In "global" scope every conversation shares one executor; in
    "conversation" scope each conversation id gets its own.
    """

    def __init__(self, scope: str = "global") -> None:
        if scope not in ("global", "conversation"):
            raise ValueError(f"Unknown serial scope: {scope!r}")
        self.scope = scope
        self._global = SerialExecutor("global")
        self._per_conversation: dict[str, SerialExecutor] = {}

    def for_conversation(self, conversation_id: str) -> SerialExecutor:
        if self.scope == "global":
            return self._global
        executor = self._per_conversation.get(conversation_id)
        if executor is None:
            executor = SerialExecutor(conversation_id)
            self._per_conversation[conversation_id] = executor
        return executor

    def submit(self, conversation_id: str, action: Action) -> asyncio.Future:
        return self.for_conversation(conversation_id).submit(conversation_id, action)

    def forget(self, conversation_id: str) -> None:
        # Work already queued on a dropped executor still drains; the registry just stops handing it out.
        self._per_conversation.pop(conversation_id, None)
