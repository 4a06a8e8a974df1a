from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from app.config import RUN_POLL_INTERVAL_SECONDS, poll_attempt_budget
from app.models import RunState
from app.services.assistant import AssistantClient, OrchestrationError, TransportFailure

logger = logging.getLogger("app.runs")

Sleep = Callable[[float], Awaitable[None]]


class RunTerminatedAbnormally(OrchestrationError):
    def __init__(self, state: RunState) -> None:
        super().__init__(f"Run ended with status: {state.value}")
        self.state = state


class UnsupportedCapabilityRequested(OrchestrationError):
    pass


class PollingTimedOut(OrchestrationError):
    def __init__(self, attempts: int) -> None:
        super().__init__(f"Polling timed out after {attempts} attempts")
        self.attempts = attempts


class ResultExtractor:
    def __init__(self, client: AssistantClient) -> None:
        self._client = client

    async def fetch(self, conversation_id: str) -> str:
        """Text of the newest assistant message, or "" when there is none."""
        messages = await self._client.list_messages(conversation_id)
        for message in messages:
            if message.role != "assistant":
                continue
            if not message.text:
                logger.info("runs.no_text conversation=%s", conversation_id)
                return ""
            return message.text
        logger.info("runs.no_assistant_message conversation=%s messages=%s", conversation_id, len(messages))
        return ""


class RunPoller:
    """Polls a started run until it reaches a terminal state.

    max_attempts bounds the number of non-terminal observations; None polls
    until the run terminates or the awaiting task is cancelled.
    """

    def __init__(
        self,
        client: AssistantClient,
        extractor: ResultExtractor | None = None,
        *,
        interval: float = RUN_POLL_INTERVAL_SECONDS,
        max_attempts: int | None = 60,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._client = client
        self._extractor = extractor or ResultExtractor(client)
        self._interval = interval
        self._max_attempts = max_attempts
        self._sleep = sleep

    @classmethod
    def from_config(cls, client: AssistantClient) -> RunPoller:
        return cls(client, interval=RUN_POLL_INTERVAL_SECONDS, max_attempts=poll_attempt_budget())

    async def wait(self, conversation_id: str, run_id: str) -> str:
        try:
            return await self._poll(conversation_id, run_id)
        except asyncio.CancelledError:
            await self._cancel_remote(conversation_id, run_id)
            raise

    async def _poll(self, conversation_id: str, run_id: str) -> str:
        attempts = 0
        while True:
            state = await self._client.get_run_status(conversation_id, run_id)
            logger.debug("runs.status conversation=%s run=%s state=%s", conversation_id, run_id, state.value)
            if not state.is_terminal:
                attempts += 1
                if self._max_attempts is not None and attempts >= self._max_attempts:
                    logger.error("runs.timeout conversation=%s run=%s attempts=%s", conversation_id, run_id, attempts)
                    raise PollingTimedOut(attempts)
                await self._sleep(self._interval)
                continue

            if state is RunState.COMPLETED:
                return await self._extractor.fetch(conversation_id)
            if state.is_abnormal:
                logger.warning("runs.terminated conversation=%s run=%s state=%s", conversation_id, run_id, state.value)
                raise RunTerminatedAbnormally(state)
            raise UnsupportedCapabilityRequested("Function calls are not implemented")

    async def _cancel_remote(self, conversation_id: str, run_id: str) -> None:
        try:
            await self._client.cancel_run(conversation_id, run_id)
            logger.info("runs.cancel_requested conversation=%s run=%s", conversation_id, run_id)
        except TransportFailure as exc:
            logger.warning("runs.cancel_failed conversation=%s run=%s error=%s", conversation_id, run_id, exc)
