from __future__ import annotations

import asyncio
import logging
from collections import deque

from app.config import OPERATION_HISTORY_LIMIT, serial_scope
from app.models import OperationRecord
from app.services.assistant import AssistantClient, get_assistant_client
from app.services.executor import ExecutorRegistry
from app.services.runs import RunPoller
from app.services.tracing import trace_end, trace_start

logger = logging.getLogger("app.orchestrator")


class ConversationOrchestrator:
    """Serializes prompt/run/poll round-trips against assistant conversations."""

    def __init__(
        self,
        client: AssistantClient,
        *,
        executors: ExecutorRegistry | None = None,
        poller: RunPoller | None = None,
        history_limit: int = OPERATION_HISTORY_LIMIT,
    ) -> None:
        self.client = client
        self.executors = executors or ExecutorRegistry(serial_scope())
        self.poller = poller or RunPoller.from_config(client)
        self._history_limit = history_limit
        self._history: dict[str, deque[OperationRecord]] = {}

    async def submit(self, conversation_id: str, assistant_id: str, content: str, *, kind: str = "chat") -> str:
        record, t0 = trace_start(conversation_id, kind)
        self._remember(record)

        async def action() -> str:
            record.status = "running"
            logger.info("orchestrator.start conversation=%s kind=%s", conversation_id, kind)
            await self.client.create_message(conversation_id, "user", content)
            run_id = await self.client.start_run(conversation_id, assistant_id)
            return await self.poller.wait(conversation_id, run_id)

        try:
            raw_text = await self.executors.submit(conversation_id, action)
        except asyncio.CancelledError:
            trace_end(record, t0, status="cancelled")
            raise
        except Exception as exc:
            duration_ms = trace_end(record, t0, status="failed", error=str(exc))
            logger.warning(
                "orchestrator.failed conversation=%s kind=%s duration_ms=%s error=%s",
                conversation_id,
                kind,
                duration_ms,
                exc,
            )
            raise
        duration_ms = trace_end(record, t0)
        logger.info(
            "orchestrator.done conversation=%s kind=%s duration_ms=%s chars=%s",
            conversation_id,
            kind,
            duration_ms,
            len(raw_text),
        )
        return raw_text

    def history(self, conversation_id: str) -> list[OperationRecord]:
        return list(self._history.get(conversation_id, ()))

    def forget(self, conversation_id: str) -> None:
        self._history.pop(conversation_id, None)
        self.executors.forget(conversation_id)

    def _remember(self, record: OperationRecord) -> None:
        records = self._history.setdefault(record.conversation_id, deque(maxlen=self._history_limit))
        records.append(record)


_orchestrator: ConversationOrchestrator | None = None


def get_orchestrator() -> ConversationOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = ConversationOrchestrator(get_assistant_client())
    return _orchestrator
