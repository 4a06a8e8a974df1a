from __future__ import annotations

import logging
import os
from typing import Protocol

import openai
from openai import AsyncOpenAI

from app.config import (
    ASSISTANT_INSTRUCTIONS,
    ASSISTANT_NAME,
    INITIAL_ANALYSIS_MESSAGE,
    OPENAI_ASSISTANT_MODEL,
    VECTOR_STORE_NAME,
)
from app.models import DocumentSession, Message, RunState
from app.services.tracing import utc_now_iso

logger = logging.getLogger("app.assistant")


class AssistantConfigError(RuntimeError):
    pass


class OrchestrationError(RuntimeError):
    pass


class TransportFailure(OrchestrationError):
    pass


# Vendor run statuses that do not appear in RunState map onto the closest state.
_STATUS_MAP = {
    "queued": RunState.QUEUED,
    "in_progress": RunState.RUNNING,
    "cancelling": RunState.RUNNING,
    "completed": RunState.COMPLETED,
    "failed": RunState.FAILED,
    "incomplete": RunState.FAILED,
    "cancelled": RunState.CANCELLED,
    "expired": RunState.EXPIRED,
    "requires_action": RunState.REQUIRES_ACTION,
}


def map_run_status(status: str | None) -> RunState:
    state = _STATUS_MAP.get((status or "").lower())
    if state is None:
        logger.warning("assistant.unknown_run_status status=%r", status)
        return RunState.FAILED
    return state


class AssistantClient(Protocol):
    async def create_message(self, conversation_id: str, role: str, text: str) -> str: ...

    async def start_run(self, conversation_id: str, assistant_id: str) -> str: ...

    async def get_run_status(self, conversation_id: str, run_id: str) -> RunState: ...

    async def list_messages(self, conversation_id: str) -> list[Message]: ...

    async def cancel_run(self, conversation_id: str, run_id: str) -> None: ...


def _get_client() -> AsyncOpenAI:
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise AssistantConfigError("OPENAI_API_KEY is not set.")
    return AsyncOpenAI(api_key=api_key)


def _first_text(content: list) -> str | None:
    for block in content or []:
        if getattr(block, "type", None) == "text":
            text = getattr(block, "text", None)
            return getattr(text, "value", None)
    return None


class OpenAIAssistantClient:
    """Threads/runs adapter over the OpenAI Assistants API.

    Every vendor error is re-raised as TransportFailure so callers only see the
    orchestration taxonomy.
    """

    def __init__(self, client: AsyncOpenAI | None = None) -> None:
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = _get_client()
        return self._client

    async def create_message(self, conversation_id: str, role: str, text: str) -> str:
        try:
            message = await self.client.beta.threads.messages.create(
                thread_id=conversation_id,
                role=role,
                content=text,
            )
        except openai.APIError as exc:
            raise TransportFailure(f"create_message failed: {exc}") from exc
        return message.id

    async def start_run(self, conversation_id: str, assistant_id: str) -> str:
        try:
            run = await self.client.beta.threads.runs.create(
                thread_id=conversation_id,
                assistant_id=assistant_id,
            )
        except openai.APIError as exc:
            raise TransportFailure(f"start_run failed: {exc}") from exc
        return run.id

    async def get_run_status(self, conversation_id: str, run_id: str) -> RunState:
        try:
            run = await self.client.beta.threads.runs.retrieve(run_id, thread_id=conversation_id)
        except openai.APIError as exc:
            raise TransportFailure(f"get_run_status failed: {exc}") from exc
        return map_run_status(run.status)

    async def list_messages(self, conversation_id: str) -> list[Message]:
        try:
            page = await self.client.beta.threads.messages.list(
                thread_id=conversation_id,
                order="desc",
                limit=20,
            )
        except openai.APIError as exc:
            raise TransportFailure(f"list_messages failed: {exc}") from exc
        return [Message(role=item.role, text=_first_text(item.content)) for item in page.data]

    async def cancel_run(self, conversation_id: str, run_id: str) -> None:
        try:
            await self.client.beta.threads.runs.cancel(run_id, thread_id=conversation_id)
        except openai.APIError as exc:
            raise TransportFailure(f"cancel_run failed: {exc}") from exc

    async def provision_session(self, filename: str, data: bytes) -> DocumentSession:
        """Upload a document and open a conversation the assistant can search.

        Creates the file, a vector store holding it, an assistant bound to that
        store, and a thread seeded with the analysis request.
        """
        client = self.client
        try:
            uploaded = await client.files.create(file=(filename, data), purpose="assistants")
            vector_store = await client.vector_stores.create(name=VECTOR_STORE_NAME)
            await client.vector_stores.files.create(
                vector_store_id=vector_store.id,
                file_id=uploaded.id,
            )
            assistant = await client.beta.assistants.create(
                name=ASSISTANT_NAME,
                instructions=ASSISTANT_INSTRUCTIONS,
                model=OPENAI_ASSISTANT_MODEL,
                tools=[{"type": "code_interpreter"}, {"type": "file_search"}],
                tool_resources={"file_search": {"vector_store_ids": [vector_store.id]}},
            )
            thread = await client.beta.threads.create()
            await client.beta.threads.messages.create(
                thread_id=thread.id,
                role="user",
                content=INITIAL_ANALYSIS_MESSAGE,
                attachments=[{"file_id": uploaded.id, "tools": [{"type": "file_search"}]}],
            )
        except openai.APIError as exc:
            logger.error("assistant.provision_failed filename=%r error=%s", filename, exc)
            raise TransportFailure(f"provision_session failed: {exc}") from exc

        logger.info(
            "assistant.provisioned conversation=%s assistant=%s vector_store=%s",
            thread.id,
            assistant.id,
            vector_store.id,
        )
        return DocumentSession(
            conversation_id=thread.id,
            assistant_id=assistant.id,
            vector_store_id=vector_store.id,
            file_id=uploaded.id,
            filename=filename,
            created_at=utc_now_iso(),
        )


_assistant_client: OpenAIAssistantClient | None = None


def get_assistant_client() -> OpenAIAssistantClient:
    global _assistant_client
    if _assistant_client is None:
        _assistant_client = OpenAIAssistantClient()
    return _assistant_client
