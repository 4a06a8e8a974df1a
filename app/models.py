from __future__ import annotations

from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class RunState(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    REQUIRES_ACTION = "requires_action"

    @property
    def is_terminal(self) -> bool:
        return self not in (RunState.QUEUED, RunState.RUNNING)

    @property
    def is_abnormal(self) -> bool:
        return self in (RunState.FAILED, RunState.CANCELLED, RunState.EXPIRED)


class Message(BaseModel):
    role: str
    text: str | None = None


class KeywordEntry(BaseModel):
    keyword: str
    definition: str | None = None


class GraphNode(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    importance: float = Field(alias="val")


class GraphEdge(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: str
    target: str


class Graph(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    nodes: tuple[GraphNode, ...] = ()
    edges: tuple[GraphEdge, ...] = Field(default=(), alias="links")

    @classmethod
    def empty(cls) -> Graph:
        return cls(nodes=(), edges=())

    @property
    def is_empty(self) -> bool:
        return not self.nodes and not self.edges


class ParseResult(BaseModel, Generic[T]):
    value: T
    fallback: bool = False
    reason: str | None = None


class DocumentSession(BaseModel):
    conversation_id: str
    assistant_id: str
    vector_store_id: str
    file_id: str
    filename: str
    created_at: str


class OperationRecord(BaseModel):
    conversation_id: str
    kind: str
    status: str
    started_at: str
    finished_at: str | None = None
    duration_ms: int | None = None
    error: str | None = None


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)


class ExplainRequest(BaseModel):
    selected_text: str = Field(min_length=1)
    instruction: str | None = None


class SessionInfo(BaseModel):
    conversation_id: str
    filename: str
    created_at: str


class SummaryResponse(BaseModel):
    conversation_id: str
    summary: str


class KeywordsResponse(BaseModel):
    conversation_id: str
    format: str
    keywords: list[KeywordEntry]


class ReplyResponse(BaseModel):
    conversation_id: str
    reply: str


class ErrorPayload(BaseModel):
    error: str
    detail: str
    retryable: bool = True
