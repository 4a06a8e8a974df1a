from __future__ import annotations

import logging

from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

from app.agents.chat import request_chat_reply, request_explanation
from app.agents.keywords import configured_format, request_keywords
from app.agents.mind_map import request_graph
from app.agents.summary import request_summary
from app.models import (
    ChatRequest,
    DocumentSession,
    ErrorPayload,
    ExplainRequest,
    Graph,
    KeywordsResponse,
    OperationRecord,
    ReplyResponse,
    SessionInfo,
    SummaryResponse,
)
from app.services.assistant import AssistantConfigError, OrchestrationError, get_assistant_client
from app.services.orchestrator import get_orchestrator
from app.services.runs import PollingTimedOut, UnsupportedCapabilityRequested
from app.services.session_store import UnknownSessionError, session_store

load_dotenv()
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger("app.api")

app = FastAPI(title="Document Analysis Assistant API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

RETRY_MESSAGE = "The assistant could not complete this request. Please try again."


def _error_status(exc: OrchestrationError) -> int:
    if isinstance(exc, PollingTimedOut):
        return 504
    if isinstance(exc, UnsupportedCapabilityRequested):
        return 501
    return 502


@app.exception_handler(OrchestrationError)
async def orchestration_error_handler(request: Request, exc: OrchestrationError) -> JSONResponse:
    logger.warning("api.orchestration_error path=%s type=%s detail=%s", request.url.path, type(exc).__name__, exc)
    payload = ErrorPayload(
        error=RETRY_MESSAGE,
        detail=f"{type(exc).__name__}: {exc}",
        retryable=not isinstance(exc, UnsupportedCapabilityRequested),
    )
    return JSONResponse(status_code=_error_status(exc), content=payload.model_dump())


@app.exception_handler(AssistantConfigError)
async def config_error_handler(request: Request, exc: AssistantConfigError) -> JSONResponse:
    payload = ErrorPayload(error="Assistant service is not configured.", detail=str(exc), retryable=False)
    return JSONResponse(status_code=503, content=payload.model_dump())


async def _session_or_404(conversation_id: str) -> DocumentSession:
    try:
        return await session_store.get(conversation_id)
    except UnknownSessionError:
        raise HTTPException(status_code=404, detail=f"Unknown session: {conversation_id}")


def _session_info(session: DocumentSession) -> SessionInfo:
    return SessionInfo(
        conversation_id=session.conversation_id,
        filename=session.filename,
        created_at=session.created_at,
    )


@app.get("/healthz")
async def healthz() -> dict:
    return {"status": "ok"}


@app.post("/sessions", response_model=SessionInfo)
async def create_session(file: UploadFile = File(...)):
    data = await file.read()
    if not data:
        return JSONResponse(status_code=400, content={"error": "uploaded file is empty"})
    session = await get_assistant_client().provision_session(file.filename or "document.pdf", data)
    await session_store.add(session)
    return _session_info(session)


@app.get("/sessions", response_model=list[SessionInfo])
async def list_sessions():
    return [_session_info(session) for session in await session_store.all_sessions()]


@app.get("/sessions/{conversation_id}", response_model=SessionInfo)
async def get_session(conversation_id: str):
    return _session_info(await _session_or_404(conversation_id))


@app.delete("/sessions/{conversation_id}", status_code=204)
async def delete_session(conversation_id: str) -> None:
    await _session_or_404(conversation_id)
    await session_store.remove(conversation_id)
    get_orchestrator().forget(conversation_id)


@app.post("/sessions/{conversation_id}/summary", response_model=SummaryResponse)
async def summary(conversation_id: str):
    session = await _session_or_404(conversation_id)
    text = await request_summary(session.conversation_id, session.assistant_id)
    return SummaryResponse(conversation_id=conversation_id, summary=text)


@app.post("/sessions/{conversation_id}/keywords", response_model=KeywordsResponse)
async def keywords(conversation_id: str):
    session = await _session_or_404(conversation_id)
    fmt = configured_format()
    entries = await request_keywords(session.conversation_id, session.assistant_id, fmt)
    return KeywordsResponse(conversation_id=conversation_id, format=fmt.value, keywords=entries)


@app.post("/sessions/{conversation_id}/mind-map", response_model=Graph)
async def mind_map(conversation_id: str):
    session = await _session_or_404(conversation_id)
    return await request_graph(session.conversation_id, session.assistant_id)


@app.post("/sessions/{conversation_id}/chat", response_model=ReplyResponse)
async def chat(conversation_id: str, req: ChatRequest):
    if not req.message.strip():
        return JSONResponse(status_code=400, content={"error": "message cannot be empty"})
    session = await _session_or_404(conversation_id)
    reply = await request_chat_reply(session.conversation_id, session.assistant_id, req.message.strip())
    return ReplyResponse(conversation_id=conversation_id, reply=reply)


@app.post("/sessions/{conversation_id}/explain", response_model=ReplyResponse)
async def explain(conversation_id: str, req: ExplainRequest):
    if not req.selected_text.strip():
        return JSONResponse(status_code=400, content={"error": "selected_text cannot be empty"})
    session = await _session_or_404(conversation_id)
    reply = await request_explanation(
        session.conversation_id,
        session.assistant_id,
        req.selected_text,
        req.instruction,
    )
    return ReplyResponse(conversation_id=conversation_id, reply=reply)


@app.get("/sessions/{conversation_id}/operations", response_model=list[OperationRecord])
async def operations(conversation_id: str):
    await _session_or_404(conversation_id)
    return get_orchestrator().history(conversation_id)
