from __future__ import annotations

from app.services.orchestrator import ConversationOrchestrator, get_orchestrator
from app.services.parsers import parse_summary

SUMMARY_PROMPT = "Please provide a concise summary of the document."


async def request_summary(
    conversation_id: str,
    assistant_id: str,
    orchestrator: ConversationOrchestrator | None = None,
) -> str:
    orchestrator = orchestrator or get_orchestrator()
    raw_text = await orchestrator.submit(conversation_id, assistant_id, SUMMARY_PROMPT, kind="summary")
    return parse_summary(raw_text).value
