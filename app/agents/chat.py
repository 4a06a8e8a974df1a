from __future__ import annotations

from app.config import DEFAULT_EXPLAIN_INSTRUCTION
from app.services.orchestrator import ConversationOrchestrator, get_orchestrator
from app.services.parsers import parse_chat_reply


def explain_prompt(selected_text: str, instruction: str | None = None) -> str:
    selected = " ".join(selected_text.split())
    return (
        f'Please focus only on explaining this specific text: "{selected}". '
        f"{(instruction or '').strip() or DEFAULT_EXPLAIN_INSTRUCTION}"
    )


async def request_chat_reply(
    conversation_id: str,
    assistant_id: str,
    user_text: str,
    orchestrator: ConversationOrchestrator | None = None,
) -> str:
    orchestrator = orchestrator or get_orchestrator()
    raw_text = await orchestrator.submit(conversation_id, assistant_id, user_text, kind="chat")
    return parse_chat_reply(raw_text).value


async def request_explanation(
    conversation_id: str,
    assistant_id: str,
    selected_text: str,
    instruction: str | None = None,
    orchestrator: ConversationOrchestrator | None = None,
) -> str:
    orchestrator = orchestrator or get_orchestrator()
    prompt = explain_prompt(selected_text, instruction)
    raw_text = await orchestrator.submit(conversation_id, assistant_id, prompt, kind="explain")
    return parse_chat_reply(raw_text).value
