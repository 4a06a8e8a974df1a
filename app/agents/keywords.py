from __future__ import annotations

from app.config import KEYWORD_FORMAT
from app.models import KeywordEntry
from app.services.orchestrator import ConversationOrchestrator, get_orchestrator
from app.services.parsers import KeywordFormat, parse_keywords

FLAT_KEYWORDS_PROMPT = (
    "Extract the most important keywords and key concepts from the document. "
    "Return ONLY a comma-separated list of keywords on a single line, with no numbering, "
    "explanations, or other text."
)

STRUCTURED_KEYWORDS_PROMPT = (
    "Extract the most important keywords and key concepts from the document. "
    "Return ONLY a raw JSON array of objects with keywords and definitions. "
    "Each object must have exactly two fields: 'keyword' and 'definition'. "
    "The response must start with '[' and end with ']'. "
    "Do not include any other text, explanations, or formatting. "
    'Example of valid response: [{"keyword":"artificial intelligence",'
    '"definition":"The simulation of human intelligence by machines"},'
    '{"keyword":"neural networks","definition":"Computing systems inspired by biological neural networks"}]'
)


def configured_format() -> KeywordFormat:
    try:
        return KeywordFormat(KEYWORD_FORMAT)
    except ValueError:
        return KeywordFormat.STRUCTURED


def keywords_prompt(fmt: KeywordFormat) -> str:
    if fmt is KeywordFormat.FLAT:
        return FLAT_KEYWORDS_PROMPT
    return STRUCTURED_KEYWORDS_PROMPT


async def request_keywords(
    conversation_id: str,
    assistant_id: str,
    fmt: KeywordFormat | None = None,
    orchestrator: ConversationOrchestrator | None = None,
) -> list[KeywordEntry]:
    # The prompt decides the output shape, so the parser never has to guess it.
    fmt = fmt or configured_format()
    orchestrator = orchestrator or get_orchestrator()
    raw_text = await orchestrator.submit(conversation_id, assistant_id, keywords_prompt(fmt), kind="keywords")
    return parse_keywords(raw_text, fmt).value
