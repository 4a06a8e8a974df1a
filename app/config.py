from __future__ import annotations

import os

# Assistant provisioning defaults (one assistant + thread per uploaded document).
OPENAI_ASSISTANT_MODEL = os.getenv("OPENAI_ASSISTANT_MODEL", "gpt-4o")
ASSISTANT_NAME = "PDF Reader Assistant"
ASSISTANT_INSTRUCTIONS = (
    "You are a helpful assistant that analyzes PDF documents. You can provide summaries, "
    "generate keywords, and answer questions about the document."
)
VECTOR_STORE_NAME = "PDF Analysis Store"
INITIAL_ANALYSIS_MESSAGE = "Please analyze this PDF document."

# Run polling. RUN_MAX_POLL_ATTEMPTS=0 disables the bound.
RUN_POLL_INTERVAL_SECONDS = float(os.getenv("RUN_POLL_INTERVAL_SECONDS", "1.0"))
RUN_MAX_POLL_ATTEMPTS = int(os.getenv("RUN_MAX_POLL_ATTEMPTS", "60"))

# "global" serializes every conversation behind one queue; "conversation" keys the queue by id.
SERIAL_SCOPE = os.getenv("SERIAL_SCOPE", "global").strip().lower()
SERIAL_SCOPES = ("global", "conversation")

# Keyword output shape requested from the assistant: "structured" (JSON objects) or "flat" (CSV).
KEYWORD_FORMAT = os.getenv("KEYWORD_FORMAT", "structured").strip().lower()
FLAT_KEYWORD_DELIMITER = ","

OPERATION_HISTORY_LIMIT = int(os.getenv("OPERATION_HISTORY_LIMIT", "20"))

SUMMARY_FALLBACK = "Unable to generate summary"
CHAT_FALLBACK = "No response generated"
DEFAULT_EXPLAIN_INSTRUCTION = "explain this to me as if i were 12 years old"


def poll_attempt_budget() -> int | None:
    if RUN_MAX_POLL_ATTEMPTS <= 0:
        return None
    return RUN_MAX_POLL_ATTEMPTS


def serial_scope() -> str:
    if SERIAL_SCOPE not in SERIAL_SCOPES:
        return "global"
    return SERIAL_SCOPE
