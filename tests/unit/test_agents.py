from unittest.mock import AsyncMock, patch

import pytest

from app.agents.chat import explain_prompt, request_chat_reply, request_explanation
from app.agents.keywords import (
    FLAT_KEYWORDS_PROMPT,
    STRUCTURED_KEYWORDS_PROMPT,
    configured_format,
    request_keywords,
)
from app.agents.mind_map import MIND_MAP_PROMPT, request_graph
from app.agents.summary import SUMMARY_PROMPT, request_summary
from app.models import Graph, KeywordEntry
from app.services.parsers import KeywordFormat


def _orchestrator(raw_text):
    orchestrator = AsyncMock()
    orchestrator.submit.return_value = raw_text
    return orchestrator


@pytest.mark.asyncio
async def test_request_summary_returns_text():
    orchestrator = _orchestrator("The document covers X.")

    result = await request_summary("thread_1", "asst_1", orchestrator=orchestrator)

    assert result == "The document covers X."
    orchestrator.submit.assert_awaited_once_with("thread_1", "asst_1", SUMMARY_PROMPT, kind="summary")


@pytest.mark.asyncio
async def test_request_summary_empty_response_uses_placeholder():
    result = await request_summary("thread_1", "asst_1", orchestrator=_orchestrator(""))
    assert result == "Unable to generate summary"


@pytest.mark.asyncio
async def test_request_keywords_structured_prompt_and_parse():
    orchestrator = _orchestrator('[{"keyword":"x","definition":"d"},{"keyword":"y"}]')

    result = await request_keywords("thread_1", "asst_1", KeywordFormat.STRUCTURED, orchestrator=orchestrator)

    assert result == [KeywordEntry(keyword="x", definition="d")]
    orchestrator.submit.assert_awaited_once_with("thread_1", "asst_1", STRUCTURED_KEYWORDS_PROMPT, kind="keywords")


@pytest.mark.asyncio
async def test_request_keywords_flat_prompt_and_parse():
    orchestrator = _orchestrator("alpha, beta ,  , gamma")

    result = await request_keywords("thread_1", "asst_1", KeywordFormat.FLAT, orchestrator=orchestrator)

    assert [entry.keyword for entry in result] == ["alpha", "beta", "gamma"]
    assert orchestrator.submit.await_args.args[2] == FLAT_KEYWORDS_PROMPT


@pytest.mark.asyncio
async def test_request_keywords_malformed_json_is_empty():
    result = await request_keywords(
        "thread_1",
        "asst_1",
        KeywordFormat.STRUCTURED,
        orchestrator=_orchestrator("Sorry, I cannot do that."),
    )
    assert result == []


def test_configured_format_falls_back_to_structured():
    with patch("app.agents.keywords.KEYWORD_FORMAT", "yaml"):
        assert configured_format() is KeywordFormat.STRUCTURED
    with patch("app.agents.keywords.KEYWORD_FORMAT", "flat"):
        assert configured_format() is KeywordFormat.FLAT


@pytest.mark.asyncio
async def test_request_graph_parses_prose_wrapped_json():
    raw = (
        'Here is the map: {"nodes":[{"id":"1","name":"A","val":20},{"id":"2","name":"B","val":15}],'
        '"links":[{"source":"1","target":"2"}]} Thanks!'
    )
    orchestrator = _orchestrator(raw)

    graph = await request_graph("thread_1", "asst_1", orchestrator=orchestrator)

    assert [node.name for node in graph.nodes] == ["A", "B"]
    assert len(graph.edges) == 1
    orchestrator.submit.assert_awaited_once_with("thread_1", "asst_1", MIND_MAP_PROMPT, kind="mind_map")


@pytest.mark.asyncio
async def test_request_graph_invalid_output_is_empty_graph():
    graph = await request_graph("thread_1", "asst_1", orchestrator=_orchestrator("no graph"))
    assert graph == Graph.empty()


@pytest.mark.asyncio
async def test_request_chat_reply_passes_user_text():
    orchestrator = _orchestrator("Page 3 explains it.")

    reply = await request_chat_reply("thread_1", "asst_1", "Where is X?", orchestrator=orchestrator)

    assert reply == "Page 3 explains it."
    orchestrator.submit.assert_awaited_once_with("thread_1", "asst_1", "Where is X?", kind="chat")


@pytest.mark.asyncio
async def test_request_chat_reply_empty_uses_placeholder():
    reply = await request_chat_reply("thread_1", "asst_1", "Hello?", orchestrator=_orchestrator(""))
    assert reply == "No response generated"


@pytest.mark.asyncio
async def test_request_explanation_builds_focused_prompt():
    orchestrator = _orchestrator("It means...")

    reply = await request_explanation(
        "thread_1",
        "asst_1",
        "entropy\nincreases",
        "explain like a physicist",
        orchestrator=orchestrator,
    )

    assert reply == "It means..."
    prompt = orchestrator.submit.await_args.args[2]
    assert prompt == 'Please focus only on explaining this specific text: "entropy increases". explain like a physicist'
    assert orchestrator.submit.await_args.kwargs["kind"] == "explain"


def test_explain_prompt_default_instruction():
    assert explain_prompt("term").endswith("explain this to me as if i were 12 years old")
    assert explain_prompt("term", "   ").endswith("explain this to me as if i were 12 years old")


@pytest.mark.asyncio
async def test_agents_use_default_orchestrator():
    orchestrator = _orchestrator("summary")
    with patch("app.agents.summary.get_orchestrator", return_value=orchestrator):
        assert await request_summary("thread_1", "asst_1") == "summary"
