"""Turn free-form assistant output into summary, keyword and graph artifacts.

Every parser is total: malformed input never raises, it produces the
documented default wrapped in a ParseResult with ``fallback=True``.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any

from app.config import CHAT_FALLBACK, FLAT_KEYWORD_DELIMITER, SUMMARY_FALLBACK
from app.models import Graph, GraphEdge, GraphNode, KeywordEntry, ParseResult

logger = logging.getLogger("app.parsers")


class KeywordFormat(str, Enum):
    FLAT = "flat"
    STRUCTURED = "structured"


FlatKeywordFormat = KeywordFormat.FLAT
StructuredKeywordFormat = KeywordFormat.STRUCTURED


def _strip_code_fence(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped.strip("`")
        if stripped.startswith("json"):
            stripped = stripped[4:]
        stripped = stripped.strip()
    return stripped


def parse_summary(raw_text: str) -> ParseResult[str]:
    if not raw_text:
        return ParseResult[str](value=SUMMARY_FALLBACK, fallback=True, reason="empty response")
    return ParseResult[str](value=raw_text)


def parse_chat_reply(raw_text: str) -> ParseResult[str]:
    if not raw_text:
        return ParseResult[str](value=CHAT_FALLBACK, fallback=True, reason="empty response")
    return ParseResult[str](value=raw_text)


def parse_flat_keywords(raw_text: str, delimiter: str = FLAT_KEYWORD_DELIMITER) -> ParseResult[list[KeywordEntry]]:
    entries = [
        KeywordEntry(keyword=part.strip())
        for part in (raw_text or "").split(delimiter)
        if part.strip()
    ]
    if not entries:
        return ParseResult[list[KeywordEntry]](value=[], fallback=True, reason="no keywords found")
    return ParseResult[list[KeywordEntry]](value=entries)


def parse_structured_keywords(raw_text: str) -> ParseResult[list[KeywordEntry]]:
    cleaned = _strip_code_fence(raw_text or "")
    if not cleaned:
        return ParseResult[list[KeywordEntry]](value=[], fallback=True, reason="empty response")
    try:
        data = json.loads(cleaned)
    except (ValueError, RecursionError) as exc:
        logger.warning("parsers.keywords_invalid_json error=%s raw=%r", exc, cleaned[:200])
        return ParseResult[list[KeywordEntry]](value=[], fallback=True, reason="invalid JSON")
    if not isinstance(data, list):
        logger.warning("parsers.keywords_not_array type=%s", type(data).__name__)
        return ParseResult[list[KeywordEntry]](value=[], fallback=True, reason="expected a JSON array")

    entries: list[KeywordEntry] = []
    for item in data:
        if not isinstance(item, dict):
            continue
        keyword = item.get("keyword")
        definition = item.get("definition")
        if not isinstance(keyword, str) or not isinstance(definition, str):
            continue
        if not keyword or not definition:
            continue
        entries.append(KeywordEntry(keyword=keyword, definition=definition))
    dropped = len(data) - len(entries)
    if dropped:
        logger.info("parsers.keywords_dropped count=%s kept=%s", dropped, len(entries))
    return ParseResult[list[KeywordEntry]](value=entries)


def parse_keywords(raw_text: str, fmt: KeywordFormat = KeywordFormat.STRUCTURED) -> ParseResult[list[KeywordEntry]]:
    if fmt is KeywordFormat.FLAT:
        return parse_flat_keywords(raw_text)
    return parse_structured_keywords(raw_text)


def first_balanced_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` span, ignoring braces inside JSON strings."""
    start = text.find("{")
    if start < 0:
        return None
    depth = 0
    in_string = False
    escaped = False
    for idx in range(start, len(text)):
        char = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : idx + 1]
    return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _valid_nodes(raw_nodes: list) -> list[GraphNode]:
    nodes: list[GraphNode] = []
    seen: set[str] = set()
    for item in raw_nodes:
        if not isinstance(item, dict):
            continue
        node_id = item.get("id")
        name = item.get("name")
        weight = item.get("val")
        if not isinstance(node_id, str) or not node_id:
            continue
        if not isinstance(name, str) or not _is_number(weight):
            continue
        if node_id in seen:
            continue
        seen.add(node_id)
        nodes.append(GraphNode(id=node_id, name=name, importance=weight))
    return nodes


def _valid_edges(raw_edges: list, node_ids: set[str]) -> list[GraphEdge]:
    edges: list[GraphEdge] = []
    seen: set[tuple[str, str]] = set()
    for item in raw_edges:
        if not isinstance(item, dict):
            continue
        source = item.get("source")
        target = item.get("target")
        if not isinstance(source, str) or not isinstance(target, str):
            continue
        if source not in node_ids or target not in node_ids:
            continue
        if (source, target) in seen:
            continue
        seen.add((source, target))
        edges.append(GraphEdge(source=source, target=target))
    return edges


def _empty_graph(reason: str) -> ParseResult[Graph]:
    logger.warning("parsers.graph_fallback reason=%s", reason)
    return ParseResult[Graph](value=Graph.empty(), fallback=True, reason=reason)


def parse_graph(raw_text: str) -> ParseResult[Graph]:
    if not raw_text:
        return _empty_graph("empty response")
    span = first_balanced_object(raw_text)
    if span is None:
        return _empty_graph("no JSON object found")
    try:
        data = json.loads(span)
    except (ValueError, RecursionError):
        return _empty_graph("invalid JSON")

    raw_nodes = data.get("nodes")
    raw_edges = data.get("links", data.get("edges"))
    if not isinstance(raw_nodes, list) or not isinstance(raw_edges, list):
        return _empty_graph("missing nodes or links arrays")

    nodes = _valid_nodes(raw_nodes)
    if not nodes:
        return _empty_graph("no valid nodes")
    edges = _valid_edges(raw_edges, {node.id for node in nodes})
    if not edges:
        return _empty_graph("no valid links")

    logger.info(
        "parsers.graph_ok nodes=%s/%s links=%s/%s",
        len(nodes),
        len(raw_nodes),
        len(edges),
        len(raw_edges),
    )
    return ParseResult[Graph](value=Graph(nodes=tuple(nodes), edges=tuple(edges)))
