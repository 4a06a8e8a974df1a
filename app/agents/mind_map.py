from __future__ import annotations

import textwrap

from app.models import Graph
from app.services.orchestrator import ConversationOrchestrator, get_orchestrator
from app.services.parsers import parse_graph

# Node counts and val tiers below are guidance for the assistant; parse_graph does not enforce them.
MIND_MAP_PROMPT = textwrap.dedent(
    """
    Create a detailed hierarchical mind map of the document's main concepts and their relationships. Follow these steps:

    1. First, identify the main topic of the document - this will be the central node
    2. Then, identify 4-6 key subtopics that branch directly from the main topic
    3. For each subtopic, identify 3-4 specific concepts, details, or examples
    4. Add 1-2 related points for each specific concept where relevant

    Format the response as a JSON object exactly like this:
    {
      "nodes": [
        { "id": "1", "name": "Main Topic", "val": 20 },
        { "id": "2", "name": "Key Subtopic 1", "val": 15 },
        { "id": "3", "name": "Specific Concept 1.1", "val": 12 },
        { "id": "4", "name": "Related Point 1.1.1", "val": 10 }
      ],
      "links": [
        { "source": "1", "target": "2" },
        { "source": "2", "target": "3" },
        { "source": "3", "target": "4" }
      ]
    }

    Requirements:
    1. Use actual concepts from the document
    2. Keep node names concise (max 4-5 words)
    3. Use the following node sizes:
       - Main topic: val = 20
       - Key subtopics: val = 15
       - Specific concepts: val = 12
       - Related points: val = 10
    4. Include at least 15-20 nodes total
    5. Ensure all nodes are connected via links
    6. Return ONLY the JSON object with no additional text
    """
).strip()


async def request_graph(
    conversation_id: str,
    assistant_id: str,
    orchestrator: ConversationOrchestrator | None = None,
) -> Graph:
    orchestrator = orchestrator or get_orchestrator()
    raw_text = await orchestrator.submit(conversation_id, assistant_id, MIND_MAP_PROMPT, kind="mind_map")
    return parse_graph(raw_text).value
