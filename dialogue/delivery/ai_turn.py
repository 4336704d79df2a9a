# dialogue/delivery/ai_turn.py
"""
AI turn handling - free-text questions answered by the cloud LLM.

The backend signals "go back to the lesson" with an in-band marker at the
end of its reply. That marker is a detail of this boundary: callers only
ever see AITurnResult.continuation_requested.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Protocol

from dialogue.delivery.llm import stream_chat
from dialogue.delivery.prompts import (
    CONTINUE_MARKER,
    build_system_prompt,
    to_llm_messages,
)
from dialogue.delivery.types import DeliveredItem

logger = logging.getLogger(__name__)

CONTEXT_WINDOW = 6  # Three exchanges


@dataclass(frozen=True)
class AITurnResult:
    """What the AI said, and whether the authored path should resume."""

    text: str
    continuation_requested: bool = False


@dataclass
class TurnContext:
    """Where the learner is when they ask something."""

    recent_items: list[DeliveredItem] = field(default_factory=list)
    current_node_id: str | None = None
    current_node_content: str | None = None
    module_title: str | None = None
    nodes_completed: int = 0
    total_nodes: int = 0


class AITurnHandler(Protocol):
    async def send(self, text: str, context: TurnContext) -> AITurnResult: ...


def parse_turn_response(raw: str) -> AITurnResult:
    """Strip the continuation marker and turn it into a flag."""
    if CONTINUE_MARKER not in raw:
        return AITurnResult(text=raw.strip())
    text = raw.replace(f"\n\n{CONTINUE_MARKER}", "").replace(CONTINUE_MARKER, "")
    return AITurnResult(text=text.strip(), continuation_requested=True)


def split_paragraphs(text: str) -> list[str]:
    """Blank-line separated paragraphs, trimmed, empties dropped."""
    return [p.strip() for p in text.split("\n\n") if p.strip()]


class LLMTurnHandler:
    """Answers free text through LiteLLM with the tutor system prompt."""

    def __init__(self, provider: str | None = None, max_tokens: int = 2048):
        self.provider = provider
        self.max_tokens = max_tokens

    async def send(self, text: str, context: TurnContext) -> AITurnResult:
        system = build_system_prompt(
            module_title=context.module_title,
            current_node_content=context.current_node_content,
            nodes_completed=context.nodes_completed,
            total_nodes=context.total_nodes,
        )
        messages = to_llm_messages(context.recent_items[-CONTEXT_WINDOW:])
        if not messages or messages[-1]["content"] != text:
            messages.append({"role": "user", "content": text})

        started = time.monotonic()
        chunks = []
        async for event in stream_chat(
            messages=messages,
            system=system,
            provider=self.provider,
            max_tokens=self.max_tokens,
        ):
            if event.get("type") == "text":
                chunks.append(event.get("content", ""))

        result = parse_turn_response("".join(chunks))
        logger.info(
            f"AI turn at node {context.current_node_id}: "
            f"{len(text)} chars in, {len(result.text)} chars out, "
            f"continue={result.continuation_requested}, "
            f"{time.monotonic() - started:.2f}s"
        )
        return result
