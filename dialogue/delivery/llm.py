"""
LLM provider abstraction using LiteLLM.

Provides a unified interface for Claude, Gemini, and other providers.
Normalizes streaming events to our internal format.
"""

import os
from typing import AsyncIterator

from litellm import acompletion


# Default provider - can be overridden per-call or via environment
DEFAULT_PROVIDER = os.environ.get("LLM_PROVIDER", "anthropic/claude-3-5-haiku-20241022")


async def stream_chat(
    messages: list[dict],
    system: str,
    provider: str | None = None,
    max_tokens: int = 2048,
    temperature: float = 0.6,
) -> AsyncIterator[dict]:
    """
    Stream a chat completion from any LLM provider.

    Args:
        messages: List of {"role": "user"|"assistant", "content": str}
        system: System prompt
        provider: Model string like "anthropic/claude-3-5-haiku-20241022"
        max_tokens: Maximum tokens in response
        temperature: Sampling temperature

    Yields:
        Normalized events:
        - {"type": "text", "content": str} for text chunks
        - {"type": "done"} when complete
    """
    model = provider or DEFAULT_PROVIDER

    # LiteLLM uses OpenAI-style messages with system as a message
    llm_messages = [{"role": "system", "content": system}] + messages

    response = await acompletion(
        model=model,
        messages=llm_messages,
        max_tokens=max_tokens,
        temperature=temperature,
        stream=True,
    )

    async for chunk in response:
        delta = chunk.choices[0].delta if chunk.choices else None
        if not delta:
            continue

        if delta.content:
            yield {"type": "text", "content": delta.content}

    yield {"type": "done"}
