"""Abstract base class for LLM provider adapters.

Defines the async chat interface used by the enhance, blog and social
steps. Adapters return the raw assistant text; callers parse it.
"""

from abc import ABC, abstractmethod


class LLMAdapter(ABC):
    """Abstract base class for LLM provider adapters."""

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, str]],
        model: str,
        *,
        temperature: float = 0.7,
        max_tokens: int = 4096,
    ) -> str:
        """Send a chat conversation and return the assistant reply.

        Args:
            messages: Conversation as ``{"role": ..., "content": ...}`` dicts.
            model: Provider model identifier (e.g. "anthropic/claude-3.5-sonnet").
            temperature: Sampling temperature. Lower = more deterministic.
            max_tokens: Upper bound on generated tokens.

        Returns:
            Text content of the first choice.
        """
        ...
