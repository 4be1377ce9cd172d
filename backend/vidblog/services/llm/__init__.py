"""LLM provider abstraction layer.

Usage:
    from vidblog.services.llm import get_adapter

    adapter = get_adapter()
    reply = await adapter.chat(messages, "anthropic/claude-3.5-sonnet", temperature=0.3)
"""

from vidblog.services.llm.base import LLMAdapter
from vidblog.services.llm.registry import get_adapter

__all__ = ["LLMAdapter", "get_adapter"]
