"""Provider registry for LLM adapters.

Builds the adapter for the configured OpenAI-compatible endpoint.
"""

import logging
from typing import Optional

from vidblog.config import LLMConfig, settings
from vidblog.services.llm.base import LLMAdapter

logger = logging.getLogger(__name__)


def get_adapter(config: Optional[LLMConfig] = None) -> LLMAdapter:
    """Return an LLM adapter for the configured endpoint.

    Args:
        config: LLM settings. Defaults to settings.llm

    Raises:
        ValueError: If no API key is configured
    """
    from vidblog.services.llm.openrouter_adapter import OpenRouterAdapter

    config = config or settings.llm
    if not config.api_key:
        raise ValueError("LLM API key is not configured (llm.api_key / VIDBLOG_LLM__API_KEY)")

    logger.debug("Routing chat to %s", config.base_url)
    return OpenRouterAdapter(
        api_key=config.api_key,
        base_url=config.base_url,
        timeout=config.request_timeout,
        max_retries=config.max_retries,
        app_title=config.app_title,
    )
