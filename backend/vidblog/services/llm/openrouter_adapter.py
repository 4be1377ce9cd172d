"""OpenAI-compatible chat completions adapter (OpenRouter by default).

Transient transport failures and 5xx/429 responses are retried with
exponential backoff; any other error status fails immediately.
"""

import logging
from typing import Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from vidblog.services.llm.base import LLMAdapter

logger = logging.getLogger(__name__)


class TransientLLMError(Exception):
    """Raised for responses worth retrying (rate limits and server errors)."""


class OpenRouterAdapter(LLMAdapter):
    """LLM adapter for OpenRouter and other OpenAI-compatible endpoints."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://openrouter.ai/api/v1",
        *,
        timeout: float = 300.0,
        max_retries: int = 3,
        app_title: str = "vidblog",
        referer: str = "http://localhost:8000",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            api_key: Bearer token for the endpoint.
            base_url: API root; ``/chat/completions`` is appended.
            timeout: Per-request timeout in seconds.
            max_retries: Attempts per chat call, including the first.
            app_title: Sent as X-Title for OpenRouter attribution.
            referer: Sent as HTTP-Referer for OpenRouter attribution.
            transport: Optional httpx transport, used by tests.
        """
        if not api_key:
            raise ValueError("OpenRouter API key is required")
        self._url = f"{base_url.rstrip('/')}/chat/completions"
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "HTTP-Referer": referer,
            "X-Title": app_title,
        }
        self._timeout = timeout
        self._max_retries = max_retries
        self._transport = transport

    async def chat(
        self,
        messages: list[dict[str, str]],
        model: str,
        *,
        temperature: float = 0.7,
        max_tokens: int = 4096,
    ) -> str:
        payload = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        @retry(
            stop=stop_after_attempt(self._max_retries),
            wait=wait_exponential(multiplier=1, min=2, max=30),
            retry=retry_if_exception_type((httpx.TransportError, TransientLLMError)),
            reraise=True,
        )
        async def _call() -> str:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._url, headers=self._headers, json=payload)

            if response.status_code == 429 or response.status_code >= 500:
                logger.warning(f"LLM endpoint returned {response.status_code}, retrying")
                raise TransientLLMError(f"OpenRouter API error ({response.status_code}): {response.text}")
            if response.status_code >= 400:
                raise RuntimeError(f"OpenRouter API error ({response.status_code}): {response.text}")

            data = response.json()
            choices = data.get("choices") or []
            if not choices:
                raise RuntimeError("No response from OpenRouter")
            return choices[0]["message"]["content"]

        logger.info(f"Calling {model} ({len(messages)} messages, max_tokens={max_tokens})")
        return await _call()
