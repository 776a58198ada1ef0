"""LLM completion client.

One :class:`LLMClient` wraps a single provider selected by
:class:`~reportflow.llm.config.LLMConfig`:

- ``openai``: OpenAI chat completions (``openai`` SDK)
- ``deepseek``: OpenAI-compatible endpoint, same SDK with a base URL
- ``gemini``: Google Gemini (``google-genai`` SDK)

Provider SDKs are imported on first use. Any provider failure surfaces as
:class:`LLMError`.

Example:
    >>> client = LLMClient(LLMConfig(provider="openai", model="gpt-4o-mini"))
    >>> response = await client.complete("Summarize these sales figures ...")
    >>> response.content
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Protocol

from reportflow.llm.config import (
    API_KEY_ENV_VARS,
    DEEPSEEK_BASE_URL,
    LLMConfig,
    LLMProvider,
)

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Raised when a provider call fails."""

    pass


@dataclass(frozen=True)
class LLMUsage:
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass(frozen=True)
class LLMResponse:
    """Completion text plus the model that produced it."""

    content: str
    model: str
    usage: LLMUsage | None = None


class CompletionClient(Protocol):
    """Anything that can turn a prompt into an :class:`LLMResponse`."""

    async def complete(self, prompt: str) -> LLMResponse:
        ...


class LLMClient:
    """Provider-dispatching completion client."""

    def __init__(self, config: LLMConfig):
        self._config = config
        self._client: Any = None

    @property
    def config(self) -> LLMConfig:
        return self._config

    def _api_key(self) -> str | None:
        return self._config.api_key or os.environ.get(API_KEY_ENV_VARS[self._config.provider])

    def _ensure_client(self) -> Any:
        if self._client is not None:
            return self._client

        provider = self._config.provider
        if provider in (LLMProvider.OPENAI.value, LLMProvider.DEEPSEEK.value):
            try:
                import openai
            except ImportError:
                raise ImportError(
                    "openai is required for the openai and deepseek providers. "
                    "Install with: pip install openai"
                )
            base_url = self._config.base_url
            if provider == LLMProvider.DEEPSEEK.value:
                base_url = base_url or DEEPSEEK_BASE_URL
            self._client = openai.AsyncOpenAI(api_key=self._api_key(), base_url=base_url)

        elif provider == LLMProvider.GEMINI.value:
            try:
                from google import genai
            except ImportError:
                raise ImportError(
                    "google-genai is required for the gemini provider. "
                    "Install with: pip install google-genai"
                )
            self._client = genai.Client(api_key=self._api_key())

        else:
            raise LLMError(f"Unsupported provider: {provider}")

        return self._client

    async def complete(self, prompt: str) -> LLMResponse:
        """Send ``prompt`` and return the completion.

        Raises:
            LLMError: If the provider call fails for any reason.
        """
        logger.debug(
            f"LLM request: provider={self._config.provider} model={self._config.model} "
            f"prompt_chars={len(prompt)}"
        )
        try:
            if self._config.provider == LLMProvider.GEMINI.value:
                return await self._complete_gemini(prompt)
            return await self._complete_openai(prompt)
        except LLMError:
            raise
        except Exception as e:
            raise LLMError(f"LLM API call failed: {e}") from e

    async def _complete_openai(self, prompt: str) -> LLMResponse:
        client = self._ensure_client()
        response = await client.chat.completions.create(
            model=self._config.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=self._config.temperature,
            max_tokens=self._config.max_tokens,
            top_p=self._config.top_p,
        )
        if not response.choices:
            raise LLMError("LLM API call failed: no choices returned")

        usage = None
        if response.usage is not None:
            usage = LLMUsage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )
        return LLMResponse(
            content=response.choices[0].message.content or "",
            model=self._config.model,
            usage=usage,
        )

    async def _complete_gemini(self, prompt: str) -> LLMResponse:
        from google.genai import types as genai_types

        client = self._ensure_client()
        response = await client.aio.models.generate_content(
            model=self._config.model,
            contents=prompt,
            config=genai_types.GenerateContentConfig(
                temperature=self._config.temperature,
                max_output_tokens=self._config.max_tokens,
                top_p=self._config.top_p,
            ),
        )

        usage = None
        meta = getattr(response, "usage_metadata", None)
        if meta is not None:
            usage = LLMUsage(
                prompt_tokens=meta.prompt_token_count or 0,
                completion_tokens=meta.candidates_token_count or 0,
                total_tokens=meta.total_token_count or 0,
            )
        return LLMResponse(content=response.text or "", model=self._config.model, usage=usage)
