"""LLM provider configuration."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Mapping


class LLMProvider(str, Enum):
    """Supported LLM providers."""

    OPENAI = "openai"
    GEMINI = "gemini"
    DEEPSEEK = "deepseek"


DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 4096
DEFAULT_TOP_P = 1.0
DEEPSEEK_BASE_URL = "https://api.deepseek.com/v1"

API_KEY_ENV_VARS: dict[str, str] = {
    LLMProvider.OPENAI.value: "OPENAI_API_KEY",
    LLMProvider.GEMINI.value: "GOOGLE_GENERATIVE_AI_API_KEY",
    LLMProvider.DEEPSEEK.value: "DEEPSEEK_API_KEY",
}

PROVIDER_MODELS: dict[str, list[str]] = {
    LLMProvider.OPENAI.value: ["gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-3.5-turbo"],
    LLMProvider.GEMINI.value: ["gemini-2.0-flash-exp", "gemini-1.5-pro", "gemini-1.5-flash"],
    LLMProvider.DEEPSEEK.value: ["deepseek-chat", "deepseek-coder"],
}


@dataclass(frozen=True)
class LLMConfig:
    """Settings for one LLM client.

    Attributes:
        provider: One of :class:`LLMProvider`.
        model: Provider model name.
        api_key: Explicit API key; falls back to the provider's env variable.
        base_url: Endpoint override (OpenAI-compatible providers).
        temperature: Sampling temperature.
        max_tokens: Completion token cap.
        top_p: Nucleus sampling cutoff.
    """

    provider: str = LLMProvider.OPENAI.value
    model: str = "gpt-4o-mini"
    api_key: str | None = None
    base_url: str | None = None
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    top_p: float = DEFAULT_TOP_P

    def __post_init__(self) -> None:
        if isinstance(self.provider, LLMProvider):
            object.__setattr__(self, "provider", self.provider.value)
        if self.provider not in API_KEY_ENV_VARS:
            raise ValueError(f"Unsupported provider: {self.provider}")
        if not self.model:
            raise ValueError("model cannot be empty")
        if self.max_tokens <= 0:
            raise ValueError("max_tokens must be positive")

    def with_overrides(self, **overrides: Any) -> "LLMConfig":
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LLMConfig":
        return cls(
            provider=data.get("provider", LLMProvider.OPENAI.value),
            model=data.get("model", "gpt-4o-mini"),
            api_key=data.get("api_key") or None,
            base_url=data.get("base_url") or None,
            temperature=_or_default(data.get("temperature"), DEFAULT_TEMPERATURE),
            max_tokens=int(_or_default(data.get("max_tokens"), DEFAULT_MAX_TOKENS)),
            top_p=_or_default(data.get("top_p"), DEFAULT_TOP_P),
        )


def _or_default(value: Any, default: Any) -> Any:
    return default if value is None else value


DEFAULT_LLM_CONFIG = LLMConfig()
