"""LLM clients used to author report sections."""

from reportflow.llm.client import (
    CompletionClient,
    LLMClient,
    LLMError,
    LLMResponse,
    LLMUsage,
)
from reportflow.llm.config import (
    DEFAULT_LLM_CONFIG,
    PROVIDER_MODELS,
    LLMConfig,
    LLMProvider,
)

__all__ = [
    "CompletionClient",
    "DEFAULT_LLM_CONFIG",
    "LLMClient",
    "LLMConfig",
    "LLMError",
    "LLMProvider",
    "LLMResponse",
    "LLMUsage",
    "PROVIDER_MODELS",
]
