"""
LLM provider interface and configuration.

Provides a minimal abstraction for LLM clients with support for
Anthropic and OpenAI (or OpenAI-compatible) APIs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

SUPPORTED_PROVIDERS = ("anthropic", "openai")

DEFAULT_MODELS = {
    "anthropic": "claude-3-haiku-20240307",
    "openai": "gpt-4o-mini",
}


@dataclass
class LLMConfig:
    """Configuration for LLM client."""

    provider: str = "anthropic"
    api_key: str = ""
    model: str = ""
    base_url: Optional[str] = None

    max_tokens: int = 1000
    temperature: float = 0.7
    timeout_seconds: float = 30.0

    def __post_init__(self) -> None:
        self.provider = (self.provider or "anthropic").strip().lower()
        if not self.model:
            self.model = DEFAULT_MODELS.get(self.provider, "")

    @property
    def is_configured(self) -> bool:
        """Check if API key is set."""
        return bool(self.api_key)


@dataclass
class LLMResponse:
    """Response from LLM."""
    content: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""
    error: str = ""

    @property
    def tokens_used(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def ok(self) -> bool:
        return bool(self.content) and not self.error


class LLMClient(ABC):
    """Abstract base class for LLM clients."""

    provider_name = "unknown"

    def __init__(self, config: LLMConfig):
        self.config = config

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        prefill: Optional[str] = None,
    ) -> LLMResponse:
        """
        Generate a completion from the LLM.

        Args:
            prompt: User prompt
            system_prompt: Optional system prompt
            prefill: Optional text the reply is forced to start with.
                Only honoured when ``supports_prefill`` is True; the
                returned content is the continuation after it.

        Returns:
            LLMResponse with content and token usage. Failures are
            reported in ``error``, never raised.
        """
        raise NotImplementedError

    @property
    def supports_prefill(self) -> bool:
        return False


def get_llm_client(config: LLMConfig) -> Optional[LLMClient]:
    """
    Get an LLM client based on configuration.

    Returns None if not configured.
    """
    if not config.is_configured:
        return None

    if config.provider == "anthropic":
        from dripcheck.llm.anthropic_client import AnthropicClient
        return AnthropicClient(config)
    if config.provider == "openai":
        from dripcheck.llm.openai_client import OpenAIClient
        return OpenAIClient(config)

    raise ValueError(
        f"Unknown LLM provider {config.provider!r} (expected one of {', '.join(SUPPORTED_PROVIDERS)})"
    )
