"""
LLM integration for Drip Check.

Provides a minimal client abstraction over Anthropic and OpenAI plus the
rewrite prompt template.
"""

from dripcheck.llm.provider import (
    LLMClient,
    LLMConfig,
    LLMResponse,
    get_llm_client,
)
from dripcheck.llm.prompts import build_rewrite_prompt

__all__ = [
    "LLMClient",
    "LLMConfig",
    "LLMResponse",
    "build_rewrite_prompt",
    "get_llm_client",
]
