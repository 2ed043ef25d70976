"""
Rewrite proxy: turns a corporate-sounding post into plain, human text.

Builds the fixed rewrite prompt, calls the configured LLM provider once (no
retries) and returns the text with the provider's token counts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from backend.app.core.config import Settings
from dripcheck.llm.prompts import build_rewrite_prompt, leading_token
from dripcheck.llm.provider import LLMClient, LLMConfig, get_llm_client

logger = logging.getLogger(__name__)


class RewriteError(RuntimeError):
    """The provider failed or returned nothing usable."""


@dataclass(frozen=True)
class RewriteResult:
    text: str
    input_tokens: int
    output_tokens: int
    model: str = ""

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


def build_llm_client(settings: Settings) -> Optional[LLMClient]:
    llm_config = LLMConfig(
        provider=settings.llm_provider,
        api_key=settings.llm_api_key,
        model=settings.llm_model,
        base_url=settings.llm_base_url,
        max_tokens=settings.llm_max_tokens,
        temperature=settings.llm_temperature,
        timeout_seconds=settings.llm_timeout_seconds,
    )
    return get_llm_client(llm_config)


class RewriteService:
    """Wraps an LLM client with the rewrite prompt and response priming."""

    def __init__(self, client: Optional[LLMClient], *, prime_response: bool = True):
        self.client = client
        self.prime_response = prime_response

    async def rewrite(
        self,
        text: str,
        current_score: Any = None,
    ) -> RewriteResult:
        if not self.client:
            raise RewriteError("AI not configured (missing LLM API key)")

        prompt = build_rewrite_prompt(text, current_score)
        prefill = ""
        if self.prime_response and self.client.supports_prefill:
            prefill = leading_token(text)

        resp = await self.client.complete(prompt, prefill=prefill or None)
        if not resp.ok:
            raise RewriteError(resp.error or "AI generation returned an empty response")

        # The primed token is not part of the returned continuation.
        rewritten = prefill + resp.content
        return RewriteResult(
            text=rewritten,
            input_tokens=resp.input_tokens,
            output_tokens=resp.output_tokens,
            model=resp.model,
        )
