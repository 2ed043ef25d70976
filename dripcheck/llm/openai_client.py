"""
OpenAI API client implementation.

Supports OpenAI API and compatible endpoints (Azure, local, etc.)
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from dripcheck.llm.provider import LLMClient, LLMConfig, LLMResponse


class OpenAIClient(LLMClient):
    """OpenAI API client with async support."""

    provider_name = "openai"

    def __init__(self, config: LLMConfig):
        super().__init__(config)
        self._async_client = None

    def _get_async_client(self):
        """Lazy-load the async OpenAI client."""
        if self._async_client is None:
            try:
                import openai
                kwargs = {
                    "api_key": self.config.api_key,
                    "timeout": self.config.timeout_seconds,
                    "max_retries": 0,
                }
                if self.config.base_url:
                    kwargs["base_url"] = self.config.base_url
                self._async_client = openai.AsyncOpenAI(**kwargs)
            except ImportError:
                raise ImportError(
                    "openai package not installed. "
                    "Install with: pip install openai"
                )
        return self._async_client

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        prefill: Optional[str] = None,
    ) -> LLMResponse:
        """Generate a completion using OpenAI API. ``prefill`` is ignored."""
        try:
            client = self._get_async_client()

            messages = []
            if system_prompt:
                messages.append({"role": "system", "content": system_prompt})
            messages.append({"role": "user", "content": prompt})

            kwargs: Dict[str, Any] = {
                "model": self.config.model,
                "messages": messages,
                "max_tokens": self.config.max_tokens,
                "temperature": self.config.temperature,
            }

            response = await client.chat.completions.create(**kwargs)

            content = response.choices[0].message.content or ""
            usage = response.usage
            return LLMResponse(
                content=content,
                input_tokens=usage.prompt_tokens if usage else 0,
                output_tokens=usage.completion_tokens if usage else 0,
                model=getattr(response, "model", None) or self.config.model,
            )

        except Exception as e:
            return LLMResponse(error=str(e))
