"""
Anthropic Claude client implementation.

Uses the official anthropic SDK (Messages API). Supports priming the reply
with an assistant prefill so the model starts directly with the answer.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from dripcheck.llm.provider import LLMClient, LLMConfig, LLMResponse


class AnthropicClient(LLMClient):
    """Anthropic Messages API client with async support."""

    provider_name = "anthropic"

    def __init__(self, config: LLMConfig):
        super().__init__(config)
        self._async_client = None

    @property
    def supports_prefill(self) -> bool:
        return True

    def _get_async_client(self):
        """Lazy-load the async Anthropic client."""
        if self._async_client is None:
            try:
                import anthropic
                kwargs = {
                    "api_key": self.config.api_key,
                    "timeout": self.config.timeout_seconds,
                    "max_retries": 0,
                }
                if self.config.base_url:
                    kwargs["base_url"] = self.config.base_url
                self._async_client = anthropic.AsyncAnthropic(**kwargs)
            except ImportError:
                raise ImportError(
                    "anthropic package not installed. "
                    "Install with: pip install anthropic"
                )
        return self._async_client

    def _build_request_kwargs(
        self,
        prompt: str,
        system_prompt: Optional[str],
        prefill: Optional[str],
    ) -> Dict[str, Any]:
        """Build keyword arguments for messages.create."""
        messages = [{"role": "user", "content": prompt}]
        if prefill:
            messages.append({"role": "assistant", "content": prefill})

        kwargs: Dict[str, Any] = {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "messages": messages,
        }
        if system_prompt:
            kwargs["system"] = system_prompt
        return kwargs

    @staticmethod
    def _extract_text(response) -> str:
        """Extract concatenated text from a Messages response."""
        parts = []
        for block in response.content or []:
            text = getattr(block, "text", None)
            if isinstance(text, str):
                parts.append(text)
        return "".join(parts)

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        prefill: Optional[str] = None,
    ) -> LLMResponse:
        """Generate a completion using the Anthropic Messages API."""
        try:
            client = self._get_async_client()
            response = await client.messages.create(
                **self._build_request_kwargs(prompt, system_prompt, prefill)
            )

            usage = response.usage
            return LLMResponse(
                content=self._extract_text(response),
                input_tokens=usage.input_tokens if usage else 0,
                output_tokens=usage.output_tokens if usage else 0,
                model=getattr(response, "model", None) or self.config.model,
            )

        except Exception as e:
            return LLMResponse(error=str(e))
