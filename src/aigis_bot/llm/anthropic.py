"""
Anthropic Claude LLM provider.
"""

from typing import Any, AsyncIterator

import anthropic
import structlog

from ..errors import GenerationError
from .base import BaseLLM, LLMMessage, tool_message_text

logger = structlog.get_logger()


class AnthropicLLM(BaseLLM):
    """Anthropic Claude LLM provider."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        base_url: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ):
        super().__init__(api_key, model, base_url, max_tokens, temperature)
        self.client = anthropic.AsyncAnthropic(
            api_key=api_key,
            base_url=base_url,
        )

    @property
    def provider_name(self) -> str:
        return "anthropic"

    def _convert_messages(self, messages: list[LLMMessage]) -> list[dict[str, Any]]:
        """Convert LLMMessages to Anthropic format.

        System messages are lifted out separately; tool results become user
        turns, and adjacent turns of the same role are merged.
        """
        converted: list[dict[str, Any]] = []

        for msg in messages:
            if msg.role == "system":
                continue

            role = "assistant" if msg.role == "assistant" else "user"
            content = tool_message_text(msg) if msg.role == "tool" else msg.content

            if converted and converted[-1]["role"] == role:
                converted[-1]["content"] += "\n\n" + content
            else:
                converted.append({"role": role, "content": content})

        return converted

    def _extract_system_prompt(
        self,
        messages: list[LLMMessage],
        system_prompt: str | None,
    ) -> str | None:
        """Join the explicit system prompt with any inline system messages."""
        parts = [system_prompt] if system_prompt else []
        parts.extend(msg.content for msg in messages if msg.role == "system" and msg.content)
        return "\n\n".join(parts) if parts else None

    def _build_kwargs(
        self,
        messages: list[LLMMessage],
        system_prompt: str | None,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": self._convert_messages(messages),
        }

        system = self._extract_system_prompt(messages, system_prompt)
        if system:
            kwargs["system"] = system

        return kwargs

    async def generate(
        self,
        messages: list[LLMMessage],
        system_prompt: str | None = None,
    ) -> str:
        """Generate a response from Claude."""
        kwargs = self._build_kwargs(messages, system_prompt)

        try:
            response = await self.client.messages.create(**kwargs)
        except anthropic.APIError as e:
            logger.error("Anthropic API error", error=str(e))
            raise GenerationError(f"anthropic request failed: {e}") from e

        content = "".join(block.text for block in response.content if block.type == "text")

        logger.debug(
            "LLM usage",
            model=response.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )

        return content

    async def stream(
        self,
        messages: list[LLMMessage],
        system_prompt: str | None = None,
    ) -> AsyncIterator[str]:
        """Stream a response from Claude."""
        kwargs = self._build_kwargs(messages, system_prompt)

        try:
            async with self.client.messages.stream(**kwargs) as stream:
                async for text in stream.text_stream:
                    yield text

        except anthropic.APIError as e:
            logger.error("Anthropic streaming error", error=str(e))
            raise GenerationError(f"anthropic stream failed: {e}") from e
