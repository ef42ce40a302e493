"""
OpenAI-compatible LLM provider (OpenAI, OpenRouter, Akash).
"""

from typing import Any, AsyncIterator

import openai
import structlog

from ..errors import GenerationError
from .base import BaseLLM, LLMMessage, tool_message_text

logger = structlog.get_logger()


class OpenAILLM(BaseLLM):
    """Chat completions against any OpenAI-compatible endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        base_url: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
        provider: str = "openai",
    ):
        super().__init__(api_key, model, base_url, max_tokens, temperature)
        self._provider = provider
        self.client = openai.AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
        )

    @property
    def provider_name(self) -> str:
        return self._provider

    def _convert_messages(self, messages: list[LLMMessage]) -> list[dict[str, Any]]:
        """Convert LLMMessages to OpenAI format."""
        converted = []

        for msg in messages:
            if msg.role == "tool":
                converted.append({"role": "user", "content": tool_message_text(msg)})
            else:
                converted.append({"role": msg.role, "content": msg.content})

        return converted

    def _build_kwargs(
        self,
        messages: list[LLMMessage],
        system_prompt: str | None,
    ) -> dict[str, Any]:
        converted_messages = self._convert_messages(messages)

        if system_prompt:
            converted_messages.insert(0, {"role": "system", "content": system_prompt})

        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": converted_messages,
        }

    async def generate(
        self,
        messages: list[LLMMessage],
        system_prompt: str | None = None,
    ) -> str:
        """Generate a response."""
        kwargs = self._build_kwargs(messages, system_prompt)

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except openai.APIError as e:
            logger.error("OpenAI API error", provider=self._provider, error=str(e))
            raise GenerationError(f"{self._provider} request failed: {e}") from e

        if not response.choices or response.choices[0].message.content is None:
            raise GenerationError(f"No content in {self._provider} response")

        if response.usage:
            logger.debug(
                "LLM usage",
                model=response.model,
                input_tokens=response.usage.prompt_tokens,
                output_tokens=response.usage.completion_tokens,
            )

        return response.choices[0].message.content

    async def stream(
        self,
        messages: list[LLMMessage],
        system_prompt: str | None = None,
    ) -> AsyncIterator[str]:
        """Stream a response."""
        kwargs = self._build_kwargs(messages, system_prompt)
        kwargs["stream"] = True

        try:
            stream = await self.client.chat.completions.create(**kwargs)

            async for chunk in stream:  # type: ignore
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content

        except openai.APIError as e:
            logger.error("OpenAI streaming error", provider=self._provider, error=str(e))
            raise GenerationError(f"{self._provider} stream failed: {e}") from e
