"""
Base classes for LLM providers.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, Literal

Role = Literal["user", "assistant", "system", "tool"]


@dataclass
class LLMMessage:
    """A message in the conversation."""

    role: Role
    content: str
    name: str | None = None

    @classmethod
    def system(cls, content: str) -> "LLMMessage":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "LLMMessage":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str) -> "LLMMessage":
        return cls(role="assistant", content=content)

    @classmethod
    def tool(cls, name: str, content: str) -> "LLMMessage":
        return cls(role="tool", content=content, name=name)


def tool_message_text(msg: LLMMessage) -> str:
    """Render a tool result for backends that only know user/assistant turns.

    Tool calls travel inside the model's text, so results go back the same way.
    """
    return f"[tool:{msg.name or 'unknown'}] {msg.content}"


class BaseLLM(ABC):
    """Base class for LLM providers."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.max_tokens = max_tokens
        self.temperature = temperature

    @abstractmethod
    async def generate(
        self,
        messages: list[LLMMessage],
        system_prompt: str | None = None,
    ) -> str:
        """Generate a complete response.

        Raises:
            GenerationError: if the backend call fails or returns no text.
        """
        pass

    @abstractmethod
    def stream(
        self,
        messages: list[LLMMessage],
        system_prompt: str | None = None,
    ) -> AsyncIterator[str]:
        """Stream a response as text increments."""
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get the provider name."""
        pass
