"""
LLM module: model gateway providers.

Providers:
- OpenAI GPT (native SDK)
- Anthropic Claude (native SDK)
- OpenRouter and Akash (via OpenAI-compatible endpoints)
"""

from .base import BaseLLM, LLMMessage
from .anthropic import AnthropicLLM
from .openai import OpenAILLM
from .factory import create_llm

__all__ = [
    "BaseLLM",
    "LLMMessage",
    "AnthropicLLM",
    "OpenAILLM",
    "create_llm",
]
