"""
Tests for LLM providers and the provider factory.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from aigis_bot.config import AKASH_BASE_URL, LLMConfig, Settings
from aigis_bot.errors import GenerationError
from aigis_bot.llm import AnthropicLLM, LLMMessage, OpenAILLM, create_llm


def conversation():
    return [
        LLMMessage.system("context"),
        LLMMessage.user("a (a.bsky.social): 2+2?"),
        LLMMessage.assistant("calling"),
        LLMMessage.tool("calculator", '{"result": 4}'),
        LLMMessage.user("thanks"),
    ]


def test_openai_message_conversion():
    """Test that tool results go over the wire as user text."""
    llm = OpenAILLM(api_key="test", model="gpt-4o")

    converted = llm._convert_messages(conversation())

    assert [m["role"] for m in converted] == ["system", "user", "assistant", "user", "user"]
    assert converted[3]["content"] == '[tool:calculator] {"result": 4}'


def test_openai_system_prompt_goes_first():
    """Test that the system prompt leads the request."""
    llm = OpenAILLM(api_key="test", model="gpt-4o")

    kwargs = llm._build_kwargs([LLMMessage.user("hi")], "be nice")

    assert kwargs["messages"][0] == {"role": "system", "content": "be nice"}
    assert kwargs["model"] == "gpt-4o"


@pytest.mark.asyncio
async def test_openai_generate_and_empty_response():
    """Test text extraction and the no-content error."""
    llm = OpenAILLM(api_key="test", model="gpt-4o")
    message = SimpleNamespace(content="hello")
    response = SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=None, model="gpt-4o")
    llm.client.chat.completions.create = AsyncMock(return_value=response)

    assert await llm.generate([LLMMessage.user("hi")]) == "hello"

    message.content = None
    with pytest.raises(GenerationError):
        await llm.generate([LLMMessage.user("hi")])


def test_anthropic_message_conversion():
    """Test system lifting and same-role merging."""
    llm = AnthropicLLM(api_key="test")
    messages = conversation()

    converted = llm._convert_messages(messages)

    assert [m["role"] for m in converted] == ["user", "assistant", "user"]
    assert converted[2]["content"] == '[tool:calculator] {"result": 4}\n\nthanks'
    assert llm._extract_system_prompt(messages, "persona") == "persona\n\ncontext"
    assert llm._extract_system_prompt([LLMMessage.user("x")], None) is None


def test_factory_routes_providers():
    """Test provider routing."""
    anthropic_llm = create_llm(LLMConfig(provider="anthropic", model="claude-sonnet-4-20250514", api_key="k"))
    assert isinstance(anthropic_llm, AnthropicLLM)

    router = create_llm(LLMConfig(provider="openrouter", model="deepseek/deepseek-r1", api_key="k"))
    assert isinstance(router, OpenAILLM)
    assert router.provider_name == "openrouter"


def test_akash_models_route_to_akash():
    """Test that Akash-hosted model ids use the Akash endpoint."""
    settings = Settings(_env_file=None, llm_provider="openai", llm_model="DeepSeek-R1-0528", akash_api_key="ak")

    config = settings.get_llm_config()
    assert config.provider == "akash"
    assert config.base_url == AKASH_BASE_URL
    assert config.api_key == "ak"

    llm = create_llm(settings=settings)
    assert llm.provider_name == "akash"
    assert llm.model == "DeepSeek-R1-0528"
