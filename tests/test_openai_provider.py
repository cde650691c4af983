import asyncio

import pytest
from pydantic import SecretStr

from infrachat.ai.llm.openai_provider import OpenAIProvider
from infrachat.core.config import LLMConfig
from infrachat.core.exceptions import ConfigurationError, UpstreamModelError


class _Completion:
    usage = None

    def model_dump(self):
        return {"choices": [{"message": {"content": "ok"}}]}


class _Completions:
    def __init__(self, error=None):
        self.error = error
        self.kwargs = []

    async def create(self, **kwargs):
        self.kwargs.append(kwargs)
        if self.error is not None:
            raise self.error
        return _Completion()


class _Client:
    def __init__(self, completions):
        self.chat = type("Chat", (), {"completions": completions})()

    async def close(self):
        return None


def test_missing_api_key_is_configuration_error():
    with pytest.raises(ConfigurationError):
        OpenAIProvider(LLMConfig(openai_api_key=None))


def test_client_has_retries_disabled():
    provider = OpenAIProvider(LLMConfig(openai_api_key=SecretStr("sk-test")))
    assert provider._client.max_retries == 0


def test_chat_raw_passes_tools_and_returns_dict():
    completions = _Completions()
    provider = OpenAIProvider(LLMConfig(openai_model="default-model"), client=_Client(completions))
    tools = [{"type": "function", "function": {"name": "t", "parameters": {"type": "object"}}}]

    raw = asyncio.run(
        provider.chat_raw("", [{"role": "user", "content": "hi"}], tools=tools, tool_choice="auto")
    )

    assert raw["choices"][0]["message"]["content"] == "ok"
    sent = completions.kwargs[0]
    assert sent["model"] == "default-model"
    assert sent["tools"] == tools
    assert sent["tool_choice"] == "auto"
    assert "temperature" not in sent


def test_chat_raw_failure_is_single_attempt():
    completions = _Completions(error=RuntimeError("boom"))
    provider = OpenAIProvider(LLMConfig(), client=_Client(completions))

    with pytest.raises(UpstreamModelError):
        asyncio.run(provider.chat_raw("m", [{"role": "user", "content": "hi"}]))
    assert len(completions.kwargs) == 1
