import asyncio
import json

import pytest

from infrachat.ai.intent import DEFAULT_REPLY, IntentExtractor
from infrachat.ai.llm.base import LLMProvider
from infrachat.core.exceptions import InputError, UpstreamModelError
from infrachat.provisioning.models import ActionKind, DatabaseConfig, ResourceType, StorageConfig


def tool_call(arguments):
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments)
    return {
        "choices": [
            {
                "message": {
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [
                        {
                            "id": "call_1",
                            "type": "function",
                            "function": {"name": "provision_infrastructure", "arguments": arguments},
                        }
                    ],
                }
            }
        ]
    }


def text_reply(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


class FakeLLM(LLMProvider):
    def __init__(self, completion=None, error=None):
        self.completion = completion
        self.error = error
        self.calls = []

    async def chat_raw(self, model, messages, tools=None, tool_choice="auto", temperature=None):
        self.calls.append(
            {"model": model, "messages": messages, "tools": tools, "tool_choice": tool_choice}
        )
        if self.error is not None:
            raise self.error
        return self.completion


def _extract(llm, utterance="Create a bucket for logs", declared=ResourceType.STORAGE):
    return asyncio.run(IntentExtractor(llm, "test-model").extract(utterance, declared))


def test_tool_call_becomes_action():
    llm = FakeLLM(
        tool_call(
            {
                "action": "create",
                "resourceType": "storage",
                "resourceName": "logs",
                "config": {"region": "eu-west-1"},
            }
        )
    )
    intent = _extract(llm)

    assert intent.reply is None
    assert intent.action.action is ActionKind.CREATE
    assert intent.action.resource_type is ResourceType.STORAGE
    assert intent.action.resource_name == "logs"
    assert intent.action.config == StorageConfig(region="eu-west-1")


def test_request_carries_declared_type_and_single_tool():
    llm = FakeLLM(text_reply("hi"))
    _extract(llm, "Create a database", ResourceType.DATABASE)

    call = llm.calls[0]
    system, user = call["messages"]
    assert call["model"] == "test-model"
    assert call["tool_choice"] == "auto"
    assert [t["function"]["name"] for t in call["tools"]] == ["provision_infrastructure"]
    assert system["role"] == "system"
    assert "specialized in creating databases" in system["content"]
    assert 'resourceType="database"' in system["content"]
    assert user == {"role": "user", "content": "Create a database"}


def test_text_reply_is_fallback():
    intent = _extract(FakeLLM(text_reply("Which region would you like?")))
    assert intent.action is None
    assert intent.reply == "Which region would you like?"


def test_empty_reply_gets_default_hint():
    intent = _extract(FakeLLM(text_reply("")))
    assert intent.reply == DEFAULT_REPLY


@pytest.mark.parametrize("utterance", ["", "   \n"])
def test_blank_utterance_rejected_before_model_call(utterance):
    llm = FakeLLM(text_reply("unused"))
    with pytest.raises(InputError) as exc:
        _extract(llm, utterance)
    assert exc.value.user_message == "Message is required"
    assert llm.calls == []


def test_unparseable_arguments_are_model_error():
    with pytest.raises(UpstreamModelError):
        _extract(FakeLLM(tool_call("{invalid")))


def test_schema_violation_is_model_error():
    llm = FakeLLM(tool_call({"action": "create", "resourceType": "queue"}))
    with pytest.raises(UpstreamModelError) as exc:
        _extract(llm)
    assert "schema validation failed" in exc.value.message


def test_missing_required_argument_is_model_error():
    with pytest.raises(UpstreamModelError):
        _extract(FakeLLM(tool_call({"resourceType": "storage"})))


def test_provider_failure_is_model_error():
    llm = FakeLLM(error=RuntimeError("connection reset"))
    with pytest.raises(UpstreamModelError) as exc:
        _extract(llm)
    assert exc.value.user_message == "Failed to process request"
    assert len(llm.calls) == 1


def test_no_choices_is_model_error():
    with pytest.raises(UpstreamModelError):
        _extract(FakeLLM({"choices": []}))


@pytest.mark.parametrize(
    "extra",
    [{"resourceName": None}, {"config": None}, {"resourceName": None, "config": {"region": None}}],
)
def test_null_optional_arguments_are_absent(extra):
    intent = _extract(FakeLLM(tool_call({"action": "create", "resourceType": "storage", **extra})))
    assert intent.action.resource_name is None
    assert intent.action.config_for_type() == StorageConfig()


def test_numeric_config_values_become_strings():
    llm = FakeLLM(
        tool_call(
            {"action": "create", "resourceType": "database", "config": {"engine": "postgres", "version": 14}}
        )
    )
    intent = _extract(llm, "Create a postgres database", ResourceType.DATABASE)
    assert intent.action.config == DatabaseConfig(engine="postgres", version="14")


def test_null_required_argument_is_model_error():
    with pytest.raises(UpstreamModelError):
        _extract(FakeLLM(tool_call({"action": None, "resourceType": "storage"})))
