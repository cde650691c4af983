from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from jsonschema import Draft202012Validator, ValidationError
from pydantic import ValidationError as ModelValidationError

from infrachat.ai.llm.base import LLMProvider
from infrachat.ai.tools_definitions import (
    PROVISION_SCHEMA,
    PROVISION_TOOL_NAME,
    build_provision_tools,
)
from infrachat.ai.types import Message
from infrachat.core.exceptions import InputError, UpstreamModelError
from infrachat.core.logging import get_logger
from infrachat.provisioning.models import ProvisionAction, ResourceType

logger = get_logger(__name__)

DEFAULT_REPLY = (
    "I can help you provision infrastructure. "
    'Try: "Create a postgres database" or "Create a server".'
)

_validator = Draft202012Validator(PROVISION_SCHEMA)


@dataclass(frozen=True)
class ExtractedIntent:
    """Either a structured action or the model's plain-text reply."""

    action: ProvisionAction | None = None
    reply: str | None = None


def system_prompt(declared: ResourceType) -> str:
    name = declared.display_name
    return (
        "You are a cloud infrastructure provisioning assistant specialized in creating "
        f"{name}s. The user is ONLY requesting to create a {name}. Use the "
        f'{PROVISION_TOOL_NAME} function with resourceType="{declared.value}". '
        "Be concise and technical in your responses."
    )


def _decode_arguments(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return dict(raw)
    if isinstance(raw, str):
        try:
            args = json.loads(raw)
        except json.JSONDecodeError as e:
            raise UpstreamModelError(f"Tool arguments are not valid JSON: {e.msg}") from e
        if isinstance(args, dict):
            return args
    raise UpstreamModelError("Tool arguments must be a JSON object")


def _prune_arguments(args: dict[str, Any]) -> dict[str, Any]:
    """Drop null optional fields and stringify scalar config values.

    Only ``action`` and ``resourceType`` are checked strictly; everything else
    is filled with defaults by the executor when absent.
    """
    required = set(PROVISION_SCHEMA["required"])
    cleaned = {k: v for k, v in args.items() if v is not None or k in required}
    config = cleaned.get("config")
    if isinstance(config, dict):
        cleaned["config"] = {
            k: str(v) if isinstance(v, int | float | bool) else v
            for k, v in config.items()
            if v is not None
        }
    return cleaned


def _first_tool_call(message: dict[str, Any]) -> dict[str, Any] | None:
    for call in message.get("tool_calls") or []:
        fn = call.get("function") or {}
        if (fn.get("name") or "").strip() == PROVISION_TOOL_NAME:
            return fn
    return None


def parse_completion(raw: dict[str, Any]) -> ExtractedIntent:
    """Turn a raw chat completion into an ``ExtractedIntent``."""
    choices = raw.get("choices") or []
    if not choices:
        raise UpstreamModelError("Model returned no choices")
    message = choices[0].get("message") or {}

    fn = _first_tool_call(message)
    if fn is None:
        text = (message.get("content") or "").strip()
        return ExtractedIntent(reply=text or DEFAULT_REPLY)

    args = _prune_arguments(_decode_arguments(fn.get("arguments")))
    try:
        _validator.validate(args)
    except ValidationError as e:
        raise UpstreamModelError(f"Tool argument schema validation failed: {e.message}") from e
    try:
        action = ProvisionAction.model_validate(args)
    except ModelValidationError as e:
        raise UpstreamModelError(f"Tool arguments could not be parsed: {e}") from e
    return ExtractedIntent(action=action)


class IntentExtractor:
    def __init__(self, provider: LLMProvider, model: str) -> None:
        self._provider = provider
        self._model = model

    async def extract(self, utterance: str, declared: ResourceType) -> ExtractedIntent:
        if not utterance or not utterance.strip():
            raise InputError("Message is required")

        messages: list[Message] = [
            {"role": "system", "content": system_prompt(declared)},
            {"role": "user", "content": utterance},
        ]
        logger.info("requesting intent", resource_type=declared.value, model=self._model)
        try:
            raw = await self._provider.chat_raw(
                model=self._model,
                messages=messages,
                tools=build_provision_tools(),
                tool_choice="auto",
            )
        except UpstreamModelError:
            raise
        except Exception as exc:
            raise UpstreamModelError(f"AI request failed: {exc}", cause=exc) from exc
        intent = parse_completion(raw)
        if intent.action is not None:
            logger.info(
                "intent extracted",
                action=intent.action.action.value,
                resource_type=intent.action.resource_type.value,
            )
        else:
            logger.info("model replied without a tool call")
        return intent

    async def aclose(self) -> None:
        await self._provider.aclose()
