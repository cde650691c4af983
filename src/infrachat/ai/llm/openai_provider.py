from __future__ import annotations

from typing import Any, cast

import httpx
from openai import AsyncOpenAI
from openai.types.chat import ChatCompletionMessageParam
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from infrachat.ai.llm.base import LLMProvider
from infrachat.ai.types import Message
from infrachat.core.config import LLMConfig
from infrachat.core.exceptions import ConfigurationError, UpstreamModelError
from infrachat.core.logging import get_logger

logger = get_logger(__name__)


class OpenAIProvider(LLMProvider):
    """Chat completions against any OpenAI-compatible endpoint.

    One attempt per call: the SDK's own retry loop is switched off and failures
    surface as ``UpstreamModelError``.
    """

    def __init__(self, config: LLMConfig, client: AsyncOpenAI | None = None) -> None:
        if client is None:
            api_key = config.openai_api_key.get_secret_value() if config.openai_api_key else None
            if not api_key:
                raise ConfigurationError("llm.openai_api_key", "OPENAI_API_KEY not configured")
            client = AsyncOpenAI(
                api_key=api_key,
                base_url=config.openai_api_base,
                max_retries=0,
                timeout=httpx.Timeout(config.timeout_seconds, connect=5.0),
            )
        self._client = client
        self._default_model = config.openai_model
        self._default_temperature = config.temperature
        self._tracer = trace.get_tracer("llm.openai")

    async def chat_raw(
        self,
        model: str,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        tool_choice: str | dict[str, Any] | None = "auto",
        temperature: float | None = None,
    ) -> dict[str, Any]:
        selected = model or self._default_model
        with self._tracer.start_as_current_span("openai.chat.completions.raw") as span:
            span.set_attribute("llm.provider", "openai")
            span.set_attribute("llm.endpoint", "chat.completions")
            span.set_attribute("llm.model.requested", selected)
            try:
                kwargs: dict[str, Any] = {
                    "model": selected,
                    "messages": cast(list[ChatCompletionMessageParam], messages),
                }
                if tools:
                    kwargs["tools"] = tools
                    if tool_choice is not None:
                        kwargs["tool_choice"] = tool_choice
                temp = temperature if temperature is not None else self._default_temperature
                if temp is not None:
                    kwargs["temperature"] = float(temp)
                resp = await self._client.chat.completions.create(**kwargs)
                usage = getattr(resp, "usage", None)
                if usage is not None:
                    span.set_attribute("llm.tokens.prompt", getattr(usage, "prompt_tokens", 0))
                    span.set_attribute(
                        "llm.tokens.completion", getattr(usage, "completion_tokens", 0)
                    )
                    span.set_attribute("llm.tokens.total", getattr(usage, "total_tokens", 0))
                return resp.model_dump()
            except Exception as err:
                span.record_exception(err)
                span.set_status(Status(StatusCode.ERROR, str(err)))
                logger.warning("model request failed", model=selected, error=str(err))
                raise UpstreamModelError(
                    f"AI request failed: {type(err).__name__}",
                    cause=err,
                ) from err

    async def aclose(self) -> None:
        await self._client.close()
