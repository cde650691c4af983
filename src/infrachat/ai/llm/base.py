from __future__ import annotations

import abc
from typing import Any

from infrachat.ai.types import Message


class LLMProvider(abc.ABC):
    @abc.abstractmethod
    async def chat_raw(
        self,
        model: str,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        tool_choice: str | dict[str, Any] | None = "auto",
        temperature: float | None = None,
    ) -> dict[str, Any]:
        """Return the raw completion as a plain dict (``choices[].message...``)."""

    async def aclose(self) -> None:
        return None
