from __future__ import annotations

from infrachat.ai.llm.base import LLMProvider

__all__ = ["LLMProvider"]
