from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends

from infrachat.api.deps import get_app_settings
from infrachat.core.config import Settings

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, Any]:
    return {"api": "healthy", "timestamp": datetime.now(UTC).isoformat()}


@router.get("/health/config")
async def health_config(settings: Settings = Depends(get_app_settings)) -> dict[str, Any]:
    backend = settings.backend
    return {
        "backend": {
            "base_url": bool(backend.base_url),
            "storage_create_url": bool(backend.storage_create_url),
            "storage_list_url": bool(backend.storage_list_url),
            "storage_delete_url": bool(backend.storage_delete_url),
        },
        "llm": "ready" if settings.llm.openai_api_key else "missing",
        "config": settings.export_safe_config(),
    }
