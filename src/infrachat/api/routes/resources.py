from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from infrachat.api.deps import get_service
from infrachat.provisioning.executor import DEFAULT_STORAGE_REGION
from infrachat.provisioning.models import ResourceType
from infrachat.provisioning.service import ProvisioningService

router = APIRouter()


@router.get("/resources/{resource_type}")
async def list_resources(
    resource_type: ResourceType,
    service: ProvisioningService = Depends(get_service),
) -> dict[str, Any]:
    result = await service.list_resources(resource_type)
    return result.model_dump(mode="json", by_alias=True, exclude_none=True)


@router.delete("/storage/buckets/{bucket_name}")
async def delete_bucket(
    bucket_name: str,
    region: str = Query(default=DEFAULT_STORAGE_REGION, min_length=1),
    service: ProvisioningService = Depends(get_service),
) -> dict[str, Any]:
    result = await service.delete_bucket(bucket_name, region)
    return result.model_dump(mode="json", by_alias=True, exclude_none=True)
