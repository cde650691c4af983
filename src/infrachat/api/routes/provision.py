from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from infrachat.api.deps import get_service
from infrachat.api.schemas import ProvisionRequest
from infrachat.core.logging import get_logger
from infrachat.provisioning.service import ProvisioningService

router = APIRouter()
logger = get_logger(__name__)


@router.post("/provision")
async def provision(
    req: ProvisionRequest,
    service: ProvisioningService = Depends(get_service),
) -> JSONResponse:
    response = await service.submit_provision_request(req.message, req.resource_type)
    mismatch = response.resource_type is not None and response.resource_type is not req.resource_type
    return JSONResponse(response.to_payload(), status_code=400 if mismatch else 200)
