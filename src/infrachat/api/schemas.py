from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from infrachat.provisioning.models import ResourceType


class ProvisionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(default="", max_length=4000)
    resource_type: ResourceType = Field(alias="resourceType")
