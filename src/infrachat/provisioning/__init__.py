from __future__ import annotations

from infrachat.provisioning.executor import ProvisioningExecutor
from infrachat.provisioning.models import (
    ActionKind,
    ProvisionAction,
    ProvisionResponse,
    ProvisionResult,
    ResourceRecord,
    ResourceType,
)
from infrachat.provisioning.validator import ensure_declared_type, validate_action

__all__ = [
    "ActionKind",
    "ProvisionAction",
    "ProvisionResponse",
    "ProvisionResult",
    "ProvisioningExecutor",
    "ResourceRecord",
    "ResourceType",
    "ensure_declared_type",
    "validate_action",
]
