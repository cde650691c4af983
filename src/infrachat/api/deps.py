from __future__ import annotations

from fastapi import Request

from infrachat.core.config import Settings
from infrachat.provisioning.service import ProvisioningService


def get_service(request: Request) -> ProvisioningService:
    return request.app.state.service


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
