from __future__ import annotations

import copy
from typing import Any

from infrachat.provisioning.models import ActionKind, ResourceType

PROVISION_TOOL_NAME = "provision_infrastructure"

PROVISION_TOOL_DESCRIPTION = "Provision cloud infrastructure resources"

PROVISION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "action": {
            "type": "string",
            "enum": [a.value for a in ActionKind],
            "description": "The action to perform",
        },
        "resourceType": {
            "type": "string",
            "enum": [r.value for r in ResourceType],
            "description": "Type of resource to provision",
        },
        "resourceName": {
            "type": "string",
            "description": "Name for the resource",
        },
        "config": {
            "type": "object",
            "description": "Resource-specific configuration",
            "properties": {
                "engine": {"type": "string", "description": "Database engine (e.g. postgres, mysql)"},
                "version": {"type": "string", "description": "Version of the software"},
                "image": {"type": "string", "description": "Server image (e.g. ubuntu-20.04)"},
                "size": {"type": "string", "description": "Server size (small, medium, large)"},
                "cidrBlock": {"type": "string", "description": "CIDR block for networking"},
                "region": {"type": "string", "description": "Region for storage buckets"},
            },
        },
    },
    "required": ["action", "resourceType"],
}


def _to_openai_tool_schema(
    name: str, description: str, json_schema: dict[str, Any]
) -> dict[str, Any]:
    params: dict[str, Any] = copy.deepcopy(json_schema) if isinstance(json_schema, dict) else {}
    if params.get("type") != "object":
        params = {
            "type": "object",
            "properties": {"_input": json_schema},
            "additionalProperties": False,
        }
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": (description or "")[:512],
            "parameters": params,
        },
    }


def build_provision_tools() -> list[dict[str, Any]]:
    return [
        _to_openai_tool_schema(PROVISION_TOOL_NAME, PROVISION_TOOL_DESCRIPTION, PROVISION_SCHEMA)
    ]
