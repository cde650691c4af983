from __future__ import annotations

from infrachat.provisioning.models import ProvisionResponse, ResourceRecord, ResourceType

_TITLES = {
    ResourceType.SERVER: "Server",
    ResourceType.DATABASE: "Database",
    ResourceType.STORAGE: "Storage Bucket",
    ResourceType.NETWORKING: "Network Resource",
}

# (label, record key) rendered only when present
_OPTIONAL_DETAILS = (
    ("Engine", "engine"),
    ("Version", "version"),
    ("Status", "status"),
    ("IP", "ipAddress"),
    ("CIDR", "cidrBlock"),
    ("Region", "region"),
)


def resource_title(resource_type: ResourceType | None) -> str:
    if resource_type is None:
        return "Resource"
    return _TITLES[resource_type]


def _detail_lines(record: ResourceRecord) -> list[str]:
    data = record.model_dump(by_alias=True)
    lines = [
        "Resource Details:",
        f"  ✓ ID: {data.get('id') or 'N/A'}",
        f"  ✓ Name: {data.get('name') or 'N/A'}",
    ]
    for label, key in _OPTIONAL_DETAILS:
        value = data.get(key)
        if value:
            lines.append(f"  ✓ {label}: {value}")
    return lines


def build_terminal_lines(
    utterance: str,
    declared: ResourceType,
    response: ProvisionResponse,
) -> list[str]:
    """Simulated terminal trace for one provisioning request."""
    lines = ["Sending request to AI...", f"User: {utterance}", "", "AI analyzing command..."]
    lines += ["", f"AI Response: {response.ai_response}", ""]

    if response.no_action:
        lines += [
            "No provisioning action taken.",
            'Try: "Create a postgres database" or "Create a server"',
        ]
        return lines

    if response.action is not None:
        lines.append(f"Action: {response.action.value}")
    if response.resource_type is not None:
        lines.append(f"Resource Type: {response.resource_type.value}")
    lines.append("")

    if response.success:
        if response.resource is not None:
            lines += _detail_lines(response.resource)
            lines.append("")
        elif response.resources is not None:
            lines += [f"  ✓ {r.name or r.id or 'N/A'}" for r in response.resources]
            lines.append("")
        lines.append(f"SUCCESS: {resource_title(declared)} provisioned!")
    else:
        lines.append(f"ERROR: Failed to provision {declared.value}")
        lines.append(f"Details: {response.error or response.message}")
    return lines
