from __future__ import annotations

from infrachat.core.exceptions import IntentMismatchError
from infrachat.core.logging import get_logger
from infrachat.provisioning.models import ProvisionAction, ProvisionResponse, ResourceType

logger = get_logger(__name__)


def ensure_declared_type(action: ProvisionAction, declared: ResourceType) -> None:
    """Raise ``IntentMismatchError`` when the action targets another resource type."""
    if action.resource_type is declared:
        return
    display = declared.display_name
    raise IntentMismatchError(
        declared=declared.value,
        requested=action.resource_type.value,
        message=f"Invalid resource type. This page is for provisioning {display}s only.",
        user_message=(
            f"I can only create {display}s on this page. Please use the correct "
            f"provisioning page for {action.resource_type.value}s."
        ),
    )


def validate_action(action: ProvisionAction, declared: ResourceType) -> ProvisionResponse | None:
    """Return a rejection response on mismatch, ``None`` when the action may proceed."""
    try:
        ensure_declared_type(action, declared)
    except IntentMismatchError as exc:
        logger.warning(
            "rejected action for another resource type",
            declared=exc.declared,
            requested=exc.requested,
        )
        return ProvisionResponse(
            success=False,
            message=exc.message,
            error=exc.message,
            ai_response=exc.user_message,
            action=action.action,
            resource_type=action.resource_type,
        )
    return None
