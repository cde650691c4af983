from __future__ import annotations

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from infrachat.ai.intent import IntentExtractor
from infrachat.ai.llm.openai_provider import OpenAIProvider
from infrachat.core.config import Settings
from infrachat.core.logging import get_logger
from infrachat.observability.prometheus import record_provision
from infrachat.provisioning.executor import ProvisioningExecutor
from infrachat.provisioning.models import (
    ActionKind,
    ProvisionAction,
    ProvisionResponse,
    ProvisionResult,
    ResourceType,
)
from infrachat.provisioning.terminal import build_terminal_lines
from infrachat.provisioning.validator import validate_action

tracer = trace.get_tracer(__name__)
logger = get_logger(__name__)


def compose_ai_response(action: ProvisionAction, result: ProvisionResult) -> str:
    rtype = action.resource_type.value
    if result.success:
        verb = "created" if action.action is ActionKind.CREATE else "processed"
        return f"I've {verb} your {rtype}. {result.message}"
    return f"I couldn't {action.action.value} your {rtype}. {result.message}"


class ProvisioningService:
    """Chat utterance in, ``ProvisionResponse`` out.

    Input and model errors propagate; everything after a valid action has been
    extracted is folded into the response.
    """

    def __init__(self, extractor: IntentExtractor, executor: ProvisioningExecutor) -> None:
        self.extractor = extractor
        self.executor = executor

    @classmethod
    def from_settings(cls, settings: Settings) -> ProvisioningService:
        provider = OpenAIProvider(settings.llm)
        executor = ProvisioningExecutor.from_config(settings.backend)
        return cls(IntentExtractor(provider, settings.llm.openai_model), executor)

    async def aclose(self) -> None:
        await self.executor.aclose()
        await self.extractor.aclose()

    async def submit_provision_request(
        self, utterance: str, resource_type: ResourceType
    ) -> ProvisionResponse:
        with tracer.start_as_current_span("provisioning.submit") as span:
            span.set_attribute("provision.declared_type", resource_type.value)

            intent = await self.extractor.extract(utterance, resource_type)

            if intent.action is None:
                record_provision(resource_type.value, "none", "no_action")
                response = ProvisionResponse(
                    success=True,
                    no_action=True,
                    message="No provisioning action taken",
                    ai_response=intent.reply or "",
                )
                return self._with_trace(utterance, resource_type, response)

            action = intent.action
            rejection = validate_action(action, resource_type)
            if rejection is not None:
                record_provision(resource_type.value, action.action.value, "rejected")
                span.set_status(Status(StatusCode.ERROR, "resource type mismatch"))
                return self._with_trace(utterance, resource_type, rejection)

            result = await self.executor.execute(action)
            outcome = "success" if result.success else "failure"
            record_provision(resource_type.value, action.action.value, outcome)
            logger.info(
                "provision request handled",
                action=action.action.value,
                resource_type=resource_type.value,
                outcome=outcome,
            )
            response = ProvisionResponse(
                **result.model_dump(),
                ai_response=compose_ai_response(action, result),
                action=action.action,
                resource_type=action.resource_type,
            )
            return self._with_trace(utterance, resource_type, response)

    async def list_resources(self, resource_type: ResourceType) -> ProvisionResult:
        action = ProvisionAction(action=ActionKind.LIST, resource_type=resource_type)
        result = await self.executor.execute(action)
        record_provision(
            resource_type.value, ActionKind.LIST.value, "success" if result.success else "failure"
        )
        return result

    async def delete_bucket(self, name: str, region: str) -> ProvisionResult:
        result = await self.executor.delete_bucket(name, region)
        record_provision(
            ResourceType.STORAGE.value, "delete", "success" if result.success else "failure"
        )
        return result

    @staticmethod
    def _with_trace(
        utterance: str, declared: ResourceType, response: ProvisionResponse
    ) -> ProvisionResponse:
        lines = build_terminal_lines(utterance, declared, response)
        return response.model_copy(update={"terminal_lines": lines})
