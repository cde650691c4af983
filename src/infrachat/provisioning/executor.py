from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

import httpx
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from infrachat.core.config import BackendConfig
from infrachat.core.exceptions import (
    BackendRequestError,
    BaseApplicationException,
    UnsupportedOperationError,
    record_error,
)
from infrachat.core.logging import get_logger
from infrachat.provisioning.backends.rest import RestBackendClient
from infrachat.provisioning.backends.storage_flow import (
    StorageFlowClient,
    StorageFlowError,
    bucket_present,
)
from infrachat.provisioning.models import (
    ActionKind,
    DatabaseConfig,
    NetworkingConfig,
    ProvisionAction,
    ProvisionResult,
    ResourceRecord,
    ResourceType,
    ServerConfig,
    StorageConfig,
)

tracer = trace.get_tracer(__name__)
logger = get_logger(__name__)

DEFAULT_DATABASE_ENGINE = "postgres"
DEFAULT_DATABASE_VERSION = "14"
DEFAULT_SERVER_IMAGE = "ubuntu-20.04"
DEFAULT_SERVER_SIZE = "medium"
DEFAULT_CIDR_BLOCK = "10.0.0.0/16"
DEFAULT_STORAGE_REGION = "us-east-1"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def build_create_body(action: ProvisionAction, timestamp_ms: int) -> dict[str, Any]:
    """Request body for a create call, with defaults for every absent field."""
    name = action.resource_name or f"{action.resource_type.name_prefix}-{timestamp_ms}"
    match action.config_for_type():
        case DatabaseConfig(engine=engine, version=version):
            return {
                "name": name,
                "engine": engine or DEFAULT_DATABASE_ENGINE,
                "version": version or DEFAULT_DATABASE_VERSION,
            }
        case ServerConfig(image=image, size=size):
            return {
                "name": name,
                "image": image or DEFAULT_SERVER_IMAGE,
                "size": size or DEFAULT_SERVER_SIZE,
            }
        case NetworkingConfig(cidr_block=cidr_block):
            return {"name": name, "cidrBlock": cidr_block or DEFAULT_CIDR_BLOCK}
        case StorageConfig(region=region):
            return {"bucket-name": name, "region": region or DEFAULT_STORAGE_REGION}
    raise UnsupportedOperationError(f"Unsupported resource type: {action.resource_type}")


def _as_record(payload: Any) -> ResourceRecord:
    if isinstance(payload, Mapping):
        return ResourceRecord.model_validate(dict(payload))
    logger.warning("backend payload is not an object", payload_type=type(payload).__name__)
    return ResourceRecord()


def _as_records(payload: Any) -> list[ResourceRecord]:
    if not isinstance(payload, list):
        logger.warning("backend list payload is not an array", payload_type=type(payload).__name__)
        return []
    return [_as_record(item) for item in payload if isinstance(item, Mapping)]


class ProvisioningExecutor:
    """Runs a validated ``ProvisionAction`` against the infrastructure backend.

    ``execute`` is the error boundary: whatever happens downstream, the caller
    gets a ``ProvisionResult``. The executor keeps no per-session state, so one
    instance can serve concurrent sessions.
    """

    def __init__(
        self,
        rest: RestBackendClient,
        storage: StorageFlowClient,
        *,
        clock: Callable[[], datetime] = _utcnow,
        verify_storage: bool = True,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._rest = rest
        self._storage = storage
        self._clock = clock
        self._verify_storage = verify_storage
        self._http_client = http_client
        self._pending: set[asyncio.Task[bool | None]] = set()

    @classmethod
    def from_config(
        cls,
        backend: BackendConfig,
        client: httpx.AsyncClient | None = None,
        **kwargs: Any,
    ) -> ProvisioningExecutor:
        backend.require()
        owned = client is None
        http = client or httpx.AsyncClient(timeout=httpx.Timeout(backend.timeout_seconds))
        rest = RestBackendClient(http, backend.base_url or "")
        storage = StorageFlowClient(
            http,
            create_url=backend.storage_create_url or "",
            list_url=backend.storage_list_url or "",
            delete_url=backend.storage_delete_url,
        )
        return cls(rest, storage, http_client=http if owned else None, **kwargs)

    async def execute(self, action: ProvisionAction) -> ProvisionResult:
        with tracer.start_as_current_span("provisioning.execute") as span:
            span.set_attributes(
                {
                    "provision.action": action.action.value,
                    "provision.resource_type": action.resource_type.value,
                }
            )
            if action.action in (ActionKind.DELETE, ActionKind.DESCRIBE):
                return ProvisionResult(
                    success=False,
                    message=f"Action {action.action.value} not yet implemented",
                )
            try:
                if action.action is ActionKind.CREATE:
                    result = await self._create(action)
                else:
                    result = await self._list(action)
                span.set_status(Status(StatusCode.OK))
                return result
            except Exception as exc:
                span.record_exception(exc)
                span.set_status(Status(StatusCode.ERROR, str(exc)))
                return self._failure(action.action.value, action.resource_type.value, exc)

    async def delete_bucket(
        self, name: str, region: str = DEFAULT_STORAGE_REGION
    ) -> ProvisionResult:
        with tracer.start_as_current_span("provisioning.delete_bucket") as span:
            span.set_attribute("provision.bucket", name)
            try:
                await self._storage.delete_bucket(name, region)
            except Exception as exc:
                span.record_exception(exc)
                span.set_status(Status(StatusCode.ERROR, str(exc)))
                return self._failure("delete", ResourceType.STORAGE.value, exc)
            return ProvisionResult(
                success=True,
                resource=ResourceRecord(id=name, name=name, region=region, status="deleted"),
                message=f"Successfully deleted storage: {name}",
            )

    async def drain(self) -> None:
        """Wait for outstanding bucket verifications."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        if self._http_client is not None:
            await self._http_client.aclose()

    async def _create(self, action: ProvisionAction) -> ProvisionResult:
        now = self._clock()
        body = build_create_body(action, int(now.timestamp() * 1000))
        rtype = action.resource_type
        match rtype:
            case ResourceType.STORAGE:
                return await self._create_bucket(body["bucket-name"], body["region"], now)
            case ResourceType.SERVER | ResourceType.DATABASE | ResourceType.NETWORKING:
                payload = await self._rest.create(rtype, body)
                record = _as_record(payload)
                label = record.name or record.id or body["name"]
                return ProvisionResult(
                    success=True,
                    resource=record,
                    message=f"Successfully created {rtype.value}: {label}",
                )
        raise UnsupportedOperationError(f"Unsupported resource type: {rtype}")

    async def _create_bucket(self, name: str, region: str, now: datetime) -> ProvisionResult:
        await self._storage.create_bucket(name, region)
        result = ProvisionResult(
            success=True,
            resource=ResourceRecord(
                id=name,
                name=name,
                region=region,
                status="available",
                created_at=now.isoformat(),
            ),
            message=f"Successfully created storage: {name}",
        )
        self._schedule_verification(name)
        return result

    async def _list(self, action: ProvisionAction) -> ProvisionResult:
        rtype = action.resource_type
        if rtype is ResourceType.STORAGE:
            try:
                records = await self._storage.list_buckets()
            except StorageFlowError:
                raise
            except BackendRequestError as exc:
                logger.info("storage listing unavailable, using empty list", error=exc.message)
                records = []
        else:
            records = _as_records(await self._rest.list(rtype))
        return ProvisionResult(
            success=True,
            resources=records,
            message=f"Found {len(records)} {rtype.value}(s)",
        )

    def _schedule_verification(self, name: str) -> None:
        if not self._verify_storage:
            return
        task = asyncio.create_task(self._verify_bucket(name), name=f"verify-bucket-{name}")
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _verify_bucket(self, name: str) -> bool | None:
        try:
            records = await self._storage.list_buckets()
        except Exception as exc:
            logger.warning("bucket verification failed", bucket=name, error=str(exc))
            return None
        found = bucket_present(records, name)
        if found:
            logger.info("bucket verified in listing", bucket=name)
        else:
            logger.warning("bucket not found in listing after creation", bucket=name)
        return found

    @staticmethod
    def _failure(action: str, resource_type: str, exc: Exception) -> ProvisionResult:
        record_error(exc)
        if isinstance(exc, BaseApplicationException):
            detail = exc.message
            logger.warning(
                "provisioning failed",
                action=action,
                resource_type=resource_type,
                error_type=type(exc).__name__,
                error=detail,
            )
        else:
            detail = str(exc) or type(exc).__name__
            logger.exception("provisioning failed unexpectedly", action=action, resource_type=resource_type)
        return ProvisionResult(
            success=False,
            message=f"Failed to {action} {resource_type}",
            error=detail,
        )
