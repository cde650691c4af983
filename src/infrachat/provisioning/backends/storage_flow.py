from __future__ import annotations

import httpx

from infrachat.core.exceptions import BackendRequestError
from infrachat.core.logging import get_logger
from infrachat.provisioning.backends.rest import BackendResponse, decode_response, send
from infrachat.provisioning.models import ResourceRecord
from infrachat.provisioning.normalizer import FlowError, extract_flow_error, parse_bucket_list

logger = get_logger(__name__)


class StorageFlowError(BackendRequestError):
    """The flow envelope carried an explicit S3 ``Error`` node."""

    def __init__(self, flow_error: FlowError, status_code: int | None = None) -> None:
        super().__init__(
            flow_error.describe(),
            status_code=status_code,
            details={"code": flow_error.code, "aws_message": flow_error.message},
        )
        self.flow_error = flow_error


class StorageFlowClient:
    """Bucket operations routed through the storage flow integration.

    An error node in the envelope always means failure, whatever the HTTP status
    says. Without one, a 2xx status is success.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        create_url: str,
        list_url: str,
        delete_url: str | None = None,
    ) -> None:
        self._client = client
        self._create_url = create_url
        self._list_url = list_url
        self._delete_url = delete_url

    async def create_bucket(self, name: str, region: str) -> BackendResponse:
        body = {"bucket-name": name, "region": region}
        logger.info("storage flow create", url=self._create_url, bucket=name, region=region)
        resp = await send(self._client, "POST", self._create_url, json=body)
        return self._checked(resp)

    async def list_buckets(self) -> list[ResourceRecord]:
        logger.info("storage flow list", url=self._list_url)
        resp = await send(self._client, "GET", self._list_url)
        decoded = self._checked(resp)
        return parse_bucket_list(decoded.payload)

    async def delete_bucket(self, name: str, region: str) -> BackendResponse:
        if not self._delete_url:
            raise BackendRequestError("Storage delete endpoint is not configured")
        body = {"bucketName": name, "region": region}
        logger.info("storage flow delete", url=self._delete_url, bucket=name, region=region)
        resp = await send(self._client, "POST", self._delete_url, json=body)
        return self._checked(resp)

    @staticmethod
    def _checked(resp: httpx.Response) -> BackendResponse:
        ok = 200 <= resp.status_code < 300
        decoded = decode_response(resp, tolerant=not ok)
        logger.info("storage flow response", status=resp.status_code, reason=decoded.reason)
        flow_error = extract_flow_error(decoded.payload)
        if flow_error is not None:
            logger.warning(
                "storage flow reported error",
                code=flow_error.code,
                aws_message=flow_error.message,
                status=resp.status_code,
            )
            raise StorageFlowError(flow_error, status_code=resp.status_code)
        if not ok:
            raise BackendRequestError(
                f"API request failed: {decoded.reason}",
                status_code=resp.status_code,
                status_text=resp.reason_phrase,
            )
        return decoded


def bucket_present(records: list[ResourceRecord], name: str) -> bool:
    return any(r.name == name for r in records)


__all__ = ["StorageFlowClient", "StorageFlowError", "bucket_present"]
