from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import httpx

from infrachat.core.exceptions import BackendDataError, BackendRequestError
from infrachat.core.logging import get_logger
from infrachat.provisioning.models import ResourceType

logger = get_logger(__name__)


@dataclass(frozen=True)
class BackendResponse:
    status_code: int
    reason: str
    payload: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def decode_response(resp: httpx.Response, *, tolerant: bool = False) -> BackendResponse:
    """Decode a backend response body.

    204 and empty bodies decode to ``{}``. Malformed JSON raises
    ``BackendDataError`` unless ``tolerant`` is set, in which case the payload is
    ``None``.
    """
    payload: Any = {}
    if resp.status_code != 204 and resp.content:
        try:
            payload = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            if not tolerant:
                raise BackendDataError(
                    f"Malformed JSON from {resp.request.url}",
                    details={"status_code": resp.status_code},
                    cause=exc,
                ) from exc
            payload = None
    return BackendResponse(
        status_code=resp.status_code,
        reason=resp.reason_phrase or str(resp.status_code),
        payload=payload,
    )


async def send(client: httpx.AsyncClient, method: str, url: str, **kwargs: Any) -> httpx.Response:
    try:
        return await client.request(method, url, **kwargs)
    except httpx.HTTPError as exc:
        raise BackendRequestError(
            f"API request failed: {type(exc).__name__}: {exc}",
            details={"url": url},
        ) from exc


class RestBackendClient:
    """Plain JSON collection endpoints: ``GET/POST {base_url}/{collection}``."""

    def __init__(self, client: httpx.AsyncClient, base_url: str) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")

    def url_for(self, resource_type: ResourceType) -> str:
        return f"{self._base_url}{resource_type.collection_path}"

    async def create(self, resource_type: ResourceType, body: dict[str, Any]) -> Any:
        url = self.url_for(resource_type)
        logger.info("backend create request", url=url, resource_type=resource_type.value)
        resp = await send(self._client, "POST", url, json=body)
        return self._payload_or_raise(resp)

    async def list(self, resource_type: ResourceType) -> Any:
        url = self.url_for(resource_type)
        logger.info("backend list request", url=url, resource_type=resource_type.value)
        resp = await send(self._client, "GET", url)
        return self._payload_or_raise(resp)

    @staticmethod
    def _payload_or_raise(resp: httpx.Response) -> Any:
        logger.info("backend response", status=resp.status_code, reason=resp.reason_phrase)
        if not 200 <= resp.status_code < 300:
            raise BackendRequestError(
                f"API request failed: {resp.reason_phrase or resp.status_code}",
                status_code=resp.status_code,
                status_text=resp.reason_phrase,
            )
        return decode_response(resp).payload
