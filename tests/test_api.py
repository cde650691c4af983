import asyncio
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from infrachat.ai.intent import IntentExtractor
from infrachat.ai.llm.base import LLMProvider
from infrachat.api.main import create_app
from infrachat.core.config import BackendConfig, Settings
from infrachat.core.exceptions import ConfigurationError, UpstreamModelError
from infrachat.provisioning.backends.rest import RestBackendClient
from infrachat.provisioning.backends.storage_flow import StorageFlowClient
from infrachat.provisioning.executor import ProvisioningExecutor
from infrachat.provisioning.models import ProvisionResponse
from infrachat.provisioning.service import ProvisioningService

BASE = "http://backend.test"


def _settings(**backend):
    values = {
        "base_url": BASE,
        "storage_create_url": f"{BASE}/flow/create",
        "storage_list_url": f"{BASE}/flow/list",
        "storage_delete_url": f"{BASE}/flow/delete",
        **backend,
    }
    return Settings(_env_file=None, backend=BackendConfig(**values))


class FakeLLM(LLMProvider):
    def __init__(self):
        self.completion = None
        self.error = None

    async def chat_raw(self, model, messages, tools=None, tool_choice="auto", temperature=None):
        if self.error is not None:
            raise self.error
        return self.completion


def _tool(args):
    fn = {"name": "provision_infrastructure", "arguments": json.dumps(args)}
    return {"choices": [{"message": {"content": None, "tool_calls": [{"function": fn}]}}]}


def _backend(request):
    path = request.url.path
    if path == "/servers" and request.method == "POST":
        return httpx.Response(201, json={"id": "srv-1", "name": "web-1", "status": "running"})
    if path == "/servers":
        return httpx.Response(200, json=[{"id": "srv-1", "name": "web-1"}])
    if path == "/flow/delete":
        return httpx.Response(200, json={})
    return httpx.Response(404)


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def client(llm):
    http = httpx.AsyncClient(transport=httpx.MockTransport(_backend))
    cfg = _settings().backend
    executor = ProvisioningExecutor(
        RestBackendClient(http, cfg.base_url),
        StorageFlowClient(
            http,
            create_url=cfg.storage_create_url,
            list_url=cfg.storage_list_url,
            delete_url=cfg.storage_delete_url,
        ),
        verify_storage=False,
    )
    service = ProvisioningService(IntentExtractor(llm, "m"), executor)
    with TestClient(create_app(_settings(), service)) as c:
        yield c


def test_provision_create(client, llm):
    llm.completion = _tool({"action": "create", "resourceType": "server", "resourceName": "web-1"})
    resp = client.post("/api/provision", json={"message": "Create a server", "resourceType": "server"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["resource"] == {"id": "srv-1", "name": "web-1", "status": "running"}
    assert body["aiResponse"] == "I've created your server. Successfully created server: web-1"
    assert body["terminalLines"][-1] == "SUCCESS: Server provisioned!"
    assert resp.headers["x-correlation-id"]


def test_provision_text_reply(client, llm):
    llm.completion = {"choices": [{"message": {"content": "What size?"}}]}
    resp = client.post("/api/provision", json={"message": "server", "resourceType": "server"})

    assert resp.status_code == 200
    assert resp.json()["noAction"] is True
    assert resp.json()["aiResponse"] == "What size?"


def test_provision_mismatch_is_400(client, llm):
    llm.completion = _tool({"action": "create", "resourceType": "database"})
    resp = client.post("/api/provision", json={"message": "Create a db", "resourceType": "server"})

    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "Invalid resource type. This page is for provisioning servers only."


def test_provision_blank_message_is_400(client, llm):
    llm.completion = _tool({"action": "create", "resourceType": "server"})
    resp = client.post("/api/provision", json={"message": "  ", "resourceType": "server"})

    assert resp.status_code == 400
    assert resp.json()["error_code"] == "input_error"
    assert resp.json()["error_message"] == "Message is required"


def test_provision_unknown_resource_type_is_400(client):
    resp = client.post("/api/provision", json={"message": "hi", "resourceType": "queue"})
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "validation_error"


def test_provision_model_failure_is_502(client, llm):
    llm.error = UpstreamModelError("AI request failed: APIConnectionError")
    resp = client.post("/api/provision", json={"message": "Create a server", "resourceType": "server"})

    assert resp.status_code == 502
    assert resp.json()["error_code"] == "upstream_model_error"
    assert resp.json()["error_message"] == "Failed to process request"


def test_list_resources(client):
    resp = client.get("/api/resources/server")
    assert resp.status_code == 200
    assert resp.json()["resources"] == [{"id": "srv-1", "name": "web-1"}]
    assert resp.json()["message"] == "Found 1 server(s)"


def test_delete_bucket(client):
    resp = client.delete("/api/storage/buckets/old-logs", params={"region": "eu-west-1"})
    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert resp.json()["resource"]["region"] == "eu-west-1"


def test_health_and_metrics(client):
    assert client.get("/api/health").json()["api"] == "healthy"
    cfg = client.get("/api/health/config").json()
    assert cfg["backend"]["base_url"] is True
    assert client.get("/metrics").status_code == 200


def test_missing_base_url_fails_at_startup():
    app = create_app(_settings(base_url=""), service=None)
    with pytest.raises(ConfigurationError) as exc:
        with TestClient(app):
            pass
    assert exc.value.field == "backend.base_url"


class BlockingService:
    def __init__(self):
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def submit_provision_request(self, utterance, resource_type):
        self.entered.set()
        await self.release.wait()
        return ProvisionResponse(success=True, message="done", ai_response="ok")


def test_concurrent_submission_for_same_session_is_409():
    async def run():
        service = BlockingService()
        app = create_app(_settings(), service)
        transport = httpx.ASGITransport(app=app)
        body = {"message": "Create a server", "resourceType": "server"}
        headers = {"x-session-id": "session-1"}
        async with httpx.AsyncClient(transport=transport, base_url="http://api.test") as c:
            first = asyncio.create_task(c.post("/api/provision", json=body, headers=headers))
            await service.entered.wait()
            second = await c.post("/api/provision", json=body, headers=headers)
            other = asyncio.create_task(
                c.post("/api/provision", json=body, headers={"x-session-id": "session-2"})
            )
            service.release.set()
            return await first, second, await other

    first, second, other = asyncio.run(run())
    assert second.status_code == 409
    assert second.json() == {"status": "in_progress"}
    assert first.status_code == 200
    assert other.status_code == 200
