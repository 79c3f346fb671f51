"""
Unit tests for backend service clients.
"""

import json

import httpx
import pytest

from shared.circuit_breaker import circuit_breaker_manager
from shared.errors import AuthenticationError, BackendError
from shared.logging import clear_context, set_request_id
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig
from service_catalog.app.adapters import (
    AuthClient,
    ImageCatalogClient,
    MachineClient,
    PackageCatalogClient,
)


FAST_RETRY = RetryConfig(max_attempts=2, base_delay=0.0, max_delay=0.0, jitter=False)


class Recorder:
    """MockTransport handler that records requests and replays responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture(autouse=True)
def reset_breakers():
    circuit_breaker_manager.circuit_breakers.clear()
    yield
    circuit_breaker_manager.circuit_breakers.clear()
    clear_context()


def make(client_cls, recorder, metrics=None):
    return client_cls(
        "http://backend.local",
        transport=httpx.MockTransport(recorder),
        metrics=metrics,
        retry_config=FAST_RETRY,
    )


class TestPackageCatalogClient:
    """Test cases for PackageCatalogClient."""

    @pytest.mark.asyncio
    async def test_list(self):
        recorder = Recorder(httpx.Response(200, json=[{"uuid": "p1"}]))
        client = make(PackageCatalogClient, recorder)

        result = await client.list({"name": "small", "owner_uuids": "t1", "active": True})

        assert result == [{"uuid": "p1"}]
        request = recorder.requests[0]
        assert request.method == "GET"
        assert request.url.path == "/packages"
        assert request.url.params["name"] == "small"
        assert request.url.params["owner_uuids"] == "t1"
        assert request.url.params["active"] == "true"

    @pytest.mark.asyncio
    async def test_get_missing_is_none(self):
        client = make(PackageCatalogClient, Recorder(httpx.Response(404, json={"code": "ResourceNotFound"})))
        assert await client.get("p1", owner_uuids="t1") is None

    @pytest.mark.asyncio
    async def test_get(self):
        recorder = Recorder(httpx.Response(200, json={"uuid": "p1"}))
        client = make(PackageCatalogClient, recorder)
        assert await client.get("p1", owner_uuids="t1") == {"uuid": "p1"}
        assert recorder.requests[0].url.path == "/packages/p1"

    @pytest.mark.asyncio
    async def test_error_status(self):
        metrics = MetricsCollector("catalog-test")
        client = make(PackageCatalogClient, Recorder(httpx.Response(500, json={"message": "db down"})), metrics)

        with pytest.raises(BackendError) as exc_info:
            await client.list()

        assert exc_info.value.status_code == 502
        assert exc_info.value.service == "package_catalog"
        assert exc_info.value.details["status_code"] == 500
        assert exc_info.value.details["body"] == {"message": "db down"}
        assert metrics.registry.get_sample_value(
            "backend_requests_total",
            {"service": "package_catalog", "operation": "list_packages", "result": "error"},
        ) == 1

    @pytest.mark.asyncio
    async def test_rejection_keeps_backend_status_and_code(self):
        body = {"code": "InvalidParameter", "message": "name is invalid"}
        client = make(PackageCatalogClient, Recorder(httpx.Response(409, json=body)))

        with pytest.raises(BackendError) as exc_info:
            await client.list({"name": "??"})

        assert exc_info.value.status_code == 409
        assert exc_info.value.code == "InvalidParameter"
        assert exc_info.value.message == "name is invalid"

    @pytest.mark.asyncio
    async def test_rejection_without_error_body(self):
        client = make(PackageCatalogClient, Recorder(httpx.Response(400, text="bad request")))

        with pytest.raises(BackendError) as exc_info:
            await client.list()

        assert exc_info.value.status_code == 400
        assert exc_info.value.code == "BackendError"
        assert exc_info.value.details == {"status_code": 400, "body": "bad request"}

    @pytest.mark.asyncio
    async def test_rejections_do_not_open_circuit(self):
        recorder = Recorder(httpx.Response(404, json={"code": "ResourceNotFound", "message": "gone"}))
        client = make(PackageCatalogClient, recorder)
        for _ in range(4):
            with pytest.raises(BackendError):
                await client.list()

        assert len(recorder.requests) == 4
        assert not client.circuit_breaker.is_open()

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self):
        recorder = Recorder(httpx.ConnectError("refused"), httpx.Response(200, json=[]))
        client = make(PackageCatalogClient, recorder)
        assert await client.list() == []
        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_retries_exhausted(self):
        recorder = Recorder(httpx.ConnectError("refused"))
        client = make(PackageCatalogClient, recorder)
        with pytest.raises(BackendError) as exc_info:
            await client.list()
        assert exc_info.value.details["attempts"] == 2
        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_circuit_opens(self):
        recorder = Recorder(httpx.Response(500))
        client = make(PackageCatalogClient, recorder)
        for _ in range(3):
            with pytest.raises(BackendError):
                await client.list()

        with pytest.raises(BackendError):
            await client.list()
        assert len(recorder.requests) == 3
        assert client.circuit_breaker.is_open()

    @pytest.mark.asyncio
    async def test_request_id_forwarded(self):
        recorder = Recorder(httpx.Response(200, json=[]))
        client = make(PackageCatalogClient, recorder)
        set_request_id("req-123")
        await client.list()
        assert recorder.requests[0].headers["x-request-id"] == "req-123"


class TestImageCatalogClient:
    """Test cases for ImageCatalogClient."""

    @pytest.mark.asyncio
    async def test_get_image_without_account(self):
        recorder = Recorder(httpx.Response(200, json={"uuid": "i1"}))
        client = make(ImageCatalogClient, recorder)
        await client.get_image("i1")
        assert "account" not in recorder.requests[0].url.params

    @pytest.mark.asyncio
    async def test_create_image_from_vm(self):
        recorder = Recorder(httpx.Response(200, json={"image_uuid": "i1", "job_uuid": "j1"}))
        client = make(ImageCatalogClient, recorder)

        job = await client.create_image_from_vm({"name": "img", "version": "1.0.0"}, "vm1", "t1")

        assert job == {"image_uuid": "i1", "job_uuid": "j1"}
        request = recorder.requests[0]
        assert request.method == "POST"
        assert request.url.params["action"] == "create-from-vm"
        assert request.url.params["vm_uuid"] == "vm1"
        assert request.url.params["account"] == "t1"
        assert json.loads(request.content) == {"name": "img", "version": "1.0.0"}


class TestMachineClient:
    """Test cases for MachineClient."""

    @pytest.mark.asyncio
    async def test_resize_machine(self):
        recorder = Recorder(httpx.Response(202, json={"job_uuid": "j1"}))
        client = make(MachineClient, recorder)
        package = {"uuid": "p1", "name": "big", "max_physical_memory": 2048, "quota": 20480, "vcpus": None}

        await client.resize_machine("m1", "t1", package)

        request = recorder.requests[0]
        assert request.url.path == "/vms/m1"
        assert request.url.params["action"] == "update"
        assert request.url.params["owner_uuid"] == "t1"
        assert json.loads(request.content) == {"billing_id": "p1", "max_physical_memory": 2048, "quota": 20480}

    @pytest.mark.asyncio
    async def test_list_machines(self):
        recorder = Recorder(httpx.Response(200, json=[{"uuid": "m1"}]))
        client = make(MachineClient, recorder)
        assert await client.list_machines("t1") == [{"uuid": "m1"}]
        assert recorder.requests[0].url.params["owner_uuid"] == "t1"


class TestAuthClient:
    """Test cases for AuthClient."""

    @pytest.mark.asyncio
    async def test_verify_token(self):
        verdict = {"valid": True, "user_info": {"tenant_id": "t1", "login": "alice"}}
        client = make(AuthClient, Recorder(httpx.Response(200, json=verdict)))
        assert await client.verify_token("tok") == verdict

    @pytest.mark.asyncio
    async def test_auth_service_down(self):
        client = make(AuthClient, Recorder(httpx.Response(503)))
        with pytest.raises(AuthenticationError):
            await client.verify_token("tok")
