"""
Unit tests for the preload dependency.
"""

import json
from unittest.mock import AsyncMock

import pytest
from starlette.requests import Request

from shared.errors import BackendError, InvalidVersionError
from shared.metrics import MetricsCollector
from shared.test_helpers import (
    LOGIN,
    TENANT_ID,
    CatalogDataFactory,
    mock_image_client,
    mock_package_client,
)
from service_catalog.app.domain import AuthContext, ImageResolver, PackageResolver, PreloadMiddleware
from service_catalog.app.domain.preload import route_info
from service_catalog.app.domain.selection import PreloadState
from service_catalog.app.versioning import FeatureFlags


KNOWN = ["7.2.0", "7.1.0", "7.0.0", "6.5.0"]


def make_request(method, path, path_params=None, query=b"", body=None, version=None):
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "root_path": "",
        "scheme": "http",
        "server": ("testserver", 80),
        "query_string": query,
        "headers": [(b"content-type", b"application/json")],
        "path_params": path_params or {},
    }
    payload = json.dumps(body).encode() if body is not None else b""

    async def receive():
        return {"type": "http.request", "body": payload, "more_body": False}

    request = Request(scope, receive)
    request.state.auth = AuthContext(
        tenant_id=TENANT_ID,
        login=LOGIN,
        version=version,
        features=FeatureFlags(),
    )
    return request


class TestRouteInfo:
    """Test cases for route_info."""

    @pytest.mark.asyncio
    async def test_path_params_win(self):
        request = make_request(
            "POST",
            "/alice/machines/m1",
            path_params={"account": "alice", "machine": "m1"},
            query=b"action=reboot&machine=other",
            body={"action": "resize", "package": "small"},
        )
        route = await route_info(request)
        assert route.params["machine"] == "m1"
        assert route.params["action"] == "reboot"
        assert route.params["package"] == "small"

    @pytest.mark.asyncio
    async def test_get_ignores_body(self):
        request = make_request("GET", "/alice/packages", body={"name": "small"})
        route = await route_info(request)
        assert "name" not in route.params


class TestPreloadMiddleware:
    """Test cases for PreloadMiddleware."""

    @pytest.fixture
    def metrics(self):
        return MetricsCollector("catalog-test")

    def _preload(self, package_client, image_client, metrics=None):
        return PreloadMiddleware(
            PackageResolver(package_client),
            ImageResolver(image_client),
            known_versions=KNOWN,
            metrics=metrics,
        )

    @pytest.mark.asyncio
    async def test_populates_request_state(self, metrics):
        p1 = CatalogDataFactory.package("small", "1.0.0")
        p2 = CatalogDataFactory.package("small", "1.1.0")
        preload = self._preload(mock_package_client(packages=[p1, p2]), mock_image_client(), metrics)
        request = make_request(
            "GET", "/alice/packages/small", path_params={"account": "alice", "package": "small"}, version="~7.1"
        )

        await preload(request)

        assert request.state.version.negotiated == "7.1.0"
        assert request.state.package_selection.selected_entity is p2
        assert request.state.package_selection.state is PreloadState.DONE
        assert request.state.package_selection.outcome is PreloadState.SINGLE_RESOLVED
        assert request.state.selection.state is PreloadState.DONE
        assert request.state.selection.outcome is PreloadState.SKIPPED

        assert metrics.registry.get_sample_value(
            "preload_total", {"entity_type": "package", "outcome": "single_resolved"}
        ) == 1
        assert metrics.registry.get_sample_value(
            "preload_total", {"entity_type": "image", "outcome": "skipped"}
        ) == 1

    @pytest.mark.asyncio
    async def test_resize_reads_package_from_body(self):
        pkg_client = mock_package_client(packages=[CatalogDataFactory.package("small")])
        preload = self._preload(pkg_client, mock_image_client())
        request = make_request(
            "POST",
            "/alice/machines/m1",
            path_params={"account": "alice", "machine": "m1"},
            body={"action": "resize", "package": "small"},
        )

        await preload(request)

        pkg_client.list.assert_awaited_once_with({"name": "small", "owner_uuids": TENANT_ID, "active": True})
        assert request.state.package_selection.selected_entity["name"] == "small"

    @pytest.mark.asyncio
    async def test_invalid_version_raises(self):
        preload = self._preload(mock_package_client(), mock_image_client())
        request = make_request("GET", "/alice/packages", version="~5.0")
        with pytest.raises(InvalidVersionError):
            await preload(request)

    @pytest.mark.asyncio
    async def test_backend_error_propagates(self):
        image_client = AsyncMock()
        image_client.list_images.side_effect = BackendError("image_catalog", "boom")
        preload = self._preload(mock_package_client(), image_client)
        request = make_request("GET", "/alice/images", version="~7.0")
        with pytest.raises(BackendError):
            await preload(request)
