"""
Preload stage: runs once per catalog request, before the route handler.

It negotiates the request's version, then resolves the package and image
entities the handler needs. Results land on ``request.state``:

- ``version``: the :class:`VersionContext`
- ``package_selection``: :class:`ResolvedSelection` for packages
- ``selection``: :class:`ResolvedSelection` for images

The preload never writes a response; absence is left for the handler to
judge, backend errors propagate.
"""

import json
from typing import Any, Dict, Iterable, Optional

from fastapi import Request

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from shared.tracing import trace_operation

from ..versioning import negotiate
from .resolver import ImageResolver, PackageResolver, RouteInfo
from .selection import ResolvedSelection


async def route_info(request: Request) -> RouteInfo:
    """Collect request parameters: path over query over JSON body."""
    params: Dict[str, Any] = {}
    if request.method.upper() in ("POST", "PUT"):
        body = await request.body()
        if body:
            try:
                payload = json.loads(body)
            except ValueError:
                payload = None
            if isinstance(payload, dict):
                params.update(payload)
    params.update(request.query_params)
    params.update(request.path_params)
    return RouteInfo(path=request.url.path, method=request.method, params=params)


class PreloadMiddleware:
    """FastAPI dependency loading the entities a catalog handler works on."""

    def __init__(
        self,
        package_resolver: PackageResolver,
        image_resolver: ImageResolver,
        known_versions: Iterable[str],
        metrics: Optional[MetricsCollector] = None,
    ):
        self.package_resolver = package_resolver
        self.image_resolver = image_resolver
        self.known_versions = tuple(known_versions)
        self.metrics = metrics
        self.logger = get_logger("gateway.preload")

    async def __call__(self, request: Request) -> None:
        auth = request.state.auth
        route = await route_info(request)

        version = negotiate(
            auth.version,
            known_versions=self.known_versions,
            flags=auth.features,
            login=auth.login,
            path=route.path,
        )
        request.state.version = version

        with trace_operation("catalog.preload", path=route.path, version=version.negotiated):
            image_selection = await self.image_resolver.resolve(auth.tenant_id, route, version)
            package_selection = await self.package_resolver.resolve(auth.tenant_id, route, version)

        request.state.selection = self._finish(image_selection)
        request.state.package_selection = self._finish(package_selection)

        self.logger.debug(
            "Preload complete",
            path=route.path,
            version=version.negotiated,
            image_outcome=image_selection.outcome.value,
            package_outcome=package_selection.outcome.value
        )

    def _finish(self, selection: ResolvedSelection) -> ResolvedSelection:
        if self.metrics:
            self.metrics.record_preload(selection.entity_type, selection.outcome.value)
        return selection.finish()
