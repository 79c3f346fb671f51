"""
Catalog Gateway service.

Fronts the package catalog, image catalog and machine orchestration services
for authenticated tenants. Every catalog route runs the same dependency
chain before its handler: authenticate -> read-only guard -> (bleeding-edge
guard) -> preload.
"""

from typing import Any, Dict, List, Optional

from fastapi import Depends, Request, Response
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.circuit_breaker import circuit_breaker_manager
from shared.config import ServiceConfig
from shared.errors import (
    InvalidArgumentError,
    InvalidVersionError,
    MissingParameterError,
    NotFoundError,
    UnsupportedOperationError,
)

from .adapters import AuthClient, ImageCatalogClient, MachineClient, PackageCatalogClient
from .caching import ResultCache
from .domain import (
    AuthMiddleware,
    BleedingEdgeGuard,
    ImageResolver,
    PackageListing,
    PackageResolver,
    PreloadMiddleware,
    ReadOnlyGuard,
    list_images,
)
from .domain.preload import route_info
from .domain.translators import translate_image
from .versioning import FeatureFlags, VersionContext


# Manifest attributes a caller may set when creating an image
IMAGE_MANIFEST_ATTRIBUTES = ("description", "homepage", "eula", "acl", "tags")

MACHINE_TYPES = {"kvm": "virtualmachine"}


class CatalogGatewayService(BaseService):
    """Catalog Gateway service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        package_client: Optional[PackageCatalogClient] = None,
        image_client: Optional[ImageCatalogClient] = None,
        machine_client: Optional[MachineClient] = None,
        auth_client: Optional[AuthClient] = None,
        cache: Optional[ResultCache] = None,
    ):
        super().__init__("catalog", 8080, config)
        timeout = self.config.backend_timeout_seconds

        self.package_client = package_client or PackageCatalogClient(
            self.config.package_service_url, timeout=timeout, metrics=self.metrics
        )
        self.image_client = image_client or ImageCatalogClient(
            self.config.image_service_url, timeout=timeout, metrics=self.metrics
        )
        self.machine_client = machine_client or MachineClient(
            self.config.machine_service_url, timeout=timeout, metrics=self.metrics
        )
        self.auth_client = auth_client or AuthClient(
            self.config.auth_service_url, timeout=timeout, metrics=self.metrics
        )
        self.cache = cache or ResultCache(self.config.redis_url, metrics=self.metrics)

        self.flags = FeatureFlags.from_config(self.config)
        self.auth_middleware = AuthMiddleware(self.auth_client, self.flags)
        self.read_only_guard = ReadOnlyGuard(self.config.read_only)
        self.img_mgmt_guard = BleedingEdgeGuard(self.flags, "img_mgmt")
        self.preload = PreloadMiddleware(
            PackageResolver(self.package_client),
            ImageResolver(self.image_client),
            known_versions=self.config.all_versions,
            metrics=self.metrics,
        )
        self.package_listing = PackageListing(
            self.package_client,
            self.cache,
            ttl_seconds=self.config.max_packages_lifetime,
            metrics=self.metrics,
        )

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.cache.close()

        self._setup_catalog_routes()
        self._setup_package_routes()
        self._setup_image_routes()
        self._setup_machine_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.catalog_service = self

    def _dependencies(self, *guards) -> List[Any]:
        """Dependency chain for a catalog route; order matters."""
        chain = [Depends(self.auth_middleware), Depends(self.read_only_guard)]
        chain.extend(Depends(guard) for guard in guards)
        chain.append(Depends(self.preload))
        return chain

    def _respond(self, request: Request, content: Any, status_code: int = 200,
                 headers: Optional[Dict[str, str]] = None) -> Response:
        """JSON response, except HEAD on the 6.5 track which gets no body."""
        version: VersionContext = request.state.version
        if request.method.upper() == "HEAD" and version.legacy:
            return Response(status_code=status_code, headers=headers)
        return JSONResponse(status_code=status_code, content=content, headers=headers)

    def _setup_catalog_routes(self):
        """Set up service-level routes."""

        @self.app.get("/--ping")
        async def ping():
            """Liveness probe; no authentication, no preload."""
            return {"ping": "pong"}

    def _setup_package_routes(self):
        """Set up package routes."""

        @self.app.api_route(
            "/{account}/packages",
            methods=["GET", "HEAD"],
            dependencies=self._dependencies(),
        )
        async def list_packages(request: Request):
            packages = await self.package_listing.list(
                request.state.auth.tenant_id,
                request.query_params,
                request.state.version,
            )
            return self._respond(request, packages)

        @self.app.api_route(
            "/{account}/packages/{package}",
            methods=["GET", "HEAD"],
            dependencies=self._dependencies(),
        )
        async def get_package(request: Request, package: str):
            selection = request.state.package_selection
            if not selection.has_selection:
                raise NotFoundError(f"{package} not found")
            return self._respond(request, selection.translate(selection.selected_entity))

    def _setup_image_routes(self):
        """Set up image and (deprecated) dataset routes."""

        def require_image_endpoints(request: Request) -> None:
            version: VersionContext = request.state.version
            if not version.image_endpoints:
                raise InvalidVersionError(
                    f"{request.url.path} requires API version 7.0.0 or later",
                    details={"negotiated": version.negotiated},
                )

        async def list_all(request: Request):
            return self._respond(request, list_images(request.state.selection))

        async def get_one(request: Request, dataset: str):
            selection = request.state.selection
            if not selection.has_selection:
                raise NotFoundError(f"{dataset} not found")
            return self._respond(request, selection.translate(selection.selected_entity))

        @self.app.api_route(
            "/{account}/datasets",
            methods=["GET", "HEAD"],
            dependencies=self._dependencies(),
        )
        async def list_datasets(request: Request):
            return await list_all(request)

        @self.app.api_route(
            "/{account}/datasets/{dataset}",
            methods=["GET", "HEAD"],
            dependencies=self._dependencies(),
        )
        async def get_dataset(request: Request, dataset: str):
            return await get_one(request, dataset)

        @self.app.api_route(
            "/{account}/images",
            methods=["GET", "HEAD"],
            dependencies=self._dependencies(),
        )
        async def list_images_route(request: Request):
            require_image_endpoints(request)
            return await list_all(request)

        @self.app.api_route(
            "/{account}/images/{dataset}",
            methods=["GET", "HEAD"],
            dependencies=self._dependencies(),
        )
        async def get_image(request: Request, dataset: str):
            require_image_endpoints(request)
            return await get_one(request, dataset)

        @self.app.post("/{account}/images", dependencies=self._dependencies(self.img_mgmt_guard))
        async def create_image(request: Request):
            """Create an image from one of the tenant's machines."""
            require_image_endpoints(request)
            params = (await route_info(request)).params
            if not params.get("machine"):
                raise MissingParameterError("machine is a required argument")
            if not params.get("name"):
                raise MissingParameterError("Image name is a required argument")
            if not params.get("version"):
                raise MissingParameterError("Image version is a required argument")

            manifest: Dict[str, Any] = {"name": params["name"], "version": params["version"]}
            for attr in IMAGE_MANIFEST_ATTRIBUTES:
                if attr in params:
                    manifest[attr] = params[attr]

            auth = request.state.auth
            job = await self.image_client.create_image_from_vm(manifest, params["machine"], auth.tenant_id)

            image = dict(manifest, uuid=job["image_uuid"], state="creating")
            self.logger.info("Image creation queued", image=image["uuid"], job=job.get("job_uuid"))
            return JSONResponse(
                status_code=201,
                content=translate_image(request.state.version, image),
                headers={
                    "Location": f"/{auth.login}/images/{image['uuid']}",
                    "x-joyent-jobid": str(job.get("job_uuid", "")),
                },
            )

        @self.app.post("/{account}/images/{dataset}", dependencies=self._dependencies(self.img_mgmt_guard))
        async def export_image(request: Request, dataset: str):
            """Export an image to a storage path."""
            require_image_endpoints(request)
            params = (await route_info(request)).params
            action = params.get("action")
            if action != "export":
                raise InvalidArgumentError(f"action {action} is not a valid argument")
            if not params.get("manta_path"):
                raise MissingParameterError("Image destination manta_path is a required argument")

            return await self.image_client.export_image(
                dataset, request.state.auth.tenant_id, params["manta_path"]
            )

        @self.app.delete("/{account}/images/{dataset}", dependencies=self._dependencies(self.img_mgmt_guard))
        async def delete_image(request: Request, dataset: str):
            raise UnsupportedOperationError("deleting a custom image is not currently supported")

    def _setup_machine_routes(self):
        """Set up the machine routes that consume preloaded entities."""

        @self.app.api_route(
            "/{account}/machines",
            methods=["GET", "HEAD"],
            dependencies=self._dependencies(),
        )
        async def list_machines(request: Request):
            auth = request.state.auth
            version: VersionContext = request.state.version
            packages = request.state.package_selection.candidate_list or []
            images = request.state.selection.candidate_list or []

            package_names = {p.get("uuid"): p.get("name") for p in packages}
            images_by_uuid = {i.get("uuid"): i for i in images}

            machines = await self.machine_client.list_machines(auth.tenant_id)
            result = [
                self._translate_machine(version, m, package_names, images_by_uuid)
                for m in machines
            ]
            return self._respond(request, result)

        @self.app.post("/{account}/machines/{machine}", dependencies=self._dependencies())
        async def update_machine(request: Request, machine: str):
            auth = request.state.auth
            params = (await route_info(request)).params
            action = params.get("action")

            if action == "resize":
                pkg = request.state.package_selection.selected_entity
                if pkg is None:
                    if params.get("package"):
                        raise NotFoundError(f"{params['package']} not found")
                    raise MissingParameterError("package must be specified")
                await self.machine_client.resize_machine(machine, auth.tenant_id, pkg)
            elif action == "reboot":
                await self.machine_client.reboot_machine(machine, auth.tenant_id)
            else:
                raise InvalidArgumentError(f"action {action} is not a valid argument")

            return Response(status_code=202)

    @staticmethod
    def _translate_machine(
        version: VersionContext,
        machine: Dict[str, Any],
        package_names: Dict[str, str],
        images_by_uuid: Dict[str, Dict[str, Any]],
    ) -> Dict[str, Any]:
        image_uuid = machine.get("image_uuid")
        m = {
            "id": machine.get("uuid"),
            "name": machine.get("alias"),
            "type": MACHINE_TYPES.get(machine.get("brand"), "smartmachine"),
            "state": machine.get("state"),
            "image": image_uuid,
            "memory": machine.get("ram"),
            "package": package_names.get(machine.get("billing_id"), ""),
            "created": machine.get("create_timestamp"),
        }
        image = images_by_uuid.get(image_uuid)
        if version.legacy and image and image.get("urn"):
            m["dataset"] = image["urn"]
        return m

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check gateway dependencies."""
        dependencies = {"redis": "ok" if await self.cache.ping() else "error"}
        for name, state in circuit_breaker_manager.get_all_states().items():
            dependencies[name] = "ok" if state.get("state") != "open" else "error"
        return dependencies


def create_app():
    """Create FastAPI application."""
    service = CatalogGatewayService()
    return service.app


if __name__ == "__main__":
    service = CatalogGatewayService()
    service.run()
