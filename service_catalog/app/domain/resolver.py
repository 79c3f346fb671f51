"""
Entity resolution for the preload stage.

Given the route a request hit, decide which package and image entities the
handler needs and load them from the catalogs. Resolution never raises for
absence: a missing entity is recorded as ``selected_entity = None`` and the
handler decides whether that is fatal. Backend errors propagate unchanged.

Package decision policy, first match wins:

1. ping path -> skip
2. ``.../packages`` listing -> skip (the listing pipeline filters itself)
3. ``package`` param is a UUID -> single lookup scoped to the tenant
4. ``package`` param is a name -> tenant's active packages with that name,
   greatest semver wins
5. ``.../machines`` listing (not POST) -> every package, unrestricted, so
   machines created with since-retired packages still resolve
6. POST ``action=resize`` -> tenant's active packages; the greatest-version
   default package is selected if there is one
7. anything else -> skip
"""

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from shared.logging import get_logger

from ..adapters import ImageCatalogClient, PackageCatalogClient
from ..versioning import VersionContext, greatest_version
from .selection import IMAGE, PACKAGE, ResolvedSelection
from .translators import IMAGE_TYPE_FILTERS


UUID_RE = re.compile(r"[a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12}")
PING_PATH = "/--ping"

PACKAGE_LIST_RE = re.compile(r"/packages$")
MACHINE_LIST_RE = re.compile(r"/machines$")
IMAGE_LIST_RE = re.compile(r"/(images|datasets)$")
IMAGE_SCOPE_RE = re.compile(r"/(datasets|machines|images)")

MUTATING_METHODS = frozenset({"POST", "PUT", "DELETE"})

# Images in these states are invisible to single-entity lookups. Disabled
# images stay visible by id: machines may still reference them.
HIDDEN_IMAGE_STATES = frozenset({"destroyed"})

# Image search parameters honoured on the image listing endpoints
IMAGE_SEARCH_PARAMS = ("name", "os", "version", "public", "state", "owner")

LEGACY_DEFAULT_IMAGE = "smartos"


@dataclass(frozen=True)
class RouteInfo:
    """What the resolver needs to know about the matched route."""

    path: str
    method: str
    params: Mapping[str, Any] = field(default_factory=dict)

    def param(self, *names: str) -> Optional[str]:
        """First non-empty value among ``names``."""
        for name in names:
            value = self.params.get(name)
            if value not in (None, ""):
                return str(value)
        return None

    @property
    def is_ping(self) -> bool:
        return self.path == PING_PATH

    @property
    def is_mutating(self) -> bool:
        return self.method.upper() in MUTATING_METHODS


class PackageResolver:
    """Resolves the package in scope for a request."""

    def __init__(self, client: PackageCatalogClient):
        self.client = client
        self.logger = get_logger("gateway.package_resolver")

    async def resolve(self, tenant_id: str, route: RouteInfo, version: VersionContext) -> ResolvedSelection:
        selection = ResolvedSelection(PACKAGE, version)

        if route.is_ping or PACKAGE_LIST_RE.search(route.path):
            return selection.skip()

        requested = route.param("package")
        if requested:
            if UUID_RE.fullmatch(requested):
                return selection.resolve_single(await self._get_by_uuid(tenant_id, requested))
            return selection.resolve_single(await self._get_by_name(tenant_id, requested))

        if MACHINE_LIST_RE.search(route.path) and route.method.upper() != "POST":
            packages = await self.client.list({})
            return selection.resolve_list(packages)

        if route.method.upper() == "POST" and route.param("action") == "resize":
            packages = await self.client.list({"owner_uuids": tenant_id, "active": True})
            default = greatest_version(p for p in packages if p.get("default") is True)
            if default is not None:
                self.logger.info("Selected default package", package=default.get("uuid"))
            return selection.resolve_list(packages, default)

        return selection.skip()

    async def _get_by_uuid(self, tenant_id: str, package_uuid: str) -> Optional[Dict[str, Any]]:
        pkg = await self.client.get(package_uuid, owner_uuids=tenant_id)
        if pkg is not None and pkg.get("active") is False:
            self.logger.debug("Ignoring inactive package", package=package_uuid)
            return None
        self.logger.debug("Loaded selected package", package=package_uuid, found=pkg is not None)
        return pkg

    async def _get_by_name(self, tenant_id: str, name: str) -> Optional[Dict[str, Any]]:
        packages = await self.client.list({"name": name, "owner_uuids": tenant_id, "active": True})
        pkg = greatest_version(packages)
        self.logger.debug(
            "Loaded selected package by name",
            name=name,
            candidates=len(packages),
            version=pkg.get("version") if pkg else None
        )
        return pkg


def current_image_legacy(images: List[Dict[str, Any]], requested: Optional[str]) -> Optional[Dict[str, Any]]:
    """6.5 track: loose match on uuid, urn or name (``smartos`` when nothing
    was requested), greatest version among the matches."""
    if requested:
        matches = [
            d for d in images
            if requested in (d.get("uuid"), d.get("urn"), d.get("name"))
        ]
    else:
        matches = [d for d in images if d.get("name") == LEGACY_DEFAULT_IMAGE]
    return greatest_version(matches)


def current_image_modern(images: List[Dict[str, Any]], requested: Optional[str]) -> Optional[Dict[str, Any]]:
    """7.x track: first image whose uuid or urn equals the request.

    Unlike the legacy track this does not look for the newest version.
    """
    if not requested:
        return None
    for image in images:
        if requested == image.get("uuid") or requested == image.get("urn"):
            return image
    return None


CurrentImageFunc = Callable[[List[Dict[str, Any]], Optional[str]], Optional[Dict[str, Any]]]


class ImageResolver:
    """Resolves the image candidates and the current image for a request."""

    def __init__(self, client: ImageCatalogClient):
        self.client = client
        self.logger = get_logger("gateway.image_resolver")

    async def resolve(self, tenant_id: str, route: RouteInfo, version: VersionContext) -> ResolvedSelection:
        selection = ResolvedSelection(IMAGE, version)

        if route.is_ping:
            return selection.skip()

        requested = route.param("image", "dataset")
        if requested and UUID_RE.fullmatch(requested):
            return selection.resolve_single(await self._get_by_uuid(requested))

        if "/machines/" in route.path or not IMAGE_SCOPE_RE.search(route.path):
            return selection.skip()

        images = await self.client.list_images(self._list_filters(tenant_id, route))
        if MACHINE_LIST_RE.search(route.path) and route.method.upper() != "POST":
            # Machines may have been provisioned from images disabled since
            images = images + await self.client.list_images({"state": "disabled"})

        pick: CurrentImageFunc = current_image_legacy if version.legacy else current_image_modern
        current = pick(images, requested)
        if current is not None:
            self.logger.debug("Loaded selected image", image=current.get("uuid"))
        return selection.resolve_list(images, current)

    async def _get_by_uuid(self, image_uuid: str) -> Optional[Dict[str, Any]]:
        image = await self.client.get_image(image_uuid)
        if image is not None and image.get("state") in HIDDEN_IMAGE_STATES:
            self.logger.debug("Ignoring hidden image", image=image_uuid, state=image.get("state"))
            return None
        return image

    @staticmethod
    def _list_filters(tenant_id: str, route: RouteInfo) -> Dict[str, Any]:
        filters: Dict[str, Any] = {"account": tenant_id}
        if "/machines" in route.path or not IMAGE_LIST_RE.search(route.path):
            return filters

        for name in IMAGE_SEARCH_PARAMS:
            value = route.param(name)
            if value is not None:
                filters[name] = value
        image_type = route.param("type")
        if image_type in IMAGE_TYPE_FILTERS:
            filters["type"] = IMAGE_TYPE_FILTERS[image_type]
        return filters
