"""
Listing pipelines for the catalog endpoints.

Packages: filter build -> cache eligibility -> cache or backend ->
write-through -> translate. Images are listed from the candidates the
preload already fetched, so no second backend round trip is made.
"""

from typing import Any, Dict, List, Mapping, Optional

from shared.logging import get_logger
from shared.metrics import MetricsCollector

from ..adapters import PackageCatalogClient
from ..caching import ResultCache
from ..versioning import VersionContext
from .selection import PACKAGE, ResolvedSelection
from .translators import translate_package


# Public filter name -> backend attribute
PACKAGE_FILTERS = {
    "name": "name",
    "memory": "max_physical_memory",
    "disk": "quota",
    "swap": "max_swap",
    "version": "version",
    "vcpus": "vcpus",
    "group": "group",
}


def build_package_filter(params: Mapping[str, Any]) -> Dict[str, Any]:
    """Narrowing filter for a package listing; unknown params are ignored."""
    return {
        backend_name: params[public_name]
        for public_name, backend_name in PACKAGE_FILTERS.items()
        if params.get(public_name) not in (None, "")
    }


class PackageListing:
    """Lists a tenant's active packages, caching unfiltered results."""

    def __init__(
        self,
        client: PackageCatalogClient,
        cache: ResultCache,
        ttl_seconds: int,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.client = client
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self.metrics = metrics
        self.logger = get_logger("gateway.package_listing")

    async def list(
        self,
        tenant_id: str,
        params: Mapping[str, Any],
        version: VersionContext,
    ) -> List[Dict[str, Any]]:
        filters = build_package_filter(params)
        # Only plain per-tenant listings are cached
        cacheable = not filters
        key = ResultCache.make_key(PACKAGE, tenant_id)

        packages = None
        if cacheable:
            hit, cached = await self.cache.get(key)
            if hit:
                packages = cached
        elif self.metrics:
            self.metrics.record_cache(PACKAGE, "bypass")

        if packages is None:
            query = dict(filters)
            query["active"] = True
            query["owner_uuids"] = tenant_id
            packages = await self.client.list(query)
            if cacheable:
                await self.cache.set(key, self.ttl_seconds, packages)

        result = [translate_package(version, p) for p in packages]
        self.logger.debug("Listed packages", tenant_id=tenant_id, count=len(result), filtered=not cacheable)
        return result


def list_images(selection: ResolvedSelection) -> List[Dict[str, Any]]:
    """Translate the preloaded image candidates for the caller's version.

    The 6.5 track only knows images by URN, so images without one are left
    out there.
    """
    images = [selection.translate(image) for image in selection.candidate_list or []]
    if selection.version.legacy:
        images = [image for image in images if "urn" in image]
    return images
