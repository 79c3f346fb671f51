"""
Package catalog client.
"""

from typing import Any, Dict, List, Optional, Union

from .base import BackendClient


OwnerFilter = Union[str, List[str]]


class PackageCatalogClient(BackendClient):
    """Client for the package (compute size) catalog service."""

    service_name = "package_catalog"

    async def get(self, package_uuid: str, owner_uuids: Optional[OwnerFilter] = None) -> Optional[Dict[str, Any]]:
        """Fetch one package; ``None`` when it does not exist for the owner."""
        params = {}
        if owner_uuids:
            params["owner_uuids"] = owner_uuids
        return await self._request(
            "get_package",
            "GET",
            f"/packages/{package_uuid}",
            params=params,
            not_found_ok=True,
        )

    async def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """List packages matching ``filters`` (``owner_uuids`` and ``active``
        included), in backend order."""
        packages = await self._request("list_packages", "GET", "/packages", params=dict(filters or {}))
        return packages or []
