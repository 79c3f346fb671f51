"""
Image catalog client.
"""

from typing import Any, Dict, List, Optional

from .base import BackendClient


class ImageCatalogClient(BackendClient):
    """Client for the image (dataset) catalog service."""

    service_name = "image_catalog"

    async def get_image(self, image_uuid: str, account: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Fetch one image; ``None`` when unknown to the backend."""
        params = {"account": account} if account else None
        return await self._request(
            "get_image",
            "GET",
            f"/images/{image_uuid}",
            params=params,
            not_found_ok=True,
        )

    async def list_images(self, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        images = await self._request("list_images", "GET", "/images", params=dict(filters or {}))
        return images or []

    async def create_image_from_vm(
        self,
        manifest: Dict[str, Any],
        vm_uuid: str,
        account: str,
        incremental: bool = True,
    ) -> Dict[str, Any]:
        """Start an image creation job; returns ``{image_uuid, job_uuid}``."""
        params = {
            "action": "create-from-vm",
            "vm_uuid": vm_uuid,
            "incremental": incremental,
            "account": account,
        }
        return await self._request("create_image", "POST", "/images", params=params, json_body=manifest)

    async def export_image(self, image_uuid: str, account: str, manta_path: str) -> Dict[str, Any]:
        params = {"action": "export", "manta_path": manta_path, "account": account}
        return await self._request("export_image", "POST", f"/images/{image_uuid}", params=params)
