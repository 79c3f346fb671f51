"""
Machine orchestration client.
"""

from typing import Any, Dict, List, Optional

from .base import BackendClient


# Package attributes copied onto the machine by a resize
RESIZE_ATTRIBUTES = ("max_physical_memory", "max_swap", "quota", "vcpus", "cpu_cap", "zfs_io_priority")


class MachineClient(BackendClient):
    """Client for the machine orchestration service."""

    service_name = "machines"

    async def list_machines(self, owner_uuid: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        params = dict(filters or {})
        params["owner_uuid"] = owner_uuid
        machines = await self._request("list_machines", "GET", "/vms", params=params)
        return machines or []

    async def update_machine(self, machine_uuid: str, owner_uuid: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Queue an update job (used for resizes); returns the job."""
        return await self._request(
            "update_machine",
            "POST",
            f"/vms/{machine_uuid}",
            params={"action": "update", "owner_uuid": owner_uuid},
            json_body=payload,
        )

    async def reboot_machine(self, machine_uuid: str, owner_uuid: str) -> Dict[str, Any]:
        return await self._request(
            "reboot_machine",
            "POST",
            f"/vms/{machine_uuid}",
            params={"action": "reboot", "owner_uuid": owner_uuid},
        )

    async def resize_machine(self, machine_uuid: str, owner_uuid: str, package: Dict[str, Any]) -> Dict[str, Any]:
        """Resize a machine to ``package``'s dimensions."""
        payload = {"billing_id": package.get("uuid")}
        for attr in RESIZE_ATTRIBUTES:
            if package.get(attr) is not None:
                payload[attr] = package[attr]
        self.logger.info("Resizing machine", machine=machine_uuid, package=package.get("uuid"))
        return await self.update_machine(machine_uuid, owner_uuid, payload)
