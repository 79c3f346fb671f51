"""
Response translators: raw backend entities to public, version-shaped dicts.

Field selection comes from the request's :class:`VersionContext`; the
translators only check whether the source entity actually carries a value.
"""

from typing import Any, Dict, Optional

from ..versioning import VersionContext


KNOWN_IMAGE_ERROR_CODES = frozenset({
    "PrepareImageDidNotRun",
    "VmHasNoOrigin",
    "NotSupported",
})

GENERIC_IMAGE_ERROR = {
    "code": "InternalError",
    "message": "an unexpected error occurred (Contact support for assistance.)",
}

IMAGE_TYPES = {
    "zvol": "virtualmachine",
}

# Public search value -> backend image type
IMAGE_TYPE_FILTERS = {
    "smartmachine": "zone-dataset",
    "virtualmachine": "zvol",
}


def translate_package(version: VersionContext, pkg: Dict[str, Any]) -> Dict[str, Any]:
    """Public representation of a package."""
    p = {
        "name": pkg.get("name"),
        "memory": pkg.get("max_physical_memory"),
        "disk": pkg.get("quota"),
        "swap": pkg.get("max_swap"),
        "vcpus": pkg.get("vcpus") or 0,
        "default": pkg.get("default") or False,
    }

    if version.shows("package", "id"):
        p["id"] = pkg.get("uuid")
    if version.shows("package", "version"):
        p["version"] = pkg.get("version")
    for optional in ("description", "group"):
        if version.shows("package", optional) and pkg.get(optional):
            p[optional] = pkg[optional]

    return p


def image_error(image: Dict[str, Any]) -> Dict[str, str]:
    """Stable ``{code, message}`` for an image's backend error.

    Unknown codes collapse into a generic internal error so backend internals
    never reach clients.
    """
    err = image.get("error") or {}
    code = err.get("code")
    if code in KNOWN_IMAGE_ERROR_CODES:
        return {"code": code, "message": err.get("message", "")}
    return dict(GENERIC_IMAGE_ERROR)


def _requirements(image: Dict[str, Any]) -> Dict[str, Any]:
    reqs: Dict[str, Any] = {}
    source = image.get("requirements")
    if not source:
        return reqs

    if "password" in source:
        reqs["password"] = source["password"]
    if source.get("max_ram"):
        reqs["max_memory"] = source["max_ram"]
        reqs["max_ram"] = source["max_ram"]
    if source.get("min_ram"):
        reqs["min_memory"] = source["min_ram"]
        reqs["min_ram"] = source["min_ram"]
    return reqs


def translate_image(
    version: VersionContext,
    image: Dict[str, Any],
    selected: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Public representation of an image (dataset).

    ``selected`` is the request's current image; it drives the 6.5-only
    ``default`` flag.
    """
    fields = version.image_fields
    obj: Dict[str, Any] = {
        "id": image.get("uuid"),
        "name": image.get("name"),
        "version": image.get("version"),
        "os": image.get("os"),
        "requirements": _requirements(image),
    }

    if image.get("type"):
        obj["type"] = IMAGE_TYPES.get(image["type"], "smartmachine")
    if image.get("description"):
        obj["description"] = image["description"]

    if "urn" in fields and image.get("urn"):
        obj["urn"] = image["urn"]

    if "default" in fields:
        obj["default"] = bool(selected) and selected.get("uuid") == image.get("uuid")
    if "created" in fields and image.get("published_at"):
        obj["created"] = image["published_at"]

    for name in ("tags", "owner", "homepage", "published_at", "public",
                 "state", "eula", "acl", "origin", "error"):
        if name not in fields or name not in image:
            continue
        if name == "error":
            obj["error"] = image_error(image)
        else:
            obj[name] = image[name]

    return obj
