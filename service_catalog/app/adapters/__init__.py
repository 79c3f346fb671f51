"""
Adapters package for the Catalog Gateway.

HTTP client wrappers for the backend services the gateway fronts (package
catalog, image catalog, machine orchestration) and the auth service. These
adapters encapsulate:

- Base URLs and request shapes
- Retry policies and circuit breakers
- Error handling that maps to shared errors

Keep adapters thin and side-effect free outside of explicit calls.
"""

from .auth_client import AuthClient
from .image_client import ImageCatalogClient
from .machine_client import MachineClient
from .package_client import PackageCatalogClient

__all__ = [
    "AuthClient",
    "ImageCatalogClient",
    "MachineClient",
    "PackageCatalogClient",
]
