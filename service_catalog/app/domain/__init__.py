"""
Domain layer for the Catalog Gateway.

Request preloading (entity resolution and selection state), listing
pipelines, response translators and the guards that run ahead of them.
"""

from .auth_middleware import AuthContext, AuthMiddleware
from .guards import BleedingEdgeGuard, ReadOnlyGuard
from .listing import PackageListing, list_images
from .preload import PreloadMiddleware
from .resolver import ImageResolver, PackageResolver, RouteInfo
from .selection import ResolvedSelection

__all__ = [
    "AuthContext",
    "AuthMiddleware",
    "BleedingEdgeGuard",
    "ImageResolver",
    "PackageListing",
    "PackageResolver",
    "PreloadMiddleware",
    "ReadOnlyGuard",
    "ResolvedSelection",
    "RouteInfo",
    "list_images",
]
