"""
Request guards run ahead of the preload stage.
"""

from fastapi import Request

from shared.errors import FeatureGatedError, ServiceUnavailableError
from shared.logging import get_logger

from ..versioning import FeatureFlags
from .resolver import MUTATING_METHODS


class ReadOnlyGuard:
    """Rejects writes while the gateway runs in read-only mode."""

    def __init__(self, read_only: bool):
        self.read_only = read_only

    async def __call__(self, request: Request) -> None:
        if self.read_only and request.method.upper() in MUTATING_METHODS:
            raise ServiceUnavailableError("Catalog Gateway is in read-only mode")


class BleedingEdgeGuard:
    """Hides an endpoint unless ``feature`` is on and the caller is whitelisted.

    A hidden endpoint answers exactly like a missing one.
    """

    def __init__(self, flags: FeatureFlags, feature: str):
        self.flags = flags
        self.feature = feature
        self.logger = get_logger("gateway.bleeding_edge_guard")

    async def __call__(self, request: Request) -> None:
        auth = getattr(request.state, "auth", None)
        login = auth.login if auth else None
        if not self.flags.enabled_for(self.feature, login):
            self.logger.info("Bleeding edge feature hidden", feature=self.feature, login=login)
            raise FeatureGatedError(request.url.path)
