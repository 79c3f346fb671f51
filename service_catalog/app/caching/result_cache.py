"""
Tenant-scoped read-through cache for catalog list results.
"""

import json
from typing import Any, Optional, Tuple

import redis.asyncio as redis

from shared.logging import get_logger
from shared.metrics import MetricsCollector


class ResultCache:
    """Best-effort cache in front of catalog list calls.

    One entry per tenant per entity type, keyed ``"<entity_type>_<tenant>"``.
    Expiry is left to Redis (``SETEX``). Any Redis failure is logged and
    behaves as a miss; it never fails the request.
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        *,
        client: Optional[Any] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.redis_url = redis_url
        self.metrics = metrics
        self.logger = get_logger("gateway.result_cache")
        self._redis = client

    async def _get_redis(self):
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
        return self._redis

    @staticmethod
    def make_key(entity_type: str, tenant_id: str) -> str:
        """Deterministic cache key for a tenant's list of ``entity_type``."""
        return f"{entity_type}_{tenant_id}"

    async def get(self, key: str) -> Tuple[bool, Optional[Any]]:
        """Return ``(hit, value)``."""
        cache_type = key.split("_", 1)[0]
        try:
            redis_client = await self._get_redis()
            cached = await redis_client.get(key)
            if cached is None:
                self._record(cache_type, "miss")
                return False, None
            value = json.loads(cached)
        except Exception as exc:
            self.logger.error("Cache fetch error", key=key, error=str(exc))
            self._record(cache_type, "error")
            return False, None

        self._record(cache_type, "hit")
        return True, value

    async def set(self, key: str, ttl_seconds: int, value: Any) -> None:
        """Store ``value`` for ``ttl_seconds``; failures are only logged."""
        try:
            redis_client = await self._get_redis()
            await redis_client.setex(key, ttl_seconds, json.dumps(value))
            self.logger.debug("Cached value", key=key, ttl=ttl_seconds)
        except Exception as exc:
            self.logger.error("Cache set error", key=key, error=str(exc))

    async def ping(self) -> bool:
        try:
            redis_client = await self._get_redis()
            return bool(await redis_client.ping())
        except Exception as exc:
            self.logger.warning("Cache ping failed", error=str(exc))
            return False

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    def _record(self, cache_type: str, result: str) -> None:
        if self.metrics:
            self.metrics.record_cache(cache_type, result)
