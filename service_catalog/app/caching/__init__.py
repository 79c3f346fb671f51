"""
Gateway caching package.

Tenant-scoped, short-lived list caches in front of the catalog services.
Filtered requests bypass the cache entirely; staleness up to the configured
TTL is accepted.
"""

from .result_cache import ResultCache

__all__ = ["ResultCache"]
