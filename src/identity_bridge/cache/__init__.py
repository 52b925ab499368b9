"""TTL caches for transport-fetched data."""

from identity_bridge.cache.layer import CacheConfig, CacheLayer
from identity_bridge.cache.ttl import TTLCache

__all__ = ["CacheConfig", "CacheLayer", "TTLCache"]
