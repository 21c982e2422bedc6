"""Cache storage backends."""

from img_optimizer.services.cache.base import CacheStore
from img_optimizer.services.cache.disk import DiskCacheStore
from img_optimizer.services.cache.memory import MemoryCacheStore
from img_optimizer.services.cache.redis_store import RedisCacheStore

__all__ = [
    "CacheStore",
    "DiskCacheStore",
    "MemoryCacheStore",
    "RedisCacheStore",
]
