"""缓存层对外暴露的接口"""
from .redis_client import (
    RedisClient,
    init_redis_client,
    get_redis_client,
    shutdown_redis_client,
)
from .memory_cache import TTLMemoryCache


__all__ = [
    "RedisClient",
    "TTLMemoryCache",
    "init_redis_client",
    "get_redis_client",
    "shutdown_redis_client",
]
