"""
按键互斥锁实现

- InProcessKeyedLock: 单进程部署（未配置 Redis）时使用，每个键一把 asyncio.Lock，
  引用计数归零即释放，空闲键不会累积
- RedisKeyedLock: 多进程/多实例部署时使用，基于 RedisClient.lock
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from core.logging_config import get_logger
from domain.common.exceptions import LockAcquisitionError
from infrastructure.external.cache.redis_client import RedisClient

logger = get_logger(__name__)


class InProcessKeyedLock:
    """进程内按键互斥"""

    def __init__(self, blocking_timeout: Optional[float] = None) -> None:
        self._blocking_timeout = blocking_timeout
        self._locks: dict[str, asyncio.Lock] = {}
        self._refcounts: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._refcounts[key] = self._refcounts.get(key, 0) + 1
        try:
            try:
                if self._blocking_timeout is None:
                    await lock.acquire()
                else:
                    await asyncio.wait_for(lock.acquire(), timeout=self._blocking_timeout)
            except asyncio.TimeoutError:
                raise LockAcquisitionError(key)
            try:
                yield
            finally:
                lock.release()
        finally:
            self._refcounts[key] -= 1
            if self._refcounts[key] == 0:
                del self._refcounts[key]
                del self._locks[key]


class RedisKeyedLock:
    """跨进程按键互斥（Redis 分布式锁）"""

    def __init__(self, redis: RedisClient, *, timeout: float, blocking_timeout: float) -> None:
        self._redis = redis
        self._timeout = timeout
        self._blocking_timeout = blocking_timeout

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        async with self._redis.lock(key, timeout=self._timeout, blocking_timeout=self._blocking_timeout):
            yield
