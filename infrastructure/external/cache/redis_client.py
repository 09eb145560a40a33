"""
统一的Redis客户端实现 - 命名空间、JSON序列化与分布式锁
"""
from __future__ import annotations

import asyncio
import json
import socket
from contextlib import asynccontextmanager
from typing import Any, Optional

from redis import asyncio as aioredis
from redis.exceptions import RedisError, LockError

from core.config import settings
from core.logging_config import get_logger
from domain.common.exceptions import LockAcquisitionError

logger = get_logger(__name__)


class RedisClient:
    """
    Redis客户端封装

    作为狗狗档案的读穿缓存与 webhook 履约的分布式锁使用：
    - 命名空间隔离
    - JSON 序列化
    - 读写失败降级（记录日志，返回默认值），缓存不可用不影响主流程
    """

    def __init__(
        self,
        client: aioredis.Redis,
        namespace: str = "",
        default_ttl: Optional[int] = None,
    ):
        self._client = client
        self._namespace = namespace.strip(":")
        self._default_ttl = default_ttl

    def _format_key(self, key: str) -> str:
        """格式化键名，添加命名空间前缀"""
        if not self._namespace:
            return key
        return f"{self._namespace}:{key}"

    @staticmethod
    def _dumps(value: Any) -> str:
        return json.dumps(value, default=str, ensure_ascii=False)

    @staticmethod
    def _loads(value: str) -> Any:
        try:
            return json.loads(value)
        except (TypeError, ValueError):
            return value

    # ============= 缓存操作 =============

    async def get(self, key: str, default: Any = None) -> Any:
        """获取值；Redis异常时返回默认值"""
        formatted_key = self._format_key(key)
        try:
            value = await self._client.get(formatted_key)
        except RedisError as e:
            logger.error("redis_get_failed", key=formatted_key, error=str(e))
            return default
        if value is None:
            logger.debug("redis_cache_miss", key=formatted_key)
            return default
        return self._loads(value)

    async def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None,
    ) -> bool:
        """设置值，ttl 为空时使用默认TTL"""
        formatted_key = self._format_key(key)
        expire = ttl if ttl is not None else self._default_ttl
        try:
            result = await self._client.set(
                formatted_key,
                self._dumps(value),
                ex=expire if expire and expire > 0 else None,
            )
        except RedisError as e:
            logger.error("redis_set_failed", key=formatted_key, error=str(e))
            return False
        return bool(result)

    # ============= 通用操作 =============

    async def delete(self, *keys: str) -> int:
        formatted_keys = [self._format_key(k) for k in keys]
        try:
            return await self._client.delete(*formatted_keys)
        except RedisError as e:
            logger.error("redis_delete_failed", keys=formatted_keys, error=str(e))
            return 0

    # ============= 高级功能 =============

    @asynccontextmanager
    async def lock(
        self,
        key: str,
        timeout: float = 10,
        blocking_timeout: float = 5,
    ):
        """
        分布式锁上下文管理器

        Args:
            key: 锁的键名
            timeout: 锁的超时时间（秒），持有者崩溃后自动释放
            blocking_timeout: 获取锁的等待时间（秒）

        Raises:
            LockAcquisitionError: 等待超时仍未获得锁
        """
        lock_key = f"lock:{self._format_key(key)}"
        # thread_local=False：协程间共享 token，由同一任务负责释放
        lock = self._client.lock(
            lock_key,
            timeout=timeout,
            blocking_timeout=blocking_timeout,
            thread_local=False,
        )

        acquired = await lock.acquire()
        if not acquired:
            raise LockAcquisitionError(lock_key)
        try:
            yield lock
        finally:
            try:
                await lock.release()
            except LockError as e:
                # 锁已过期被他人获取，只记录
                logger.error("redis_lock_release_failed", key=lock_key, error=str(e))


# ============= 单例模式管理 =============

_redis_client: Optional[aioredis.Redis] = None
_cache_instance: Optional[RedisClient] = None
_lock = asyncio.Lock()


def _keepalive_options() -> dict:
    # 构建跨平台 keepalive 选项（若可用）
    if hasattr(socket, "TCP_KEEPIDLE") and hasattr(socket, "TCP_KEEPINTVL") and hasattr(socket, "TCP_KEEPCNT"):
        return {
            socket.TCP_KEEPIDLE: 1,
            socket.TCP_KEEPINTVL: 1,
            socket.TCP_KEEPCNT: 3,
        }
    return {}


async def init_redis_client(namespace: Optional[str] = None, **kwargs) -> RedisClient:
    """
    初始化全局Redis客户端

    Args:
        namespace: 命名空间，默认取 settings.redis.namespace
        **kwargs: 其他Redis连接参数

    Returns:
        RedisClient实例
    """
    global _redis_client, _cache_instance

    if _cache_instance is not None:
        return _cache_instance

    async with _lock:
        if _cache_instance is not None:
            return _cache_instance

        if not settings.redis.url:
            raise RuntimeError("REDIS__URL 未配置，无法初始化Redis客户端")

        client = aioredis.from_url(
            settings.redis.url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=settings.redis.max_connections,
            socket_keepalive=True,
            socket_keepalive_options=_keepalive_options(),
            **kwargs
        )

        try:
            await client.ping()
        except RedisError as e:
            logger.error("redis_init_failed", error=str(e))
            await client.aclose()
            raise

        _redis_client = client
        _cache_instance = RedisClient(
            client=client,
            namespace=namespace or settings.redis.namespace,
            default_ttl=settings.redis.default_ttl,
        )
        logger.info("redis_initialized", namespace=namespace or settings.redis.namespace)
        return _cache_instance


def get_redis_client() -> Optional[RedisClient]:
    """获取全局Redis客户端实例（未初始化时为 None）"""
    return _cache_instance


async def shutdown_redis_client() -> None:
    """关闭Redis连接"""
    global _redis_client, _cache_instance

    if _redis_client is not None:
        try:
            await _redis_client.aclose()
            logger.info("redis_closed")
        except RedisError as e:
            logger.error("redis_close_failed", error=str(e))
        finally:
            _redis_client = None
            _cache_instance = None


__all__ = [
    "RedisClient",
    "init_redis_client",
    "get_redis_client",
    "shutdown_redis_client",
]
