"""
进程内 TTL 缓存（带 LRU 容量上限）

未配置 Redis 时作为 ProfileCache 的默认实现；接口与 RedisClient 的
get/set/delete 保持一致，便于替换。
"""
from __future__ import annotations

import asyncio
import copy
import time
from collections import OrderedDict
from typing import Any, Callable, Optional


class TTLMemoryCache:
    """TTL + 最大条目数的内存缓存

    - 过期条目在读取时淘汰
    - 超过 max_entries 时淘汰最久未使用的条目
    - 值以深拷贝存取，调用方修改返回值不会影响缓存
    """

    def __init__(
        self,
        *,
        default_ttl: Optional[int] = 3600,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._default_ttl = default_ttl
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, tuple[Optional[float], Any]] = OrderedDict()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str, default: Any = None) -> Any:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            expires_at, value = entry
            if expires_at is not None and expires_at <= self._clock():
                del self._entries[key]
                return default
            self._entries.move_to_end(key)
            return copy.deepcopy(value)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        expire = ttl if ttl is not None else self._default_ttl
        expires_at = self._clock() + expire if expire and expire > 0 else None
        async with self._lock:
            self._entries[key] = (expires_at, copy.deepcopy(value))
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        async with self._lock:
            for key in keys:
                if self._entries.pop(key, None) is not None:
                    removed += 1
        return removed
